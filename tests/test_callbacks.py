import pytest

from storefront.billing.callbacks import (
    CallbackKind,
    classify_callback,
    strip_callback_params,
)


@pytest.mark.parametrize("status", ["successful", "completed", "SUCCESS"])
def test_success_statuses_are_verification_candidates(status):
    descriptor = classify_callback({"status": status, "transaction_id": "T1", "tx_ref": "SHOPAF_1_1"})

    assert descriptor.kind is CallbackKind.SUCCESS
    assert descriptor.transaction_id == "T1"
    assert descriptor.tx_ref == "SHOPAF_1_1"
    assert descriptor.key == "T1"


@pytest.mark.parametrize("status", ["cancelled", "canceled", "failed", "abandoned"])
def test_cancelled_statuses(status):
    descriptor = classify_callback({"status": status, "tx_ref": "SHOPAF_1_1"})

    assert descriptor.kind is CallbackKind.CANCELLED
    assert descriptor.is_callback


def test_pending_status():
    assert classify_callback({"status": "pending", "tx_ref": "R"}).kind is CallbackKind.PENDING


def test_plain_page_load_is_not_a_callback():
    descriptor = classify_callback({"page": "2"})

    assert descriptor.kind is CallbackKind.NOT_A_CALLBACK
    assert not descriptor.is_callback


def test_unknown_status_is_not_a_callback():
    assert not classify_callback({"status": "teleported", "transaction_id": "T1"}).is_callback


def test_success_without_identifiers_is_not_a_callback():
    """Nothing to verify, so nothing to do"""
    assert not classify_callback({"status": "successful"}).is_callback


def test_paystack_redirect_without_status():
    descriptor = classify_callback({"trxref": "SHOPAF_9_1", "reference": "SHOPAF_9_1"})

    assert descriptor.kind is CallbackKind.SUCCESS
    assert descriptor.tx_ref == "SHOPAF_9_1"
    assert descriptor.transaction_id is None
    assert descriptor.verify_key("reference") == "SHOPAF_9_1"


def test_key_falls_back_to_reference():
    descriptor = classify_callback({"status": "successful", "tx_ref": "SHOPAF_3_1"})

    assert descriptor.key == "SHOPAF_3_1"
    assert descriptor.verify_key("transaction_id") is None


def test_strip_callback_params_keeps_other_params():
    params = {"status": "successful", "tx_ref": "R", "transaction_id": "T", "ref": "home"}

    assert strip_callback_params(params) == {"ref": "home"}
