from decimal import Decimal

import pytest

from storefront.billing.state_machine import PaymentStatus
from storefront.extensions import db
from storefront.models import Payment, SellerWallet


pytestmark = pytest.mark.db


def test_insert_unique_returns_existing_row(store, make_shop, make_order, make_payment):
    """A duplicate reference is not an error; it resolves to the first row"""
    shop = make_shop()
    order = make_order(shop)
    first = make_payment(order, reference="SHOPAF_1_100")

    result = store.insert_unique(
        Payment(
            reference="SHOPAF_1_100",
            shop_id=shop.id,
            order_id=order.id,
            amount=order.total,
        ),
        lookup={"reference": "SHOPAF_1_100"},
    )
    db.session.commit()

    assert result.created is False
    assert result.row.id == first.id
    assert db.session.query(Payment).count() == 1


def test_claim_payment_only_once(store, make_shop, make_order, make_payment):
    order = make_order(make_shop())
    payment = make_payment(order)

    assert store.claim_payment(payment.id, "T1") is True
    assert store.claim_payment(payment.id, "T1") is False
    db.session.commit()

    claimed = store.get(Payment, payment.id)
    assert claimed.status == PaymentStatus.SUCCESS.value
    assert claimed.gateway_transaction_id == "T1"
    assert claimed.settled_at is not None


def test_claim_payment_rejects_transaction_bound_elsewhere(store, make_shop, make_order, make_payment):
    """One gateway transaction can settle one payment"""
    shop = make_shop()
    first = make_payment(make_order(shop))
    second = make_payment(make_order(shop))

    assert store.claim_payment(first.id, "T1") is True
    assert store.claim_payment(second.id, "T1") is False
    db.session.commit()

    assert store.get(Payment, second.id).status == PaymentStatus.PENDING.value
    assert store.find_payment_by_transaction("T1").id == first.id


def test_update_by_id_reports_guard_failure(store, make_shop, make_order, make_payment):
    payment = make_payment(make_order(make_shop()))

    changed = store.update_by_id(
        Payment,
        payment.id,
        {"status": PaymentStatus.FAILED.value},
        where=[Payment.status == PaymentStatus.SUCCESS.value],
    )

    assert changed == 0
    assert store.get(Payment, payment.id).status == PaymentStatus.PENDING.value


def test_unit_of_work_rolls_back_everything(store, make_shop):
    shop = make_shop()

    with pytest.raises(RuntimeError):
        with store.unit_of_work():
            store.credit_wallet(shop.id, "100")
            raise RuntimeError("boom")

    assert store.get_by(SellerWallet, shop_id=shop.id) is None


def test_debit_wallet_never_goes_negative(store, make_shop):
    shop = make_shop()
    with store.unit_of_work():
        store.credit_wallet(shop.id, "1500")

    assert store.debit_wallet(shop.id, "2000") is False
    assert store.debit_wallet(shop.id, "1000") is True
    db.session.commit()

    wallet = store.get_by(SellerWallet, shop_id=shop.id)
    assert wallet.balance == Decimal("500.00")
    assert wallet.total_earned == Decimal("1500.00")
    assert wallet.total_withdrawn == Decimal("1000.00")
