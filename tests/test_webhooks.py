import json
from datetime import timedelta

import pytest

from storefront.billing.attempts import AttemptRegistry
from storefront.billing.state_machine import OrderPaymentStatus, PaymentStatus, SubscriptionStatus
from storefront.extensions import db
from storefront.gateways.signatures import sign_paystack_payload
from storefront.models import CallbackAttempt, Order, Payment, RedemptionCode, Shop, Subscription
from storefront.utils import utcnow
from storefront.workers.tasks import expire_lapsed_subscriptions, process_gateway_webhook, prune_callback_attempts


pytestmark = pytest.mark.integration


def _charge_completed(transaction_id, tx_ref, amount, **meta):
    return {
        "event": "charge.completed",
        "data": {
            "id": transaction_id,
            "tx_ref": tx_ref,
            "amount": amount,
            "currency": "NGN",
            "status": "successful",
            "meta": meta,
        },
    }


def test_flutterwave_webhook_rejects_bad_hash(client, gateway):
    response = client.post(
        "/webhooks/flutterwave",
        data=json.dumps(_charge_completed(1, "R", 5000)),
        content_type="application/json",
        headers={"verif-hash": "forged"},
    )

    assert response.status_code == 401
    assert gateway.verify_calls == []


def test_flutterwave_webhook_settles_order(client, gateway, make_shop, make_order, make_payment, store):
    """With no browser callback at all, the webhook settles the order"""
    order = make_order(make_shop(), total="5000")
    payment = make_payment(order)
    gateway.add("4821", reference=payment.reference, amount="5000")

    response = client.post(
        "/webhooks/flutterwave",
        data=json.dumps(_charge_completed(4821, payment.reference, 5000, order_id=order.id)),
        content_type="application/json",
        headers={"verif-hash": gateway.webhook_hash},
    )

    assert response.status_code == 200
    assert response.get_json()["status"] == "queued"
    assert store.get(Order, order.id).payment_status == OrderPaymentStatus.PAID.value
    assert store.get(Payment, payment.id).gateway_transaction_id == "4821"
    assert gateway.verify_calls == ["4821"]


def test_flutterwave_webhook_ignores_other_events(client, gateway):
    response = client.post(
        "/webhooks/flutterwave",
        data=json.dumps({"event": "transfer.completed", "data": {"status": "successful"}}),
        content_type="application/json",
        headers={"verif-hash": gateway.webhook_hash},
    )

    assert response.get_json()["status"] == "ignored"


def test_paystack_webhook_signature(client, app):
    payload = json.dumps({"event": "subscription.create", "data": {}}).encode()

    rejected = client.post("/webhooks/paystack", data=payload, content_type="application/json",
                           headers={"x-paystack-signature": "0" * 128})
    assert rejected.status_code == 401

    signature = sign_paystack_payload(payload, app.config["PAYSTACK_SECRET_KEY"])
    accepted = client.post("/webhooks/paystack", data=payload, content_type="application/json",
                           headers={"x-paystack-signature": signature})
    assert accepted.status_code == 200
    assert accepted.get_json()["status"] == "ignored"


def test_webhook_after_callback_is_a_no_op(gateway, make_shop, make_order, make_payment, store, session_ctx, app):
    from storefront.billing.callbacks import classify_callback
    from storefront.billing.order_activation import OrderActivation

    order = make_order(make_shop(), total="5000")
    payment = make_payment(order)
    gateway.add("T1", reference=payment.reference, amount="5000")
    OrderActivation.from_config(store, gateway, app.config).handle(
        classify_callback({"status": "successful", "tx_ref": payment.reference, "transaction_id": "T1"}),
        session_ctx,
        order.shop_id,
    )

    result = process_gateway_webhook.apply(
        args=("flutterwave", {"transaction_id": "T1", "tx_ref": payment.reference, "payment_type": "order"})
    ).get()

    assert result["state"] == "success"
    assert result["already_settled"] is True
    assert gateway.verify_calls == ["T1"]
    assert db.session.query(RedemptionCode).count() == 1


def test_subscription_webhook_finds_shop_from_payment(gateway, make_shop, store):
    shop = make_shop(active=False, subscription_status=SubscriptionStatus.TRIAL)
    payment = Payment(
        reference=f"SHOPAF_SUB_{shop.id}_1",
        provider="flutterwave",
        payment_type="subscription",
        shop_id=shop.id,
        plan="starter",
        amount=2500,
        platform_fee=2500,
        seller_amount=0,
    )
    store.insert(payment)
    db.session.commit()
    gateway.add("T5", reference=payment.reference, amount="2500")

    result = process_gateway_webhook.apply(
        args=("flutterwave", {"transaction_id": "T5", "tx_ref": payment.reference, "payment_type": "subscription"})
    ).get()

    assert result["state"] == "success"
    assert store.get(Shop, shop.id).is_active is True
    assert store.get(Payment, payment.id).status == PaymentStatus.SUCCESS.value


def test_expiry_task(make_shop, store):
    shop = make_shop()
    subscription = store.get_by(Subscription, shop_id=shop.id)
    store.update_by_id(
        Subscription,
        subscription.id,
        {"current_period_start": utcnow() - timedelta(days=35), "current_period_end": utcnow() - timedelta(days=1)},
    )
    db.session.commit()

    assert expire_lapsed_subscriptions.apply().get() == 1
    assert store.get(Shop, shop.id).is_active is False


def test_prune_callback_attempts(app, store):
    registry = AttemptRegistry(store)
    registry.claim("old-session", "order", "T1")
    registry.claim("new-session", "order", "T2")
    old = registry.lookup("old-session", "order", "T1")
    retention = app.config["CALLBACK_ATTEMPT_RETENTION_DAYS"]
    store.update_by_id(CallbackAttempt, old.id, {"updated_at": utcnow() - timedelta(days=retention + 1)})
    db.session.commit()

    assert prune_callback_attempts.apply().get() == 1
    assert registry.lookup("old-session", "order", "T1") is None
    assert registry.lookup("new-session", "order", "T2") is not None
