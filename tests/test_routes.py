import pytest

from storefront.billing.state_machine import OrderPaymentStatus, SubscriptionStatus
from storefront.models import Order, PayoutRequest, RedemptionCode, SellerWallet, Shop


pytestmark = pytest.mark.integration


def _checkout(client, shop, gateway, transaction_id="T1"):
    """Create a 5000 order, start its payment and register the charge."""
    created = client.post("/api/checkout/orders", json={
        "shop_id": shop.id,
        "customer_name": "Ada Obi",
        "customer_phone": "+2348012345678",
        "items": [{"product_name": "Ankara dress", "quantity": 2, "unit_price": "2500"}],
    })
    assert created.status_code == 201
    order = created.get_json()["order"]

    started = client.post(f"/api/checkout/orders/{order['id']}/pay", json={"email": "ada@example.com"})
    assert started.status_code == 200
    tx_ref = started.get_json()["tx_ref"]

    gateway.add(transaction_id, reference=tx_ref, amount=order["total"])
    return order, tx_ref


def test_order_checkout_and_callback(client, gateway, make_shop, store):
    shop = make_shop()
    order, tx_ref = _checkout(client, shop, gateway)

    assert order["total"] == "5000.00"
    assert gateway.initialized[0]["callback_url"].endswith(f"/shop/{shop.id}/payment/callback")

    response = client.get(
        f"/shop/{shop.id}/payment/callback",
        query_string={"status": "successful", "tx_ref": tx_ref, "transaction_id": "T1"},
    )
    assert response.status_code == 302
    location = response.headers["Location"]
    assert location.endswith(f"/shop/{shop.id}/payment/callback")

    result = client.get(location).get_json()
    assert result["state"] == "success"
    assert result["order_number"] == order["order_number"]
    assert result["redemption_code"] == store.get_by(RedemptionCode, order_id=order["id"]).code

    # Reloading the result screen does not verify again
    again = client.get(f"/shop/{shop.id}/payment/result").get_json()
    assert again["state"] == "success"
    assert gateway.verify_calls == ["T1"]
    assert store.get(Order, order["id"]).payment_status == OrderPaymentStatus.PAID.value


def test_cancelled_callback_result_shown_once(client, gateway, make_shop):
    shop = make_shop()
    order, tx_ref = _checkout(client, shop, gateway)

    response = client.get(
        f"/shop/{shop.id}/payment/callback",
        query_string={"status": "cancelled", "tx_ref": tx_ref},
    )
    assert response.status_code == 302

    first = client.get(f"/shop/{shop.id}/payment/result").get_json()
    assert first["state"] == "cancelled"
    second = client.get(f"/shop/{shop.id}/payment/result").get_json()
    assert second["state"] is None
    assert gateway.verify_calls == []


def test_closed_shop_rejects_orders(client, make_shop):
    shop = make_shop(active=False, subscription_status=SubscriptionStatus.INACTIVE)

    response = client.post("/api/checkout/orders", json={
        "shop_id": shop.id,
        "customer_name": "Ada Obi",
        "customer_phone": "+2348012345678",
        "items": [{"product_name": "Ankara dress", "quantity": 1, "unit_price": "2500"}],
    })

    assert response.status_code == 409
    assert response.get_json()["error"] == "invalid_state_transition"


def test_missing_fields_are_reported(client):
    response = client.post("/api/checkout/orders", json={"customer_name": "Ada"})

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "validation_error"
    assert "shop_id" in body["missing"]


def test_subscription_callback_deferred_then_activated(client, gateway, make_shop, store):
    shop = make_shop(active=False, subscription_status=SubscriptionStatus.TRIAL)

    started = client.post(f"/api/subscriptions/{shop.id}/subscribe", json={"plan": "pro", "email": "o@example.com"})
    assert started.status_code == 200
    tx_ref = started.get_json()["tx_ref"]
    assert tx_ref.startswith(f"SHOPAF_SUB_{shop.id}_")
    gateway.add("T9", reference=tx_ref, amount="5000", metadata={"shop_id": shop.id, "plan": "pro"})

    params = {"status": "successful", "tx_ref": tx_ref, "transaction_id": "T9"}
    deferred = client.get("/api/subscriptions/callback", query_string=params)
    assert deferred.status_code == 202
    assert deferred.get_json()["state"] == "deferred"
    assert gateway.verify_calls == []

    activated = client.get("/api/subscriptions/callback", query_string=params, headers={"X-Shop-Id": str(shop.id)})
    assert activated.status_code == 200
    assert activated.get_json()["subscription"]["status"] == "active"
    assert store.get(Shop, shop.id).is_active is True


def test_plan_payment_does_not_show_as_order_success(client, gateway, make_shop):
    """Paying for a plan leaves the shop's order result screen empty"""
    shop = make_shop(active=False, subscription_status=SubscriptionStatus.TRIAL)
    started = client.post(f"/api/subscriptions/{shop.id}/subscribe", json={"plan": "pro", "email": "o@example.com"})
    tx_ref = started.get_json()["tx_ref"]
    gateway.add("T9", reference=tx_ref, amount="5000", metadata={"shop_id": shop.id, "plan": "pro"})

    activated = client.get(
        "/api/subscriptions/callback",
        query_string={"status": "successful", "tx_ref": tx_ref, "transaction_id": "T9"},
        headers={"X-Shop-Id": str(shop.id)},
    )
    assert activated.get_json()["state"] == "success"

    result = client.get(f"/shop/{shop.id}/payment/result")
    assert result.status_code == 200
    assert result.get_json()["state"] is None
    assert result.get_json()["message"] == "No payment in progress"


def test_unknown_plan(client, make_shop):
    shop = make_shop()

    response = client.post(f"/api/subscriptions/{shop.id}/subscribe", json={"plan": "gold", "email": "o@example.com"})

    assert response.status_code == 400


def test_redemption_endpoints(client, gateway, make_shop, store):
    shop = make_shop(owner_id="owner-7")
    order, tx_ref = _checkout(client, shop, gateway)
    client.get(
        f"/shop/{shop.id}/payment/callback",
        query_string={"status": "successful", "tx_ref": tx_ref, "transaction_id": "T1"},
    )
    code = store.get_by(RedemptionCode, order_id=order["id"]).code

    viewed = client.post("/api/redemption/view", json={"code": code.lower()})
    assert viewed.status_code == 200
    assert viewed.get_json()["order"]["order_number"] == order["order_number"]

    forbidden = client.post("/api/redemption/confirm-delivery", json={"code": code})
    assert forbidden.status_code == 403

    confirmed = client.post("/api/redemption/confirm-delivery", json={"code": code},
                            headers={"X-User-Id": "owner-7"})
    assert confirmed.status_code == 200
    assert confirmed.get_json()["credited"] == "4500.00"

    repeat = client.post("/api/redemption/confirm-receipt", json={"code": code})
    assert repeat.status_code == 200
    assert repeat.get_json()["already_confirmed"] is True
    assert store.get_by(SellerWallet, shop_id=shop.id).balance == 4500


def test_payout_flow(client, make_shop, store):
    shop = make_shop()
    with store.unit_of_work():
        store.credit_wallet(shop.id, "4500")

    requested = client.post("/api/payouts", json={"amount": "2000"}, headers={"X-Shop-Id": str(shop.id)})
    assert requested.status_code == 201
    payout_id = requested.get_json()["payout"]["id"]

    assert client.post(f"/api/admin/payouts/{payout_id}/approve").status_code == 403

    approved = client.post(f"/api/admin/payouts/{payout_id}/approve", headers={"X-Admin-Id": "admin-1"})
    assert approved.status_code == 200
    assert approved.get_json()["payout"]["status"] == "approved"
    assert store.get(PayoutRequest, payout_id).status == "approved"
    assert store.get_by(SellerWallet, shop_id=shop.id).balance == 2500


def test_bank_transfer_proof_flow(client, make_shop, make_order, store):
    order = make_order(make_shop(), total="5000")

    submitted = client.post("/api/payment-proofs", json={
        "payment_type": "order",
        "reference_id": order.id,
        "amount": "5000",
        "proof_image_url": "https://cdn.invalid/receipt.jpg",
    })
    assert submitted.status_code == 201
    proof_id = submitted.get_json()["proof"]["id"]

    reviewed = client.post(f"/api/admin/payment-proofs/{proof_id}/review", json={"action": "approve"},
                           headers={"X-Admin-Id": "admin-1"})
    assert reviewed.status_code == 200
    assert store.get(Order, order.id).payment_status == OrderPaymentStatus.PAID.value


def test_admin_shop_switch(client, make_shop, store):
    shop = make_shop(active=False, subscription_status=None)

    response = client.post(f"/api/admin/shops/{shop.id}/activate", json={}, headers={"X-Admin-Id": "admin-1"})
    assert response.status_code == 200
    assert response.get_json()["shop"]["is_active"] is True

    response = client.post(f"/api/admin/shops/{shop.id}/deactivate", headers={"X-Admin-Id": "admin-1"})
    assert response.get_json()["subscription"]["status"] == "inactive"
    assert store.get(Shop, shop.id).is_active is False


def test_health(client, gateway):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.get_json()
    assert body["checks"]["database"]["status"] == "ok"
    assert body["checks"]["gateway"]["provider"] == "flutterwave"
    assert response.headers["X-Request-ID"]


def test_unknown_route_returns_json(client):
    response = client.get("/no-such-page")

    assert response.status_code == 404
    assert response.get_json()["path"] == "/no-such-page"
