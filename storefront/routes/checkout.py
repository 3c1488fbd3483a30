from flask import Blueprint, current_app, jsonify, url_for

from storefront.billing.attempts import SessionContext
from storefront.billing.checkout import create_order, initialize_order_payment
from storefront.decorators import json_body
from storefront.gateways import get_gateway
from storefront.ledger.store import LedgerStore
from storefront.models import Order

bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@bp.route("/orders", methods=["POST"])
def create():
    """Create an unpaid order from the buyer's cart."""
    data = json_body("shop_id", "customer_name", "customer_phone", "items")
    order = create_order(
        LedgerStore(),
        int(data["shop_id"]),
        customer_name=data["customer_name"],
        customer_phone=data["customer_phone"],
        customer_email=data.get("customer_email"),
        notes=data.get("notes"),
        items=data["items"],
    )
    return jsonify({"message": "Order created", "order": order.to_dict(include_items=True)}), 201


@bp.route("/orders/<int:order_id>/pay", methods=["POST"])
def pay(order_id):
    """Start a gateway payment for an order and return the hosted payment link."""
    data = json_body()
    store = LedgerStore()
    gateway = get_gateway()

    payment, link = initialize_order_payment(
        store,
        gateway,
        order_id,
        callback_url=data.get("callback_url") or _callback_url(store, order_id),
        email=data.get("email"),
        fee_percent=current_app.config["PLATFORM_FEE_PERCENT"],
    )

    # A new checkout replaces any earlier success screen for this shop
    SessionContext.from_request().clear_success(payment.shop_id)

    return jsonify({
        "payment_link": link,
        "tx_ref": payment.reference,
        "amount": str(payment.amount),
    }), 200


def _callback_url(store, order_id):
    order = store.get_or_404(Order, order_id)
    return url_for("callbacks.order_callback", shop_id=order.shop_id, _external=True)
