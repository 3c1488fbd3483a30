from flask import Blueprint, current_app, g, jsonify, request, url_for

from storefront.billing.attempts import SessionContext
from storefront.billing.callbacks import classify_callback
from storefront.billing.checkout import initialize_subscription_payment
from storefront.billing.outcomes import OutcomeState
from storefront.billing.subscription_activation import SubscriptionActivation
from storefront.decorators import json_body
from storefront.gateways import get_gateway
from storefront.ledger.store import LedgerStore

bp = Blueprint("subscriptions", __name__, url_prefix="/api/subscriptions")

STATUS_BY_OUTCOME = {
    OutcomeState.SUCCESS: 200,
    OutcomeState.IGNORED: 200,
    OutcomeState.CANCELLED: 200,
    OutcomeState.VERIFYING: 202,
    OutcomeState.DEFERRED: 202,
    OutcomeState.FAILED: 402,
}


@bp.route("/<int:shop_id>/subscribe", methods=["POST"])
def subscribe(shop_id):
    """Start a plan payment for a shop."""
    data = json_body("plan", "email")
    payment, link = initialize_subscription_payment(
        LedgerStore(),
        get_gateway(),
        shop_id,
        data["plan"],
        callback_url=data.get("callback_url") or url_for("subscriptions.callback", _external=True),
        email=data["email"],
        plans=current_app.config["SUBSCRIPTION_PLANS"],
    )
    return jsonify({
        "payment_link": link,
        "tx_ref": payment.reference,
        "plan": payment.plan,
        "amount": str(payment.amount),
    }), 200


@bp.route("/callback", methods=["GET"])
def callback():
    """
    Gateway redirect target for plan payments. The shop comes from the
    caller's context (``X-Shop-Id`` or the session), never from the URL.
    """
    descriptor = classify_callback(request.args)
    if not descriptor.is_callback:
        return jsonify({"state": None, "message": "Not a payment callback"}), 200

    machine = SubscriptionActivation.from_config(LedgerStore(), get_gateway(), current_app.config)
    outcome = machine.handle(descriptor, SessionContext.from_request(), g.get("shop_id"))
    return jsonify(outcome.to_dict()), STATUS_BY_OUTCOME[outcome.state]
