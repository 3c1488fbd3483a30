from flask import Blueprint, current_app, jsonify, redirect, request, session, url_for

from storefront.billing.attempts import SessionContext
from storefront.billing.callbacks import classify_callback, strip_callback_params
from storefront.billing.order_activation import OrderActivation
from storefront.billing.outcomes import ActivationOutcome
from storefront.gateways import get_gateway
from storefront.ledger.store import LedgerStore

bp = Blueprint("callbacks", __name__)

# Last non-success outcome per shop, shown once on the result screen
OUTCOME_KEY = "payment_outcome:{shop_id}"


@bp.route("/shop/<int:shop_id>/payment/callback", methods=["GET"])
def order_callback(shop_id):
    """
    Gateway redirect target for order payments.

    Handles the callback, then redirects to the same path without the
    gateway's parameters so a refresh cannot trigger it again.
    """
    descriptor = classify_callback(request.args)
    if not descriptor.is_callback:
        return jsonify(_result(shop_id))

    ctx = SessionContext.from_request()
    machine = OrderActivation.from_config(LedgerStore(), get_gateway(), current_app.config)
    outcome = machine.handle(descriptor, ctx, shop_id)

    if outcome.succeeded:
        session.pop(OUTCOME_KEY.format(shop_id=shop_id), None)
    else:
        session[OUTCOME_KEY.format(shop_id=shop_id)] = outcome.to_dict()

    return redirect(url_for("callbacks.order_callback", shop_id=shop_id, **strip_callback_params(request.args)))


@bp.route("/shop/<int:shop_id>/payment/result", methods=["GET"])
def order_result(shop_id):
    return jsonify(_result(shop_id))


def _result(shop_id):
    ctx = SessionContext.from_request()
    marker = ctx.success_marker(shop_id)
    if marker is not None:
        return ActivationOutcome.success(
            shop_id=shop_id,
            order_number=marker.order_number,
            redemption_code=marker.redemption_code,
        ).to_dict()

    last = session.pop(OUTCOME_KEY.format(shop_id=shop_id), None)
    if last is not None:
        return last
    return {"state": None, "message": "No payment in progress", "shop_id": shop_id}
