from flask import Blueprint, jsonify

from storefront.billing.confirmation import confirm_delivery, confirm_receipt, view_code
from storefront.decorators import current_user_id, json_body
from storefront.errors import PermissionDenied
from storefront.ledger.store import LedgerStore

bp = Blueprint("redemption", __name__, url_prefix="/api/redemption")


@bp.route("/view", methods=["POST"])
def view():
    data = json_body("code")
    return jsonify(view_code(LedgerStore(), data["code"])), 200


@bp.route("/confirm-receipt", methods=["POST"])
def receipt():
    """Buyer confirms they received the order, by order id or code."""
    data = json_body()
    result = confirm_receipt(
        LedgerStore(),
        order_id=data.get("order_id"),
        code=data.get("code"),
        actor=current_user_id() or "buyer",
    )
    return jsonify(result.to_dict()), 200


@bp.route("/confirm-delivery", methods=["POST"])
def delivery():
    """Shop owner confirms hand-over with the buyer's code."""
    data = json_body("code")
    staff_id = current_user_id()
    if not staff_id:
        raise PermissionDenied("Sign in as the shop owner to confirm delivery")
    result = confirm_delivery(LedgerStore(), code=data["code"], staff_id=staff_id)
    return jsonify(result.to_dict()), 200
