from flask import Blueprint, current_app, g, jsonify

from storefront.billing.payouts import approve_payout, reject_payout, request_payout
from storefront.decorators import admin_required, json_body
from storefront.errors import ValidationError
from storefront.ledger.store import LedgerStore

bp = Blueprint("payouts", __name__)


@bp.route("/api/payouts", methods=["POST"])
def create():
    data = json_body("amount")
    shop_id = data.get("shop_id") or g.get("shop_id")
    if shop_id is None:
        raise ValidationError("shop_id is required")

    payout = request_payout(
        LedgerStore(),
        int(shop_id),
        data["amount"],
        min_payout=current_app.config["MIN_PAYOUT"],
    )
    return jsonify({"message": "Payout requested", "payout": payout.to_dict()}), 201


@bp.route("/api/admin/payouts/<int:payout_id>/approve", methods=["POST"])
@admin_required
def approve(payout_id):
    data = json_body()
    payout = approve_payout(LedgerStore(), payout_id, admin_notes=data.get("admin_notes"))
    return jsonify({"message": "Payout approved", "payout": payout.to_dict()}), 200


@bp.route("/api/admin/payouts/<int:payout_id>/reject", methods=["POST"])
@admin_required
def reject(payout_id):
    data = json_body()
    payout = reject_payout(LedgerStore(), payout_id, admin_notes=data.get("admin_notes"))
    return jsonify({"message": "Payout rejected", "payout": payout.to_dict()}), 200
