from flask import Blueprint, current_app, g, jsonify

from storefront.billing.proofs import review_proof, submit_proof
from storefront.billing.redemption import RedemptionCodeIssuer
from storefront.billing.state_machine import PaymentType
from storefront.decorators import admin_required, json_body
from storefront.errors import ValidationError
from storefront.ledger.store import LedgerStore
from storefront.models import ProofTarget

bp = Blueprint("proofs", __name__)


@bp.route("/api/payment-proofs", methods=["POST"])
def submit():
    """Record a bank-transfer proof for admin review."""
    data = json_body("payment_type", "reference_id", "amount")
    try:
        target = ProofTarget(PaymentType(data["payment_type"]), int(data["reference_id"]))
    except (TypeError, ValueError):
        raise ValidationError("payment_type must be 'order' or 'subscription' with a numeric reference_id") from None

    proof = submit_proof(
        LedgerStore(),
        target,
        amount=data["amount"],
        proof_image_url=data.get("proof_image_url"),
        customer_name=data.get("customer_name"),
        customer_phone=data.get("customer_phone"),
    )
    return jsonify({"message": "Proof submitted", "proof": proof.to_dict()}), 201


@bp.route("/api/admin/payment-proofs/<int:proof_id>/review", methods=["POST"])
@admin_required
def review(proof_id):
    data = json_body("action")
    action = data["action"]
    if action not in ("approve", "reject"):
        raise ValidationError("action must be 'approve' or 'reject'")

    store = LedgerStore()
    config = current_app.config
    proof = review_proof(
        store,
        proof_id,
        approve=action == "approve",
        reviewer=g.admin_id,
        admin_notes=data.get("admin_notes"),
        issuer=RedemptionCodeIssuer.from_config(store, config),
        fee_percent=config["PLATFORM_FEE_PERCENT"],
        default_plan=config["DEFAULT_PLAN"],
    )
    return jsonify({"message": f"Proof {proof.status}", "proof": proof.to_dict()}), 200
