from dataclasses import dataclass

from storefront.billing.state_machine import PaymentType, ProofStatus
from storefront.extensions import db
from storefront.utils import utcnow


@dataclass(frozen=True)
class ProofTarget:
    """What a proof pays for: an Order or a Subscription, by id."""

    kind: PaymentType
    id: int


class PaymentProof(db.Model):
    """
    Manual bank-transfer evidence, reviewed by an admin.

    Also used as the billing-history row for subscriptions paid through the
    gateway; those are written already approved and carry the gateway
    reference.
    """

    __tablename__ = "payment_proofs"

    id = db.Column(db.Integer, primary_key=True)
    payment_type = db.Column(db.String(20), nullable=False)
    reference_id = db.Column(db.Integer, nullable=False)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    proof_image_url = db.Column(db.String(500), nullable=True)
    customer_name = db.Column(db.String(120), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    gateway_reference = db.Column(db.String(120), unique=True, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=ProofStatus.PENDING.value, index=True)
    admin_notes = db.Column(db.Text, nullable=True)
    reviewed_by = db.Column(db.String(64), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("payment_type IN ('order', 'subscription')", name="valid_proof_type"),
        db.Index("idx_proof_target", "payment_type", "reference_id"),
    )

    @property
    def target(self) -> ProofTarget:
        return ProofTarget(PaymentType(self.payment_type), self.reference_id)

    @target.setter
    def target(self, value: ProofTarget):
        self.payment_type = value.kind.value
        self.reference_id = value.id

    def to_dict(self):
        return {
            "id": self.id,
            "payment_type": self.payment_type,
            "reference_id": self.reference_id,
            "shop_id": self.shop_id,
            "amount": str(self.amount),
            "status": self.status,
            "gateway_reference": self.gateway_reference,
            "admin_notes": self.admin_notes,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
        }
