from storefront.billing.state_machine import PayoutStatus
from storefront.extensions import db
from storefront.utils import utcnow


class SellerWallet(db.Model):
    __tablename__ = "seller_wallets"

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), unique=True, nullable=False)
    balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_earned = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_withdrawn = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    shop = db.relationship("Shop", back_populates="wallet")

    __table_args__ = (
        db.CheckConstraint("balance >= 0", name="non_negative_balance"),
    )

    def to_dict(self):
        return {
            "shop_id": self.shop_id,
            "balance": str(self.balance),
            "total_earned": str(self.total_earned),
            "total_withdrawn": str(self.total_withdrawn),
        }


class PayoutRequest(db.Model):
    __tablename__ = "payout_requests"

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=PayoutStatus.PENDING.value, index=True)
    admin_notes = db.Column(db.Text, nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "amount": str(self.amount),
            "status": self.status,
            "admin_notes": self.admin_notes,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
        }
