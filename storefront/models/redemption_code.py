from storefront.billing.state_machine import CodeStatus
from storefront.extensions import db
from storefront.utils import utcnow


class RedemptionCode(db.Model):
    __tablename__ = "redemption_codes"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), unique=True, nullable=False)
    # At most one code per order
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), unique=True, nullable=False)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=CodeStatus.ACTIVE.value)
    redeemed_by = db.Column(db.String(64), nullable=True)
    redeemed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    order = db.relationship("Order", back_populates="redemption_code")
    shop = db.relationship("Shop")

    @property
    def is_active(self):
        return self.status == CodeStatus.ACTIVE.value
