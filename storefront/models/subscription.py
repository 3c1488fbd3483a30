from storefront.billing.state_machine import SubscriptionStatus
from storefront.extensions import db
from storefront.utils import utcnow


class Subscription(db.Model):
    __tablename__ = "subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), unique=True, nullable=False)
    plan = db.Column(db.String(50), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=SubscriptionStatus.TRIAL.value, index=True)

    current_period_start = db.Column(db.DateTime, nullable=True)
    current_period_end = db.Column(db.DateTime, nullable=True)
    trial_ends_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    shop = db.relationship("Shop", back_populates="subscription")

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('trial', 'active', 'inactive', 'cancelled')",
            name="valid_subscription_status",
        ),
        db.CheckConstraint(
            "current_period_end IS NULL OR current_period_start IS NULL "
            "OR current_period_end > current_period_start",
            name="valid_period_range",
        ),
        db.Index("idx_period_end_status", "current_period_end", "status"),
    )

    @property
    def is_active(self):
        return self.status == SubscriptionStatus.ACTIVE.value

    def is_expired(self, now=None):
        if not self.current_period_end:
            return False
        return (now or utcnow()) >= self.current_period_end

    def to_dict(self):
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "plan": self.plan,
            "status": self.status,
            "current_period_start": self.current_period_start.isoformat() if self.current_period_start else None,
            "current_period_end": self.current_period_end.isoformat() if self.current_period_end else None,
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
        }
