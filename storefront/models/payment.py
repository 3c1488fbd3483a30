from storefront.billing.state_machine import PaymentStatus, PaymentType
from storefront.extensions import db
from storefront.utils import utcnow


class Payment(db.Model):
    """
    One row per gateway transaction attempt.

    ``reference`` is the tx_ref we hand to the gateway at initialization.
    ``gateway_transaction_id`` is filled in at settlement and is the
    idempotency key: the unique constraint on it is what makes settlement
    of a given transaction happen at most once.
    """

    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(120), unique=True, nullable=False)
    gateway_transaction_id = db.Column(db.String(120), unique=True, nullable=True)
    provider = db.Column(db.String(30), nullable=False, default="flutterwave")

    payment_type = db.Column(db.String(20), nullable=False, default=PaymentType.ORDER.value)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey("subscriptions.id"), nullable=True)
    plan = db.Column(db.String(50), nullable=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    # Fixed when the row is created; confirmation credits exactly this
    platform_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    seller_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    failure_reason = db.Column(db.String(255), nullable=True)
    credited_to_seller = db.Column(db.Boolean, nullable=False, default=False)
    credited_at = db.Column(db.DateTime, nullable=True)
    settled_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    order = db.relationship("Order")

    @property
    def is_settled(self):
        return self.status == PaymentStatus.SUCCESS.value

    def to_dict(self):
        return {
            "id": self.id,
            "reference": self.reference,
            "gateway_transaction_id": self.gateway_transaction_id,
            "payment_type": self.payment_type,
            "order_id": self.order_id,
            "subscription_id": self.subscription_id,
            "amount": str(self.amount),
            "platform_fee": str(self.platform_fee),
            "seller_amount": str(self.seller_amount),
            "status": self.status,
            "credited_to_seller": self.credited_to_seller,
        }
