from storefront.billing.state_machine import OrderPaymentStatus, OrderStatus
from storefront.extensions import db
from storefront.utils import utcnow


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), unique=True, nullable=False)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(120), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = db.Column(db.String(20), nullable=False, default=OrderPaymentStatus.UNPAID.value, index=True)
    payment_method = db.Column(db.String(30), nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    redemption_confirmed = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    shop = db.relationship("Shop")
    items = db.relationship("OrderItem", back_populates="order", order_by="OrderItem.id")
    redemption_code = db.relationship("RedemptionCode", back_populates="order", uselist=False)

    @property
    def is_paid(self):
        return self.payment_status == OrderPaymentStatus.PAID.value

    def to_dict(self, include_items=False):
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "shop_id": self.shop_id,
            "customer_name": self.customer_name,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "total": str(self.total),
            "redemption_confirmed": self.redemption_confirmed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Denormalised line snapshot taken at checkout; never updated."""

    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), nullable=True)
    product_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    order = db.relationship("Order", back_populates="items")

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="positive_quantity"),
    )

    def to_dict(self):
        return {
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "total_price": str(self.total_price),
        }
