from storefront.extensions import db
from storefront.utils import utcnow


class Shop(db.Model):
    __tablename__ = "shops"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    # Visibility flag; kept in step with Subscription.status by the activation unit
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    subscription = db.relationship("Subscription", back_populates="shop", uselist=False)
    wallet = db.relationship("SellerWallet", back_populates="shop", uselist=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Shop {self.id} active={self.is_active}>"
