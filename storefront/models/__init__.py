from storefront.models.callback_attempt import AttemptStatus, CallbackAttempt
from storefront.models.order import Order, OrderItem
from storefront.models.payment import Payment
from storefront.models.payment_proof import PaymentProof, ProofTarget
from storefront.models.redemption_code import RedemptionCode
from storefront.models.shop import Shop
from storefront.models.subscription import Subscription
from storefront.models.wallet import PayoutRequest, SellerWallet

__all__ = [
    "AttemptStatus",
    "CallbackAttempt",
    "Order",
    "OrderItem",
    "Payment",
    "PaymentProof",
    "PayoutRequest",
    "ProofTarget",
    "RedemptionCode",
    "SellerWallet",
    "Shop",
    "Subscription",
]
