from enum import Enum

from storefront.errors import InvalidStateTransition


class PaymentType(str, Enum):
    ORDER = "order"
    SUBSCRIPTION = "subscription"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderPaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class ProofStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CodeStatus(str, Enum):
    ACTIVE = "active"
    REDEEMED = "redeemed"


# Allowed moves per status family. Anything not listed is rejected.
TRANSITIONS = {
    PaymentStatus: {
        PaymentStatus.PENDING: {PaymentStatus.SUCCESS, PaymentStatus.FAILED},
        PaymentStatus.FAILED: {PaymentStatus.SUCCESS},
        PaymentStatus.SUCCESS: set(),
    },
    OrderPaymentStatus: {
        OrderPaymentStatus.UNPAID: {OrderPaymentStatus.PAID},
        OrderPaymentStatus.PAID: {OrderPaymentStatus.REFUNDED},
        OrderPaymentStatus.REFUNDED: set(),
    },
    SubscriptionStatus: {
        SubscriptionStatus.TRIAL: {SubscriptionStatus.ACTIVE, SubscriptionStatus.INACTIVE},
        SubscriptionStatus.ACTIVE: {SubscriptionStatus.ACTIVE, SubscriptionStatus.INACTIVE, SubscriptionStatus.CANCELLED},
        SubscriptionStatus.INACTIVE: {SubscriptionStatus.ACTIVE},
        SubscriptionStatus.CANCELLED: {SubscriptionStatus.ACTIVE},
    },
    ProofStatus: {
        ProofStatus.PENDING: {ProofStatus.APPROVED, ProofStatus.REJECTED},
        ProofStatus.APPROVED: set(),
        ProofStatus.REJECTED: set(),
    },
    PayoutStatus: {
        PayoutStatus.PENDING: {PayoutStatus.APPROVED, PayoutStatus.REJECTED},
        PayoutStatus.APPROVED: set(),
        PayoutStatus.REJECTED: set(),
    },
    CodeStatus: {
        CodeStatus.ACTIVE: {CodeStatus.REDEEMED},
        CodeStatus.REDEEMED: set(),
    },
}


def can_transition(current, target) -> bool:
    family = type(target)
    current = family(current)
    return target in TRANSITIONS[family].get(current, set())


def transition(current, target):
    """
    Validate a status change and return the new value to store.

    ``current`` may be the raw string read from the database.
    """
    if not can_transition(current, target):
        raise InvalidStateTransition(
            f"Cannot move {type(target).__name__} from {current!s} to {target.value}"
        )
    return target.value
