class DomainError(Exception):
    """Base class for business-rule failures raised by the storefront core."""

    status_code = 400
    code = "domain_error"

    def __init__(self, message=None, payload=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        self.payload = payload or {}


class ValidationError(DomainError):
    """The request is missing data or carries invalid values."""
    code = "validation_error"


class PermissionDenied(DomainError):
    """You are not allowed to perform this action."""
    status_code = 403
    code = "permission_denied"


class NotFound(DomainError):
    """The requested record does not exist."""
    status_code = 404
    code = "not_found"


class InvalidStateTransition(DomainError):
    """The record is not in a state that allows this change."""
    status_code = 409
    code = "invalid_state_transition"


class InsufficientBalance(DomainError):
    """The wallet balance does not cover this amount."""
    status_code = 409
    code = "insufficient_balance"


# Payment error kinds


class PaymentError(DomainError):
    """Payment processing failed."""
    code = "payment_error"
    # True when money may already have moved gateway-side
    may_have_been_charged = False


class GatewayUnreachable(PaymentError):
    """The payment gateway could not be reached. Please try again."""
    status_code = 503
    code = "gateway_unreachable"
    may_have_been_charged = True


class GatewayVerificationFailed(PaymentError):
    """The payment gateway did not confirm this transaction."""
    status_code = 402
    code = "gateway_verification_failed"


class AmountMismatch(GatewayVerificationFailed):
    """The verified amount does not match the expected total."""
    code = "amount_mismatch"
    may_have_been_charged = True


class DuplicateSettlement(PaymentError):
    """This transaction was already settled."""
    status_code = 200
    code = "duplicate_settlement"

    def __init__(self, payment, message=None):
        super().__init__(message)
        self.payment = payment


class CodeGenerationExhausted(PaymentError):
    """Could not generate a unique redemption code. Please contact support."""
    status_code = 500
    code = "code_generation_exhausted"
    may_have_been_charged = True


class ShopContextUnavailable(PaymentError):
    """The shop for this activation is not known yet."""
    status_code = 202
    code = "shop_context_unavailable"
