from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from storefront.errors import DomainError


class OutcomeState(str, Enum):
    VERIFYING = "verifying"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    DEFERRED = "deferred"
    IGNORED = "ignored"


VERIFYING_MESSAGE = "Verifying…"
SUCCESS_MESSAGE = "Payment Successful"
FAILED_MESSAGE = "Verification Failed"
CANCELLED_MESSAGE = "Payment was cancelled. You have not been charged."
DEFERRED_MESSAGE = "Waiting for your shop to load before activating."


@dataclass
class ActivationOutcome:
    """What the buyer or seller is shown once a callback has been handled."""

    state: OutcomeState
    message: str
    detail: Optional[str] = None
    order_number: Optional[str] = None
    redemption_code: Optional[str] = None
    shop_id: Optional[int] = None
    transaction_id: Optional[str] = None
    error_code: Optional[str] = None
    may_have_been_charged: bool = False
    already_settled: bool = False
    subscription: Optional[dict] = None

    @property
    def succeeded(self):
        return self.state is OutcomeState.SUCCESS

    @classmethod
    def verifying(cls, **kwargs):
        return cls(OutcomeState.VERIFYING, VERIFYING_MESSAGE, **kwargs)

    @classmethod
    def success(cls, **kwargs):
        return cls(OutcomeState.SUCCESS, SUCCESS_MESSAGE, **kwargs)

    @classmethod
    def cancelled(cls, **kwargs):
        return cls(OutcomeState.CANCELLED, CANCELLED_MESSAGE, **kwargs)

    @classmethod
    def deferred(cls, **kwargs):
        return cls(OutcomeState.DEFERRED, DEFERRED_MESSAGE, **kwargs)

    @classmethod
    def ignored(cls, message, **kwargs):
        return cls(OutcomeState.IGNORED, message, **kwargs)

    @classmethod
    def failed(cls, error: DomainError, support_contact: str, **kwargs):
        charged = getattr(error, "may_have_been_charged", False)
        if charged:
            hint = (
                f"{error.message} If you were charged, contact {support_contact} "
                "with your payment reference and we will resolve it."
            )
        else:
            hint = f"{error.message} You can try again or contact {support_contact}."
        return cls(
            OutcomeState.FAILED,
            FAILED_MESSAGE,
            detail=hint,
            error_code=error.code,
            may_have_been_charged=charged,
            **kwargs,
        )

    def to_dict(self):
        data = asdict(self)
        data["state"] = self.state.value
        return data
