"""
Recognising gateway redirects.

``classify_callback`` looks only at query parameters. It never touches the
database or the network, so it can run on every page load.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

# Every parameter a gateway may append on its way back to us
CALLBACK_PARAMS = ("status", "transaction_id", "tx_ref", "reference", "trxref")

SUCCESS_STATUSES = {"successful", "completed", "success"}
CANCELLED_STATUSES = {"cancelled", "canceled", "failed", "abandoned"}
PENDING_STATUSES = {"pending"}


class CallbackKind(str, Enum):
    NOT_A_CALLBACK = "not_a_callback"
    PENDING = "pending"
    SUCCESS = "success"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CallbackDescriptor:
    kind: CallbackKind
    status: Optional[str] = None
    transaction_id: Optional[str] = None
    tx_ref: Optional[str] = None

    @property
    def is_callback(self):
        return self.kind is not CallbackKind.NOT_A_CALLBACK

    @property
    def key(self) -> Optional[str]:
        """The value the re-entry guard is keyed on."""
        return self.transaction_id or self.tx_ref

    def verify_key(self, verify_by: str) -> Optional[str]:
        if verify_by == "reference":
            return self.tx_ref
        return self.transaction_id


NOT_A_CALLBACK = CallbackDescriptor(CallbackKind.NOT_A_CALLBACK)


def classify_callback(params: Mapping[str, str]) -> CallbackDescriptor:
    """
    Turn redirect query parameters into a callback descriptor.

    Flutterwave sends ``status``, ``tx_ref`` and ``transaction_id``.
    Paystack sends ``reference`` and ``trxref`` with no status; a Paystack
    redirect only happens once the checkout has finished, so it is treated
    as a success candidate and left to ``verify`` to confirm.
    """
    status = (params.get("status") or "").strip().lower()
    transaction_id = (params.get("transaction_id") or "").strip() or None
    tx_ref = (params.get("tx_ref") or params.get("reference") or params.get("trxref") or "").strip() or None

    if not status:
        if params.get("trxref") and params.get("reference"):
            return CallbackDescriptor(CallbackKind.SUCCESS, None, transaction_id, tx_ref)
        return NOT_A_CALLBACK

    if status in SUCCESS_STATUSES:
        kind = CallbackKind.SUCCESS
    elif status in CANCELLED_STATUSES:
        kind = CallbackKind.CANCELLED
    elif status in PENDING_STATUSES:
        kind = CallbackKind.PENDING
    else:
        return NOT_A_CALLBACK

    if kind is CallbackKind.SUCCESS and not (transaction_id or tx_ref):
        # Nothing to verify against
        return NOT_A_CALLBACK

    return CallbackDescriptor(kind, status, transaction_id, tx_ref)


def strip_callback_params(params: Mapping[str, str]) -> dict:
    """Query parameters with the gateway's additions removed."""
    return {k: v for k, v in params.items() if k not in CALLBACK_PARAMS}
