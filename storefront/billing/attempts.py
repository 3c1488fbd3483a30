"""
Per-session bookkeeping around callback handling.

Two pieces of state, kept apart on purpose:

* the attempt record (``callback_attempts`` table), committed before the
  gateway is called so a second tab or a reload in the same session backs
  off instead of verifying again;
* the success markers, stored in the Flask session per shop, so the result
  page can be rendered again after a reload without running anything.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import MutableMapping, Optional

from sqlalchemy.exc import IntegrityError

from storefront.models import AttemptStatus, CallbackAttempt
from storefront.utils import utcnow

logger = logging.getLogger(__name__)

SUCCESS_MARKER = "payment_success:{shop_id}"
ORDER_NUMBER_MARKER = "payment_order_number:{shop_id}"
REDEMPTION_CODE_MARKER = "payment_redemption_code:{shop_id}"
SUBSCRIPTION_SUCCESS_MARKER = "subscription_success:{shop_id}"

DEFAULT_LEASE_SECONDS = 300


@dataclass
class SuccessMarker:
    order_number: Optional[str]
    redemption_code: Optional[str]


@dataclass
class SessionContext:
    """The browser session a callback arrived in."""

    session_key: str
    storage: MutableMapping
    shop_id: Optional[int] = None

    @classmethod
    def from_request(cls):
        from flask import g, session

        return cls(session_key=g.session_key, storage=session, shop_id=g.get("shop_id"))

    def mark_success(self, shop_id, order_number=None, redemption_code=None):
        self.storage[SUCCESS_MARKER.format(shop_id=shop_id)] = True
        if order_number:
            self.storage[ORDER_NUMBER_MARKER.format(shop_id=shop_id)] = order_number
        if redemption_code:
            self.storage[REDEMPTION_CODE_MARKER.format(shop_id=shop_id)] = redemption_code

    def success_marker(self, shop_id) -> Optional[SuccessMarker]:
        if not self.storage.get(SUCCESS_MARKER.format(shop_id=shop_id)):
            return None
        return SuccessMarker(
            order_number=self.storage.get(ORDER_NUMBER_MARKER.format(shop_id=shop_id)),
            redemption_code=self.storage.get(REDEMPTION_CODE_MARKER.format(shop_id=shop_id)),
        )

    def clear_success(self, shop_id):
        for template in (SUCCESS_MARKER, ORDER_NUMBER_MARKER, REDEMPTION_CODE_MARKER):
            self.storage.pop(template.format(shop_id=shop_id), None)

    # Plan payments keep their own flag; the order result screen never reads it
    def mark_subscription_success(self, shop_id):
        self.storage[SUBSCRIPTION_SUCCESS_MARKER.format(shop_id=shop_id)] = True

    def subscription_succeeded(self, shop_id) -> bool:
        return bool(self.storage.get(SUBSCRIPTION_SUCCESS_MARKER.format(shop_id=shop_id)))


class AttemptRegistry:
    """
    Claims on callback attempts, one per (session, flow, transaction).

    An ``in_progress`` claim is a lease: once it has gone ``lease_seconds``
    without being finished, the request that held it is presumed dead and
    the next callback in the session may take it over.
    """

    def __init__(self, store, lease_seconds=DEFAULT_LEASE_SECONDS):
        self.store = store
        self.lease_seconds = lease_seconds

    @classmethod
    def from_config(cls, store, config):
        return cls(store, lease_seconds=config.get("CALLBACK_ATTEMPT_LEASE_SECONDS", DEFAULT_LEASE_SECONDS))

    def claim(self, session_key, flow, transaction_id) -> bool:
        """
        Record that this session is handling ``transaction_id``.

        Committed immediately. Returns False when the session already holds
        a live attempt for it; a stale ``in_progress`` one is reclaimed.
        """
        attempt = CallbackAttempt(session_key=session_key, flow=flow, transaction_id=str(transaction_id))
        try:
            result = self.store.insert_unique(
                attempt,
                lookup={"session_key": session_key, "flow": flow, "transaction_id": str(transaction_id)},
            )
            self.store.session.commit()
        except IntegrityError:
            self.store.rollback()
            raise
        if not result.created:
            if self._reclaim_stale(result.row):
                return True
            logger.info(
                "Callback already attempted in this session",
                extra={"flow": flow, "transaction_id": str(transaction_id), "attempt_status": result.row.status},
            )
        return result.created

    def _reclaim_stale(self, attempt) -> bool:
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            return False
        attempt_id = attempt.id
        now = utcnow()
        changed = self.store.update_by_id(
            CallbackAttempt,
            attempt_id,
            {"updated_at": now},
            where=[
                CallbackAttempt.status == AttemptStatus.IN_PROGRESS.value,
                CallbackAttempt.updated_at < now - timedelta(seconds=self.lease_seconds),
            ],
        )
        self.store.session.commit()
        if changed:
            logger.warning("Stale callback attempt reclaimed", extra={"attempt_id": attempt_id})
        return changed == 1

    def prune(self, older_than: timedelta) -> int:
        """Delete attempts untouched for ``older_than``; returns how many went."""
        removed = self.store.delete_where(CallbackAttempt, CallbackAttempt.updated_at < utcnow() - older_than)
        self.store.session.commit()
        return removed

    def lookup(self, session_key, flow, transaction_id) -> Optional[CallbackAttempt]:
        return self.store.get_by(
            CallbackAttempt, session_key=session_key, flow=flow, transaction_id=str(transaction_id)
        )

    def finish(self, session_key, flow, transaction_id, succeeded: bool):
        attempt = self.lookup(session_key, flow, transaction_id)
        if attempt is None:
            return
        status = AttemptStatus.SUCCEEDED if succeeded else AttemptStatus.FAILED
        self.store.update_by_id(CallbackAttempt, attempt.id, {"status": status.value})
        self.store.session.commit()

    def release(self, session_key, flow, transaction_id):
        """Drop the attempt so the same session may try again."""
        attempt = self.lookup(session_key, flow, transaction_id)
        if attempt is None:
            return
        self.store.session.delete(attempt)
        self.store.session.commit()
        logger.info("Callback attempt released", extra={"flow": flow, "transaction_id": str(transaction_id)})
