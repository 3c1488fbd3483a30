"""
Callback activation: the common shape of the order and subscription flows.

    callback -> (cancelled | pending)                     no gateway call
    callback -> already settled in the ledger             prior result
    callback -> claim attempt -> verify -> settle         success
                                      \\-> error           failed

The attempt is committed before ``verify`` so a second tab or a reload in
the same session is ignored instead of verifying again. An unreachable
gateway releases the attempt; the user may retry. An attempt left
``in_progress`` past its lease by a dead request is taken over by the next
callback.
"""

import logging
from typing import Optional

import sentry_sdk

from storefront.billing.attempts import AttemptRegistry, SessionContext
from storefront.billing.callbacks import CallbackDescriptor, CallbackKind
from storefront.billing.outcomes import ActivationOutcome
from storefront.errors import (
    DomainError,
    DuplicateSettlement,
    GatewayUnreachable,
    GatewayVerificationFailed,
    PaymentError,
    ShopContextUnavailable,
)
from storefront.models import AttemptStatus, Payment

logger = logging.getLogger(__name__)


class UnexpectedActivationError(PaymentError):
    """Something went wrong while confirming your payment."""
    code = "activation_error"
    may_have_been_charged = True


class ActivationStateMachine:
    flow = None
    payment_type = None

    def __init__(self, store, gateway, *, support_contact, attempts: Optional[AttemptRegistry] = None):
        self.store = store
        self.gateway = gateway
        self.support_contact = support_contact
        self.attempts = attempts or AttemptRegistry(store)

    # Subclass hooks

    def _settle(self, verified, descriptor: CallbackDescriptor, shop_id):
        raise NotImplementedError

    def _settled_outcome(self, payment: Payment, ctx: Optional[SessionContext], shop_id) -> ActivationOutcome:
        raise NotImplementedError

    def _success_outcome(self, settlement, ctx: Optional[SessionContext], shop_id) -> ActivationOutcome:
        raise NotImplementedError

    def _resolve_shop(self, shop_id):
        return shop_id

    # Flow

    def handle(self, descriptor: CallbackDescriptor, ctx: Optional[SessionContext] = None, shop_id=None):
        """
        Drive one callback to an outcome. ``ctx`` is None for webhook and
        other session-less deliveries, which skip the attempt guard.
        """
        if not descriptor.is_callback:
            return None

        if descriptor.kind is CallbackKind.CANCELLED:
            return self._log(ActivationOutcome.cancelled(shop_id=shop_id, transaction_id=descriptor.key))
        if descriptor.kind is CallbackKind.PENDING:
            return self._log(ActivationOutcome.verifying(shop_id=shop_id, transaction_id=descriptor.key))

        try:
            shop_id = self._resolve_shop(shop_id)
        except ShopContextUnavailable:
            # Nothing is claimed until the shop is known
            return self._log(ActivationOutcome.deferred(transaction_id=descriptor.key))

        prior = self._find_settled(descriptor)
        if prior is not None:
            return self._log(self._settled_outcome(prior, ctx, shop_id))

        if ctx is not None and not self.attempts.claim(ctx.session_key, self.flow, descriptor.key):
            return self._log(self._rederive(descriptor, ctx, shop_id))

        try:
            verified = self.gateway.verify(descriptor.verify_key(self.gateway.verify_by))
            settlement = self._settle(verified, descriptor, shop_id)
        except DuplicateSettlement as dup:
            self._finish(ctx, descriptor, succeeded=True)
            return self._log(self._settled_outcome(dup.payment, ctx, shop_id))
        except GatewayUnreachable as e:
            if ctx is not None:
                self.attempts.release(ctx.session_key, self.flow, descriptor.key)
            return self._log(self._failed(e, descriptor.key, shop_id))
        except DomainError as e:
            self._record_failure(descriptor, shop_id, e)
            self._finish(ctx, descriptor, succeeded=False)
            return self._log(self._failed(e, descriptor.key, shop_id))
        except Exception as e:
            logger.exception("Unexpected error during activation", extra={"flow": self.flow, "transaction_id": descriptor.key})
            sentry_sdk.capture_exception(e)
            self.store.rollback()
            self._finish(ctx, descriptor, succeeded=False)
            return self._log(self._failed(UnexpectedActivationError(), descriptor.key, shop_id))

        self._finish(ctx, descriptor, succeeded=True)
        return self._log(self._success_outcome(settlement, ctx, shop_id))

    def _find_settled(self, descriptor: CallbackDescriptor) -> Optional[Payment]:
        candidates = []
        if descriptor.transaction_id:
            candidates.append(self.store.find_payment_by_transaction(descriptor.transaction_id))
        if descriptor.tx_ref:
            candidates.append(self.store.find_payment_by_reference(descriptor.tx_ref))
        for payment in candidates:
            if payment is not None and payment.is_settled and payment.payment_type == self.payment_type.value:
                return payment
        return None

    def _rederive(self, descriptor, ctx: SessionContext, shop_id) -> ActivationOutcome:
        """The session already handled this callback: answer from the ledger."""
        prior = self._find_settled(descriptor)
        if prior is not None:
            return self._settled_outcome(prior, ctx, shop_id)

        attempt = self.attempts.lookup(ctx.session_key, self.flow, descriptor.key)
        if attempt is not None and attempt.status == AttemptStatus.FAILED.value:
            return self._failed(
                GatewayVerificationFailed("This payment could not be verified."), descriptor.key, shop_id
            )
        return ActivationOutcome.ignored(
            "This payment is already being verified.",
            shop_id=shop_id,
            transaction_id=descriptor.key,
        )

    def _record_failure(self, descriptor, shop_id, error):
        self.store.rollback()
        payment = self.store.find_payment_by_reference(descriptor.tx_ref)
        if payment is None or payment.is_settled:
            return
        if shop_id is not None and payment.shop_id != int(shop_id):
            return
        self.store.mark_payment_failed(payment.id, error.message)
        self.store.session.commit()

    def _finish(self, ctx, descriptor, succeeded):
        if ctx is not None:
            self.attempts.finish(ctx.session_key, self.flow, descriptor.key, succeeded)

    def _failed(self, error, transaction_id, shop_id):
        return ActivationOutcome.failed(
            error,
            self.support_contact,
            shop_id=shop_id,
            transaction_id=transaction_id,
        )

    def _log(self, outcome: ActivationOutcome):
        logger.info(
            "Callback handled",
            extra={
                "flow": self.flow,
                "outcome": outcome.state.value,
                "shop_id": outcome.shop_id,
                "transaction_id": outcome.transaction_id,
                "error_code": outcome.error_code,
            },
        )
        return outcome
