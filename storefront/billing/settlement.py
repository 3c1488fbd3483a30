"""
Settlement: turning a verified transaction into ledger state.

Browser callbacks, webhooks and bank-transfer approval all end up here, so
an order or subscription is settled the same way whichever path gets there
first. Each function runs one unit of work. A repeat for a transaction that
is already settled raises ``DuplicateSettlement`` carrying the payment
that won, and writes nothing.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from storefront.billing.redemption import RedemptionCodeIssuer
from storefront.billing.shop_visibility import apply_subscription_state
from storefront.billing.state_machine import (
    OrderPaymentStatus,
    OrderStatus,
    PaymentType,
    ProofStatus,
    transition,
)
from storefront.errors import AmountMismatch, DuplicateSettlement, GatewayVerificationFailed
from storefront.gateways import VerifiedTransaction
from storefront.ledger.store import LedgerStore
from storefront.models import Order, Payment, PaymentProof, ProofTarget, RedemptionCode, Subscription
from storefront.utils import split_fee, to_money, utcnow

logger = logging.getLogger(__name__)


@dataclass
class OrderSettlement:
    payment: Payment
    order: Order
    code: RedemptionCode


@dataclass
class SubscriptionSettlement:
    payment: Payment
    subscription: Subscription


def _check_verified(verified: VerifiedTransaction, expected_reference: Optional[str]):
    if not verified.success:
        raise GatewayVerificationFailed(
            verified.message or f"The gateway reported this payment as {verified.status}.",
            payload={"gateway_status": verified.status},
        )
    if expected_reference and verified.reference != expected_reference:
        raise GatewayVerificationFailed(
            "The verified transaction does not belong to this payment.",
            payload={"expected_reference": expected_reference, "reference": verified.reference},
        )
    if not (verified.transaction_id or verified.reference):
        raise GatewayVerificationFailed("The gateway returned no transaction id.")


def _settlement_key(verified: VerifiedTransaction) -> str:
    return str(verified.transaction_id or verified.reference)


def _check_amount(verified: VerifiedTransaction, expected):
    expected = to_money(expected)
    actual = to_money(verified.amount)
    if actual != expected:
        raise AmountMismatch(
            f"The gateway confirmed {actual} but {expected} was expected.",
            payload={"expected": str(expected), "verified": str(actual)},
        )


def _raise_if_settled(store: LedgerStore, key):
    prior = store.find_payment_by_transaction(key)
    if prior is not None and prior.is_settled:
        raise DuplicateSettlement(prior)


def _claim(store: LedgerStore, payment: Payment, key):
    if payment.is_settled:
        raise DuplicateSettlement(payment)
    if not store.claim_payment(payment.id, key):
        winner = store.find_payment_by_transaction(key) or store.get(Payment, payment.id)
        raise DuplicateSettlement(winner)


def mark_order_paid(store: LedgerStore, issuer: RedemptionCodeIssuer, order: Order, payment_method) -> RedemptionCode:
    """Order to paid and its redemption code, inside the caller's transaction."""
    values = {
        "payment_status": transition(order.payment_status, OrderPaymentStatus.PAID),
        "payment_method": payment_method,
    }
    if order.status == OrderStatus.PENDING.value:
        values["status"] = OrderStatus.PROCESSING.value

    changed = store.update_by_id(
        Order,
        order.id,
        values,
        where=[Order.payment_status == OrderPaymentStatus.UNPAID.value],
    )
    if changed == 0:
        # Only reachable when a concurrent settlement flipped it first
        logger.warning("Order was marked paid by a concurrent settlement", extra={"order_id": order.id})

    return issuer.issue(order.id, order.shop_id)


def _resolve_order_payment(store: LedgerStore, verified: VerifiedTransaction, provider, fee_percent):
    payment = store.find_payment_by_reference(verified.reference, for_update=True)
    if payment is not None:
        return payment

    # Initialized outside this service; the gateway metadata names the order
    order_id = verified.metadata.get("order_id")
    if order_id is None:
        raise GatewayVerificationFailed(
            "No payment matches this transaction reference.",
            payload={"reference": verified.reference},
        )
    order = store.get_or_404(Order, int(order_id))
    fee, seller_amount = split_fee(order.total, fee_percent)
    result = store.insert_unique(
        Payment(
            reference=verified.reference or _settlement_key(verified),
            provider=provider,
            payment_type=PaymentType.ORDER.value,
            shop_id=order.shop_id,
            order_id=order.id,
            amount=to_money(order.total),
            platform_fee=fee,
            seller_amount=seller_amount,
        ),
        lookup={"reference": verified.reference or _settlement_key(verified)},
    )
    return result.row


def settle_order_payment(
    store: LedgerStore,
    issuer: RedemptionCodeIssuer,
    verified: VerifiedTransaction,
    *,
    provider: str,
    fee_percent,
    expected_reference: Optional[str] = None,
    shop_id=None,
) -> OrderSettlement:
    _check_verified(verified, expected_reference)
    key = _settlement_key(verified)
    _raise_if_settled(store, key)

    with store.unit_of_work():
        payment = _resolve_order_payment(store, verified, provider, fee_percent)
        if payment.payment_type != PaymentType.ORDER.value or payment.order_id is None:
            raise GatewayVerificationFailed("This transaction is not an order payment.")

        order = store.get_or_404(Order, payment.order_id, for_update=True)
        if shop_id is not None and order.shop_id != int(shop_id):
            raise GatewayVerificationFailed(
                "This payment belongs to a different shop.",
                payload={"shop_id": shop_id},
            )

        _check_amount(verified, order.total)
        _claim(store, payment, key)
        code = mark_order_paid(store, issuer, order, provider)

    logger.info(
        "Order payment settled",
        extra={"order_id": order.id, "transaction_id": key, "shop_id": order.shop_id},
    )
    return OrderSettlement(
        payment=store.get(Payment, payment.id),
        order=store.get(Order, order.id),
        code=code,
    )


def settle_subscription_payment(
    store: LedgerStore,
    verified: VerifiedTransaction,
    *,
    shop_id,
    plans,
    provider: str,
    expected_reference: Optional[str] = None,
    now=None,
) -> SubscriptionSettlement:
    _check_verified(verified, expected_reference)

    metadata_shop = verified.metadata.get("shop_id")
    if metadata_shop is not None and str(metadata_shop) != str(shop_id):
        raise GatewayVerificationFailed(
            "This payment was made for a different shop.",
            payload={"shop_id": shop_id, "paid_for": str(metadata_shop)},
        )

    key = _settlement_key(verified)
    _raise_if_settled(store, key)
    now = now or utcnow()

    with store.unit_of_work():
        payment = store.find_payment_by_reference(verified.reference, for_update=True)
        if payment is None:
            plan = verified.metadata.get("plan")
            if plan not in plans:
                raise GatewayVerificationFailed("No subscription payment matches this reference.")
            payment = store.insert_unique(
                Payment(
                    reference=verified.reference or key,
                    provider=provider,
                    payment_type=PaymentType.SUBSCRIPTION.value,
                    shop_id=int(shop_id),
                    plan=plan,
                    amount=to_money(plans[plan]),
                    platform_fee=to_money(plans[plan]),
                    seller_amount=to_money(0),
                ),
                lookup={"reference": verified.reference or key},
            ).row

        if payment.payment_type != PaymentType.SUBSCRIPTION.value:
            raise GatewayVerificationFailed("This transaction is not a subscription payment.")
        if payment.shop_id != int(shop_id):
            raise GatewayVerificationFailed("This payment belongs to a different shop.")

        _check_amount(verified, payment.amount)
        _claim(store, payment, key)

        subscription = apply_subscription_state(store, payment.shop_id, active=True, plan=payment.plan, now=now)
        store.update_by_id(Payment, payment.id, {"subscription_id": subscription.id})

        billing_record = PaymentProof(
            shop_id=payment.shop_id,
            amount=payment.amount,
            status=ProofStatus.APPROVED.value,
            gateway_reference=payment.reference,
            reviewed_by=f"gateway:{payment.provider}",
            reviewed_at=now,
        )
        billing_record.target = ProofTarget(PaymentType.SUBSCRIPTION, subscription.id)
        store.insert_unique(billing_record, lookup={"gateway_reference": payment.reference})

    logger.info(
        "Subscription payment settled",
        extra={"shop_id": payment.shop_id, "transaction_id": key, "plan": payment.plan},
    )
    return SubscriptionSettlement(
        payment=store.get(Payment, payment.id),
        subscription=store.get(Subscription, subscription.id),
    )


def settled_order_result(store: LedgerStore, payment: Payment) -> OrderSettlement:
    """Rebuild the settlement of an already-paid order from the ledger."""
    order = store.get_or_404(Order, payment.order_id)
    code = store.get_by(RedemptionCode, order_id=order.id)
    return OrderSettlement(payment=payment, order=order, code=code)
