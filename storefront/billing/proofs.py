"""
Manual bank-transfer proofs.

A proof targets either an Order or a Subscription. Approval settles the
target through the same units as a gateway payment; rejection is terminal
and touches nothing else.
"""

import logging

from storefront.billing.redemption import RedemptionCodeIssuer
from storefront.billing.settlement import mark_order_paid
from storefront.billing.shop_visibility import apply_subscription_state
from storefront.billing.state_machine import (
    OrderPaymentStatus,
    PaymentType,
    ProofStatus,
    transition,
)
from storefront.errors import InvalidStateTransition, ValidationError
from storefront.ledger.store import LedgerStore
from storefront.models import Order, Payment, PaymentProof, ProofTarget, Subscription
from storefront.utils import split_fee, to_money, utcnow

logger = logging.getLogger(__name__)

BANK_PROVIDER = "bank_transfer"


def bank_reference(proof_id) -> str:
    return f"BANK-{proof_id:08d}"


def _resolve_target(store: LedgerStore, target: ProofTarget):
    if target.kind is PaymentType.ORDER:
        order = store.get_or_404(Order, target.id)
        if order.is_paid:
            raise InvalidStateTransition("This order has already been paid")
        return order.shop_id, order.total
    if target.kind is PaymentType.SUBSCRIPTION:
        subscription = store.get_or_404(Subscription, target.id)
        return subscription.shop_id, None
    raise ValidationError(f"Unknown payment type: {target.kind}")


def submit_proof(store: LedgerStore, target: ProofTarget, *, amount, proof_image_url=None,
                 customer_name=None, customer_phone=None) -> PaymentProof:
    shop_id, expected = _resolve_target(store, target)
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("amount must be positive")
    if expected is not None and amount != to_money(expected):
        raise ValidationError(
            "The transferred amount does not match the order total",
            payload={"expected": str(to_money(expected))},
        )

    proof = PaymentProof(
        shop_id=shop_id,
        amount=amount,
        proof_image_url=proof_image_url,
        customer_name=customer_name,
        customer_phone=customer_phone,
        status=ProofStatus.PENDING.value,
    )
    proof.target = target

    with store.unit_of_work():
        store.insert(proof)

    logger.info(
        "Payment proof submitted",
        extra={"proof_id": proof.id, "payment_type": target.kind.value, "reference_id": target.id},
    )
    return proof


def _approve_order(store, issuer, proof: PaymentProof, fee_percent):
    order = store.get_or_404(Order, proof.reference_id, for_update=True)
    if order.payment_status != OrderPaymentStatus.UNPAID.value:
        raise InvalidStateTransition("This order has already been paid")

    reference = bank_reference(proof.id)
    fee, seller_amount = split_fee(order.total, fee_percent)
    payment = store.insert_unique(
        Payment(
            reference=reference,
            provider=BANK_PROVIDER,
            payment_type=PaymentType.ORDER.value,
            shop_id=order.shop_id,
            order_id=order.id,
            amount=to_money(order.total),
            platform_fee=fee,
            seller_amount=seller_amount,
        ),
        lookup={"reference": reference},
    ).row
    if not store.claim_payment(payment.id, reference):
        raise InvalidStateTransition("This proof has already been settled")

    mark_order_paid(store, issuer, order, BANK_PROVIDER)


def _approve_subscription(store, proof: PaymentProof, default_plan, now):
    subscription = store.get_or_404(Subscription, proof.reference_id)
    apply_subscription_state(
        store,
        subscription.shop_id,
        active=True,
        plan=subscription.plan or default_plan,
        now=now,
    )


def review_proof(store: LedgerStore, proof_id, *, approve: bool, reviewer, admin_notes=None,
                 issuer: RedemptionCodeIssuer, fee_percent, default_plan, now=None) -> PaymentProof:
    now = now or utcnow()
    target_status = ProofStatus.APPROVED if approve else ProofStatus.REJECTED

    with store.unit_of_work():
        proof = store.get_or_404(PaymentProof, proof_id, for_update=True)
        changed = store.update_by_id(
            PaymentProof,
            proof.id,
            {
                "status": transition(proof.status, target_status),
                "admin_notes": admin_notes,
                "reviewed_by": reviewer,
                "reviewed_at": now,
            },
            where=[PaymentProof.status == ProofStatus.PENDING.value],
        )
        if changed == 0:
            raise InvalidStateTransition("This proof has already been reviewed")

        if approve:
            proof = store.get(PaymentProof, proof_id)
            kind = proof.target.kind
            if kind is PaymentType.ORDER:
                _approve_order(store, issuer, proof, fee_percent)
            elif kind is PaymentType.SUBSCRIPTION:
                _approve_subscription(store, proof, default_plan, now)
            else:
                raise ValidationError(f"Unknown payment type: {kind}")

    logger.info(
        "Payment proof reviewed",
        extra={"proof_id": proof_id, "status": target_status.value, "reviewer": reviewer},
    )
    return store.get(PaymentProof, proof_id)
