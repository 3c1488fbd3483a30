from decimal import Decimal

import pytest

from storefront.billing.proofs import bank_reference, review_proof, submit_proof
from storefront.billing.redemption import RedemptionCodeIssuer
from storefront.billing.state_machine import (
    OrderPaymentStatus,
    PaymentStatus,
    PaymentType,
    ProofStatus,
    SubscriptionStatus,
)
from storefront.errors import InvalidStateTransition, ValidationError
from storefront.models import Order, ProofTarget, RedemptionCode, SellerWallet, Shop, Subscription


@pytest.fixture()
def review(store, fixed_codes):
    issuer = RedemptionCodeIssuer(store, generator=fixed_codes("BANK2222"))

    def _review(proof_id, approve=True, reviewer="admin-1", admin_notes=None):
        return review_proof(
            store,
            proof_id,
            approve=approve,
            reviewer=reviewer,
            admin_notes=admin_notes,
            issuer=issuer,
            fee_percent=Decimal("10"),
            default_plan="starter",
        )
    return _review


def test_order_proof_must_match_total(store, make_shop, make_order):
    order = make_order(make_shop(), total="5000")

    with pytest.raises(ValidationError):
        submit_proof(store, ProofTarget(PaymentType.ORDER, order.id), amount="4000")


def test_paid_order_rejects_new_proofs(store, make_shop, make_order, review):
    order = make_order(make_shop(), total="5000")
    proof = submit_proof(store, ProofTarget(PaymentType.ORDER, order.id), amount="5000")
    review(proof.id)

    with pytest.raises(InvalidStateTransition):
        submit_proof(store, ProofTarget(PaymentType.ORDER, order.id), amount="5000")


def test_approved_order_proof_settles_order(store, make_shop, make_order, review):
    order = make_order(make_shop(), total="5000")
    proof = submit_proof(
        store,
        ProofTarget(PaymentType.ORDER, order.id),
        amount="5000",
        proof_image_url="https://cdn.invalid/receipt.jpg",
        customer_name="Ada",
    )
    assert proof.status == ProofStatus.PENDING.value

    reviewed = review(proof.id, admin_notes="matches statement")

    assert reviewed.status == ProofStatus.APPROVED.value
    assert reviewed.reviewed_by == "admin-1"

    paid = store.get(Order, order.id)
    assert paid.payment_status == OrderPaymentStatus.PAID.value
    assert paid.payment_method == "bank_transfer"
    assert store.get_by(RedemptionCode, order_id=order.id).code == "BANK2222"

    payment = store.find_payment_by_reference(bank_reference(proof.id))
    assert payment.status == PaymentStatus.SUCCESS.value
    assert payment.seller_amount == Decimal("4500.00")
    # Released on confirmation, not on approval
    assert store.get_by(SellerWallet, shop_id=order.shop_id) is None


def test_rejected_proof_touches_nothing(store, make_shop, make_order, review):
    order = make_order(make_shop(), total="5000")
    proof = submit_proof(store, ProofTarget(PaymentType.ORDER, order.id), amount="5000")

    reviewed = review(proof.id, approve=False, admin_notes="blurry")

    assert reviewed.status == ProofStatus.REJECTED.value
    assert store.get(Order, order.id).payment_status == OrderPaymentStatus.UNPAID.value
    assert store.find_payment_by_reference(bank_reference(proof.id)) is None


def test_proof_is_reviewed_once(store, make_shop, make_order, review):
    order = make_order(make_shop(), total="5000")
    proof = submit_proof(store, ProofTarget(PaymentType.ORDER, order.id), amount="5000")
    review(proof.id, approve=False)

    with pytest.raises(InvalidStateTransition):
        review(proof.id, approve=True)

    assert store.get(Order, order.id).payment_status == OrderPaymentStatus.UNPAID.value


def test_subscription_proof_activates_shop(store, make_shop, review):
    shop = make_shop(active=False, subscription_status=SubscriptionStatus.TRIAL, plan="pro")
    subscription = store.get_by(Subscription, shop_id=shop.id)
    proof = submit_proof(store, ProofTarget(PaymentType.SUBSCRIPTION, subscription.id), amount="5000")

    review(proof.id)

    assert store.get_by(Subscription, shop_id=shop.id).status == SubscriptionStatus.ACTIVE.value
    assert store.get(Shop, shop.id).is_active is True


def test_bank_reference_format():
    assert bank_reference(42) == "BANK-00000042"
