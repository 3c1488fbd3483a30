import logging

from storefront.billing.state_machine import PayoutStatus, transition
from storefront.errors import InsufficientBalance, InvalidStateTransition, ValidationError
from storefront.ledger.store import LedgerStore
from storefront.models import PayoutRequest, SellerWallet
from storefront.utils import to_money, utcnow

logger = logging.getLogger(__name__)


def request_payout(store: LedgerStore, shop_id, amount, *, min_payout) -> PayoutRequest:
    amount = to_money(amount)
    if amount < to_money(min_payout):
        raise ValidationError(f"Minimum payout is {to_money(min_payout)}")

    wallet = store.get_by(SellerWallet, shop_id=shop_id)
    if wallet is None or to_money(wallet.balance) < amount:
        raise InsufficientBalance(payload={"balance": str(to_money(wallet.balance if wallet else 0))})

    with store.unit_of_work():
        payout = store.insert(PayoutRequest(shop_id=shop_id, amount=amount, status=PayoutStatus.PENDING.value))

    logger.info("Payout requested", extra={"payout_id": payout.id, "shop_id": shop_id, "amount": str(amount)})
    return payout


def _close(store, payout_id, target: PayoutStatus, admin_notes):
    payout = store.get_or_404(PayoutRequest, payout_id, for_update=True)
    changed = store.update_by_id(
        PayoutRequest,
        payout.id,
        {
            "status": transition(payout.status, target),
            "admin_notes": admin_notes,
            "processed_at": utcnow(),
        },
        where=[PayoutRequest.status == PayoutStatus.PENDING.value],
    )
    if changed == 0:
        raise InvalidStateTransition("This payout has already been processed")
    return store.get(PayoutRequest, payout_id)


def approve_payout(store: LedgerStore, payout_id, admin_notes=None) -> PayoutRequest:
    """The only wallet debit. Rolls back entirely if the balance no longer covers it."""
    with store.unit_of_work():
        payout = _close(store, payout_id, PayoutStatus.APPROVED, admin_notes)
        if not store.debit_wallet(payout.shop_id, payout.amount):
            raise InsufficientBalance(payload={"payout_id": payout_id})

    logger.info("Payout approved", extra={"payout_id": payout_id, "amount": str(payout.amount)})
    return store.get(PayoutRequest, payout_id)


def reject_payout(store: LedgerStore, payout_id, admin_notes=None) -> PayoutRequest:
    with store.unit_of_work():
        _close(store, payout_id, PayoutStatus.REJECTED, admin_notes)

    logger.info("Payout rejected", extra={"payout_id": payout_id})
    return store.get(PayoutRequest, payout_id)
