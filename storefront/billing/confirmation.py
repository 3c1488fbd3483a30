"""
Redemption: the buyer (or shop staff, using the buyer's code) confirms the
order was received, and the seller's share is released to their wallet.

    paid, redemption_confirmed=false -> redemption_confirmed=true

The credit amount is ``Payment.seller_amount`` exactly as stored when the
payment was created. Confirming twice credits once.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select

from storefront.billing.redemption import normalize_code
from storefront.billing.state_machine import CodeStatus, OrderStatus, PaymentStatus, PaymentType
from storefront.errors import InvalidStateTransition, NotFound, PermissionDenied, ValidationError
from storefront.ledger.store import LedgerStore
from storefront.models import Order, Payment, RedemptionCode, Shop
from storefront.utils import to_money, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ConfirmationResult:
    order: Order
    already_confirmed: bool
    credited: Decimal = Decimal("0.00")

    def to_dict(self):
        return {
            "order": self.order.to_dict(),
            "already_confirmed": self.already_confirmed,
            "credited": str(self.credited),
            "message": "Order already confirmed" if self.already_confirmed else "Order confirmed",
        }


def find_code(store: LedgerStore, code) -> RedemptionCode:
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationError("A redemption code is required")
    row = store.get_by(RedemptionCode, code=normalized)
    if row is None:
        raise NotFound("Invalid redemption code")
    return row


def view_code(store: LedgerStore, code) -> dict:
    """Order summary for a redemption code, for the buyer or shop staff."""
    row = find_code(store, code)
    order = store.get_or_404(Order, row.order_id)
    shop = store.get(Shop, row.shop_id)
    return {
        "code": row.code,
        "status": row.status,
        "redeemed_at": row.redeemed_at.isoformat() if row.redeemed_at else None,
        "order": order.to_dict(include_items=True),
        "shop": {"id": shop.id, "name": shop.name} if shop else None,
    }


def _settled_payment(store: LedgerStore, order_id) -> Optional[Payment]:
    stmt = (
        select(Payment)
        .where(
            Payment.order_id == order_id,
            Payment.payment_type == PaymentType.ORDER.value,
            Payment.status == PaymentStatus.SUCCESS.value,
        )
        .order_by(Payment.settled_at, Payment.id)
        .limit(1)
    )
    return store.session.execute(stmt).scalar_one_or_none()


def _confirm(store: LedgerStore, order_id, actor) -> ConfirmationResult:
    now = utcnow()
    with store.unit_of_work():
        order = store.get_or_404(Order, order_id, for_update=True)
        if order.redemption_confirmed:
            return ConfirmationResult(order, already_confirmed=True)
        if not order.is_paid:
            raise InvalidStateTransition("Order has not been paid")

        code = store.get_by(RedemptionCode, order_id=order.id, for_update=True)
        if code is not None and not code.is_active:
            raise InvalidStateTransition("This redemption code has already been used")

        changed = store.update_by_id(
            Order,
            order.id,
            {"redemption_confirmed": True, "status": OrderStatus.COMPLETED.value},
            where=[Order.redemption_confirmed.is_(False)],
        )
        if changed == 0:
            return ConfirmationResult(store.get(Order, order_id), already_confirmed=True)

        if code is not None:
            store.update_by_id(
                RedemptionCode,
                code.id,
                {"status": CodeStatus.REDEEMED.value, "redeemed_at": now, "redeemed_by": actor},
                where=[RedemptionCode.status == CodeStatus.ACTIVE.value],
            )

        credited = Decimal("0.00")
        payment = _settled_payment(store, order_id)
        if payment is None:
            logger.warning("Confirmed order has no settled payment", extra={"order_id": order_id})
        elif store.update_by_id(
            Payment,
            payment.id,
            {"credited_to_seller": True, "credited_at": now},
            where=[Payment.credited_to_seller.is_(False)],
        ):
            credited = to_money(payment.seller_amount)
            store.credit_wallet(payment.shop_id, credited)

    logger.info(
        "Order redemption confirmed",
        extra={"order_id": order_id, "credited": str(credited), "actor": actor},
    )
    return ConfirmationResult(store.get(Order, order_id), already_confirmed=False, credited=credited)


def confirm_receipt(store: LedgerStore, *, order_id=None, code=None, actor="buyer") -> ConfirmationResult:
    """Buyer confirms by order id or by the code they were given."""
    if order_id is None and not code:
        raise ValidationError("Either order_id or code is required")
    if code:
        row = find_code(store, code)
        if order_id is not None and int(order_id) != row.order_id:
            raise ValidationError("Code does not belong to this order")
        order_id = row.order_id
    return _confirm(store, int(order_id), actor)


def confirm_delivery(store: LedgerStore, *, code, staff_id) -> ConfirmationResult:
    """Shop staff confirm hand-over using the buyer's code."""
    row = find_code(store, code)
    shop = store.get_or_404(Shop, row.shop_id)
    if staff_id is None or str(shop.owner_id) != str(staff_id):
        raise PermissionDenied("Only the shop owner can confirm delivery for this order")
    return _confirm(store, row.order_id, f"staff:{staff_id}")
