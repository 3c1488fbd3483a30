"""
Checkout: creating orders and starting gateway payments.

The pending Payment row is written before the buyer is sent to the
gateway. Its platform fee and seller share are fixed here, once.
"""

import logging
import secrets
import time
from decimal import Decimal, InvalidOperation

from storefront.billing.shop_visibility import is_shop_open
from storefront.billing.state_machine import OrderPaymentStatus, PaymentStatus, PaymentType
from storefront.errors import InvalidStateTransition, PaymentError, ValidationError
from storefront.ledger.store import LedgerStore
from storefront.models import Order, OrderItem, Payment, Shop
from storefront.utils import split_fee, to_money

logger = logging.getLogger(__name__)

BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ORDER_NUMBER_ATTEMPTS = 5


def _base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def _millis():
    return int(time.time() * 1000)


def generate_order_number(millis=None) -> str:
    return f"ORD-{_base36(millis if millis is not None else _millis())}"


def order_reference(order_id, millis=None) -> str:
    return f"SHOPAF_{order_id}_{millis if millis is not None else _millis()}"


def subscription_reference(shop_id, millis=None) -> str:
    return f"SHOPAF_SUB_{shop_id}_{millis if millis is not None else _millis()}"


def _parse_items(items):
    if not items:
        raise ValidationError("An order needs at least one item")

    parsed = []
    for item in items:
        name = (item.get("product_name") or "").strip()
        try:
            quantity = int(item.get("quantity", 0))
            unit_price = to_money(str(item.get("unit_price")))
        except (TypeError, ValueError, InvalidOperation):
            raise ValidationError("Item quantity and unit_price must be numbers", payload={"item": name}) from None
        if not name:
            raise ValidationError("Every item needs a product_name")
        if quantity <= 0:
            raise ValidationError("Item quantity must be positive", payload={"item": name})
        if unit_price < 0:
            raise ValidationError("Item unit_price cannot be negative", payload={"item": name})
        parsed.append(
            OrderItem(
                product_id=item.get("product_id"),
                product_name=name,
                quantity=quantity,
                unit_price=unit_price,
                total_price=to_money(unit_price * quantity),
            )
        )
    return parsed


def create_order(store: LedgerStore, shop_id, *, customer_name, customer_phone, items,
                 customer_email=None, notes=None) -> Order:
    if not customer_name or not customer_phone:
        raise ValidationError("customer_name and customer_phone are required")

    shop = store.get_or_404(Shop, shop_id)
    if not is_shop_open(shop):
        raise InvalidStateTransition("This shop is not accepting orders")

    order_items = _parse_items(items)
    subtotal = sum((item.total_price for item in order_items), Decimal("0.00"))

    with store.unit_of_work():
        for attempt in range(ORDER_NUMBER_ATTEMPTS):
            number = generate_order_number()
            if attempt:
                number = f"{number}{secrets.choice(BASE36)}"
            result = store.insert_unique(
                Order(
                    order_number=number,
                    shop_id=shop.id,
                    customer_name=customer_name,
                    customer_phone=customer_phone,
                    customer_email=customer_email,
                    notes=notes,
                    subtotal=subtotal,
                    total=subtotal,
                ),
                lookup={"order_number": number},
            )
            if result.created:
                break
        else:
            raise ValidationError("Could not allocate an order number, please retry")

        order = result.row
        for item in order_items:
            item.order_id = order.id
            store.insert(item)

    logger.info("Order created", extra={"order_id": order.id, "shop_id": shop.id})
    return order


def _start_payment(store, gateway, payment: Payment, *, callback_url, email, metadata, title):
    with store.unit_of_work():
        store.insert(payment)

    try:
        initialized = gateway.initialize(
            amount=payment.amount,
            reference=payment.reference,
            callback_url=callback_url,
            email=email,
            metadata=metadata,
            title=title,
        )
    except PaymentError as e:
        store.mark_payment_failed(payment.id, e.message)
        store.session.commit()
        raise

    logger.info(
        "Payment initialized",
        extra={"payment_id": payment.id, "tx_ref": payment.reference, "shop_id": payment.shop_id},
    )
    return payment, initialized.payment_link


def initialize_order_payment(store: LedgerStore, gateway, order_id, *, callback_url, email, fee_percent):
    order = store.get_or_404(Order, order_id)
    if order.payment_status != OrderPaymentStatus.UNPAID.value:
        raise InvalidStateTransition("This order has already been paid")

    fee, seller_amount = split_fee(order.total, fee_percent)
    payment = Payment(
        reference=order_reference(order.id),
        provider=gateway.provider,
        payment_type=PaymentType.ORDER.value,
        shop_id=order.shop_id,
        order_id=order.id,
        amount=to_money(order.total),
        platform_fee=fee,
        seller_amount=seller_amount,
        status=PaymentStatus.PENDING.value,
    )
    metadata = {
        "payment_type": PaymentType.ORDER.value,
        "order_id": order.id,
        "shop_id": order.shop_id,
        "order_number": order.order_number,
        "platform_fee": str(fee),
        "seller_amount": str(seller_amount),
    }
    return _start_payment(
        store,
        gateway,
        payment,
        callback_url=callback_url,
        email=email or order.customer_email,
        metadata=metadata,
        title=f"Order {order.order_number}",
    )


def initialize_subscription_payment(store: LedgerStore, gateway, shop_id, plan, *, callback_url, email, plans):
    if plan not in plans:
        raise ValidationError(f"Unknown plan: {plan}", payload={"plans": sorted(plans)})
    if not email:
        raise ValidationError("An email address is required")

    shop = store.get_or_404(Shop, shop_id)
    amount = to_money(plans[plan])
    payment = Payment(
        reference=subscription_reference(shop.id),
        provider=gateway.provider,
        payment_type=PaymentType.SUBSCRIPTION.value,
        shop_id=shop.id,
        plan=plan,
        amount=amount,
        platform_fee=amount,
        seller_amount=Decimal("0.00"),
        status=PaymentStatus.PENDING.value,
    )
    metadata = {
        "payment_type": PaymentType.SUBSCRIPTION.value,
        "shop_id": shop.id,
        "plan": plan,
    }
    return _start_payment(
        store,
        gateway,
        payment,
        callback_url=callback_url,
        email=email,
        metadata=metadata,
        title=f"{plan.title()} plan",
    )
