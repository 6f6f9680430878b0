"""Order ledger: payment attempts, their one-way state transitions and verified payment records."""

import time
from datetime import datetime

from beanie import UpdateResponse
from beanie.operators import Set
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ConflictError, ValidationError
from app.core.logging import get_logger
from app.models.payment import Payment
from app.models.payment_order import PaymentOrder
from app.models.user import User

log = get_logger(__name__)

RECEIPT_ID_MAX_LENGTH = 40  # Razorpay rejects longer receipts


def build_receipt_id(user_id: str, now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"order_{user_id}_{now_ms}"[:RECEIPT_ID_MAX_LENGTH]


def _require_pricing(amount: int | None, currency: str | None) -> None:
    if not amount or amount <= 0:
        raise ValidationError("Payment amount is not configured")
    if not currency:
        raise ValidationError("Payment currency is not configured")


async def create_order(gateway, user: User, product_id: str, amount: int | None, currency: str | None) -> PaymentOrder:
    """Mint a Razorpay order and persist it as "created"."""
    _require_pricing(amount, currency)
    receipt_id = build_receipt_id(str(user.id))
    order = await gateway.create_order(amount, currency, receipt_id)
    po = PaymentOrder(
        kind="order",
        provider_ref=order["id"],
        receipt_id=receipt_id,
        user_id=user.id,
        product_id=product_id,
        amount=amount,
        currency=currency,
    )
    await po.insert()
    log.info("order_created", order_id=po.provider_ref, user_id=str(user.id), product_id=product_id, amount=amount)
    return po


async def create_subscription_order(
    gateway,
    user: User,
    plan_id: str,
    product_id: str,
    amount: int | None,
    currency: str | None,
    total_count: int,
) -> tuple[PaymentOrder, dict]:
    """Recurring variant: returns (ledger record, provider subscription)."""
    _require_pricing(amount, currency)
    if not plan_id:
        raise ValidationError("Subscription plan is not configured")
    subscription = await gateway.create_subscription(plan_id, total_count)
    po = PaymentOrder(
        kind="subscription",
        provider_ref=subscription["id"],
        receipt_id=build_receipt_id(str(user.id)),
        user_id=user.id,
        product_id=product_id,
        amount=amount,
        currency=currency,
    )
    await po.insert()
    log.info("subscription_created", subscription_id=po.provider_ref, user_id=str(user.id))
    return po, subscription


async def find_by_order(order_id: str) -> PaymentOrder | None:
    return await PaymentOrder.find_one(PaymentOrder.provider_ref == order_id, PaymentOrder.kind == "order")


async def find_by_subscription(subscription_id: str) -> PaymentOrder | None:
    return await PaymentOrder.find_one(
        PaymentOrder.provider_ref == subscription_id,
        PaymentOrder.kind == "subscription",
    )


async def _transition(order: PaymentOrder, fields: dict) -> PaymentOrder | None:
    """Compare-and-set out of "created". Returns the updated order, or None if another writer got there first."""
    return await PaymentOrder.find_one(
        PaymentOrder.id == order.id,
        PaymentOrder.state == "created",
    ).update(Set(fields), response_type=UpdateResponse.NEW_DOCUMENT)


async def mark_verified(order: PaymentOrder) -> tuple[PaymentOrder, bool]:
    """Move created -> verified. Returns (order, transitioned); replays on a verified order are no-ops."""
    updated = await _transition(order, {PaymentOrder.state: "verified", PaymentOrder.verified_at: datetime.utcnow()})
    if updated is not None:
        return updated, True
    current = await PaymentOrder.get(order.id)
    if current is not None and current.state == "verified":
        return current, False
    raise ConflictError("Order is already closed", details={"order_id": order.provider_ref})


async def mark_failed(order: PaymentOrder, reason: str) -> PaymentOrder:
    """Move created -> failed. Terminal orders are returned unchanged."""
    updated = await _transition(
        order,
        {
            PaymentOrder.state: "failed",
            PaymentOrder.failure_reason: reason[:500],
            PaymentOrder.failed_at: datetime.utcnow(),
        },
    )
    if updated is None:
        return await PaymentOrder.get(order.id) or order
    log.info("order_failed", order_id=order.provider_ref, reason=reason)
    return updated


async def record_payment(order: PaymentOrder, payment_id: str, signature: str | None) -> Payment:
    """Insert the immutable payment record; the unique payment_id index makes replays return the first write."""
    existing = await Payment.find_one(Payment.payment_id == payment_id)
    if existing:
        return existing
    payment = Payment(
        payment_id=payment_id,
        order_id=order.order_id,
        subscription_id=order.subscription_id,
        signature=signature,
        user_id=order.user_id,
        amount=order.amount,
        currency=order.currency,
    )
    try:
        await payment.insert()
    except DuplicateKeyError:
        existing = await Payment.find_one(Payment.payment_id == payment_id)
        if existing is None:
            raise
        return existing
    return payment


async def find_payment_for(order: PaymentOrder) -> Payment | None:
    if order.kind == "subscription":
        return await Payment.find_one(Payment.subscription_id == order.provider_ref)
    return await Payment.find_one(Payment.order_id == order.provider_ref)
