"""Receipt notification: queued on ARQ so delivery never blocks or fails the payment response."""

import asyncio

from beanie import PydanticObjectId

from app.core.config import get_settings
from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.models.payment_order import PaymentOrder
from app.models.user import User
from app.services import ledger
from app.services.mailer import send_email
from app.services.receipts import PdfReceiptRenderer, ReceiptData, ReceiptRenderer

log = get_logger(__name__)

RECEIPT_SUBJECT = "Payment Receipt"
RECEIPT_BODY = "Thank you for purchasing our course! Your receipt is attached."


async def build_receipt_data(order: PaymentOrder) -> ReceiptData:
    payment = await ledger.find_payment_for(order)
    if payment is None:
        raise NotFoundError("Payment not found")
    user = await User.get(order.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return ReceiptData(
        receipt_id=order.receipt_id,
        order_id=order.provider_ref,
        payment_id=payment.payment_id,
        product_id=order.product_id,
        amount=order.amount,
        currency=order.currency,
        customer_name=user.name,
        customer_email=user.email,
        paid_at=payment.verified_at,
    )


async def send_receipt(order_id: str, renderer: ReceiptRenderer | None = None, sender=send_email) -> None:
    """Render and email the receipt for a verified order (runs inside the worker)."""
    order = await PaymentOrder.get(PydanticObjectId(order_id))
    if order is None:
        raise NotFoundError("Order not found")
    data = await build_receipt_data(order)
    artifact = (renderer or PdfReceiptRenderer()).render(data)
    await sender(data.customer_email, RECEIPT_SUBJECT, RECEIPT_BODY, [artifact])
    log.info("receipt_sent", order_id=order.provider_ref, user_id=str(order.user_id))


async def dispatch_receipt(order: PaymentOrder) -> None:
    """Enqueue send_payment_receipt. Logs and returns on any error."""
    from app.worker.tasks import enqueue_send_payment_receipt

    timeout = get_settings().notification_enqueue_timeout_seconds
    try:
        await asyncio.wait_for(enqueue_send_payment_receipt(str(order.id)), timeout=timeout)
        log.info("receipt_enqueued", order_id=order.provider_ref)
    except Exception:
        log.exception("receipt_enqueue_failed", order_id=order.provider_ref)
