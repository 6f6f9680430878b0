"""Razorpay checkout workflow: order creation, callback verification, subscription cancel/refund."""

import calendar
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, model_validator

from app.core.audit import log_event
from app.core.config import Settings
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RefundWindowExpiredError,
    ValidationError,
    VerificationFailedError,
)
from app.core.logging import get_logger
from app.core.pagination import paginate
from app.core.security import (
    order_signature_material,
    subscription_signature_material,
    verify_razorpay_webhook,
    verify_signature,
)
from app.models.payment import Payment
from app.models.payment_order import PaymentOrder
from app.models.user import User
from app.services import enrollment as enrollment_service
from app.services import ledger
from app.services.notifications import dispatch_receipt

log = get_logger(__name__)

MONTH_NAMES = list(calendar.month_name)[1:]

Notifier = Callable[[PaymentOrder], Awaitable[None]]


class VerificationRequest(BaseModel):
    """Checkout handler payload. One-off orders send an order id, subscriptions a subscription id."""
    razorpay_order_id: str | None = None
    razorpay_subscription_id: str | None = None
    razorpay_payment_id: str
    razorpay_signature: str

    @model_validator(mode="after")
    def _one_reference(self) -> "VerificationRequest":
        if bool(self.razorpay_order_id) == bool(self.razorpay_subscription_id):
            raise ValueError("Provide exactly one of razorpay_order_id or razorpay_subscription_id")
        return self


def bucket_by_month(items: list[dict[str, Any]]) -> dict[str, int]:
    """Count subscriptions per calendar month of `start_at` (unix seconds, UTC)."""
    final_months = {name: 0 for name in MONTH_NAMES}
    for item in items:
        start_at = item.get("start_at")
        if not start_at:
            continue
        month = datetime.fromtimestamp(int(start_at), tz=timezone.utc).month
        final_months[MONTH_NAMES[month - 1]] += 1
    return final_months


class PaymentWorkflow:
    def __init__(self, gateway, settings: Settings, notifier: Notifier = dispatch_receipt) -> None:
        self.gateway = gateway
        self.settings = settings
        self.notifier = notifier

    async def initiate(self, user: User, product_id: str) -> dict:
        """Create a pending order for a course; the client completes checkout with the returned descriptor."""
        if user.is_admin:
            raise ForbiddenError("Admin cannot make a payment")
        if product_id not in self.settings.course_products:
            raise ValidationError(f"Unknown course: {product_id}")
        order = await ledger.create_order(
            self.gateway, user, product_id, self.settings.payment_amount, self.settings.currency
        )
        return {
            "order_id": order.provider_ref,
            "amount": order.amount,
            "currency": order.currency,
            "receipt": order.receipt_id,
            "key_id": self.gateway.key_id,
        }

    async def subscribe(self, user: User) -> dict:
        if user.is_admin:
            raise ForbiddenError("Admin cannot purchase a subscription")
        if user.has_active_subscription:
            raise ConflictError("Already subscribed", details={"subscription_id": user.subscription.id})
        order, subscription = await ledger.create_subscription_order(
            self.gateway,
            user,
            plan_id=self.settings.razorpay_plan_id,
            product_id=self.settings.subscription_product_id,
            amount=self.settings.payment_amount,
            currency=self.settings.currency,
            total_count=self.settings.subscription_total_count,
        )
        user.subscription.id = order.provider_ref
        user.subscription.status = subscription.get("status") or "created"
        user.updated_at = datetime.utcnow()
        await user.save()
        return {"subscription_id": user.subscription.id, "status": user.subscription.status}

    async def handle_callback(self, req: VerificationRequest) -> dict:
        """Verify a checkout callback and settle the order. Safe to replay."""
        if req.razorpay_order_id:
            order = await ledger.find_by_order(req.razorpay_order_id)
            material = order_signature_material(req.razorpay_order_id, req.razorpay_payment_id)
        else:
            order = await ledger.find_by_subscription(req.razorpay_subscription_id)
            material = subscription_signature_material(req.razorpay_payment_id, req.razorpay_subscription_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order.state == "failed":
            raise VerificationFailedError("Payment for this order has already failed")

        if not verify_signature(material, req.razorpay_signature, self.settings.razorpay_key_secret):
            log.warning("payment_signature_mismatch", order_id=order.provider_ref, payment_id=req.razorpay_payment_id)
            if order.state == "created":
                await ledger.mark_failed(order, "signature_mismatch")
                await log_event(
                    str(order.user_id), "payment_failed", "payment_order", order.provider_ref,
                    {"payment_id": req.razorpay_payment_id, "reason": "signature_mismatch"},
                )
            raise VerificationFailedError()

        return await self._settle(order, req.razorpay_payment_id, req.razorpay_signature)

    async def handle_webhook(self, payload: bytes, signature: str) -> dict:
        """Signed Razorpay webhook: payment.captured settles the order.

        payment.failed is only recorded. Razorpay lets the buyer retry on the
        same order, so a failed attempt leaves the order open.
        """
        if not self.settings.razorpay_webhook_secret:
            raise ValidationError("Webhook secret not configured")
        if not verify_razorpay_webhook(payload, signature, self.settings.razorpay_webhook_secret):
            raise VerificationFailedError("Invalid webhook signature")
        try:
            data = json.loads(payload.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise BadRequestError("Invalid webhook payload") from e
        if not isinstance(data, dict):
            raise BadRequestError("Invalid webhook payload")
        event = data.get("event")
        if event not in ("payment.captured", "payment.failed"):
            return {"status": "ignored"}
        entity: Any = data
        for key in ("payload", "payment", "entity"):
            entity = entity.get(key) or {}
            if not isinstance(entity, dict):
                raise BadRequestError("Invalid webhook payload")
        order_id = entity.get("order_id")
        payment_id = entity.get("id")
        order = await ledger.find_by_order(order_id) if order_id else None
        if order is None or not payment_id:
            log.info("webhook_order_unknown", webhook_event=event, order_id=order_id)
            return {"status": "ignored"}

        if event == "payment.failed":
            reason = entity.get("error_description") or "payment_failed"
            log.warning("payment_attempt_failed", order_id=order.provider_ref, payment_id=payment_id, reason=reason)
            await log_event(
                str(order.user_id), "payment_attempt_failed", "payment_order", order.provider_ref,
                {"payment_id": payment_id, "reason": reason},
            )
            return {"status": "ok"}
        if order.state == "failed":
            log.error("payment_captured_for_failed_order", order_id=order.provider_ref, payment_id=payment_id)
            return {"status": "ignored"}
        await self._settle(order, payment_id, signature=None)
        return {"status": "ok"}

    async def _settle(self, order: PaymentOrder, payment_id: str, signature: str | None) -> dict:
        # Payment first: a verified order must always have its payment record.
        payment = await ledger.record_payment(order, payment_id, signature)
        try:
            order, transitioned = await ledger.mark_verified(order)
        except ConflictError:
            log.error("payment_recorded_for_closed_order", order_id=order.provider_ref, payment_id=payment_id)
            raise
        await self._after_verified(order, payment, first=transitioned)
        if not transitioned:
            log.info("payment_callback_replayed", order_id=order.provider_ref, payment_id=payment_id)
        return {
            "order_id": order.provider_ref,
            "payment_id": payment.payment_id,
            "state": order.state,
            "message": "Payment verified successfully",
        }

    async def _after_verified(self, order: PaymentOrder, payment: Payment, first: bool) -> None:
        user = await User.get(order.user_id)
        if user is None:
            log.error("verified_order_without_user", order_id=order.provider_ref, user_id=str(order.user_id))
            return
        if order.kind == "subscription" and user.subscription.id == order.provider_ref and not user.has_active_subscription:
            user.subscription.status = "active"
            user.updated_at = datetime.utcnow()
            await user.save()
        await enrollment_service.enroll(user.id, user.email, order.product_id)
        if not first:
            return
        log.info("payment_verified", order_id=order.provider_ref, payment_id=payment.payment_id, user_id=str(user.id))
        try:
            await log_event(
                str(user.id), "payment_verified", "payment", payment.payment_id,
                {"order_id": order.provider_ref, "amount": order.amount, "currency": order.currency},
            )
        except Exception:
            log.exception("audit_write_failed", order_id=order.provider_ref, payment_id=payment.payment_id)
        try:
            await self.notifier(order)
        except Exception:
            log.exception("receipt_dispatch_failed", order_id=order.provider_ref)

    async def cancel(self, user: User) -> dict:
        """Cancel the user's subscription at Razorpay; refund in full inside the refund window."""
        if user.is_admin:
            raise ForbiddenError("Admin does not need to cancel subscription")
        subscription_id = user.subscription.id
        if not subscription_id:
            raise NotFoundError("No subscription found")

        result = await self.gateway.cancel_subscription(subscription_id)
        user.subscription.status = result.get("status") or "cancelled"
        user.updated_at = datetime.utcnow()
        await user.save()
        log.info("subscription_cancelled", subscription_id=subscription_id, user_id=str(user.id))

        order = await ledger.find_by_subscription(subscription_id)
        payment = await ledger.find_payment_for(order) if order else None
        if payment is None:
            raise NotFoundError("Payment not found")
        now = datetime.utcnow()
        if now - payment.verified_at >= timedelta(days=self.settings.refund_window_days):
            raise RefundWindowExpiredError()

        await self.gateway.refund(payment.payment_id, speed="optimum")
        user.subscription.clear()
        user.updated_at = now
        await user.save()
        await payment.delete()
        order.refunded_at = now
        await order.save()
        await log_event(
            str(user.id), "refund_issued", "payment", payment.payment_id,
            {"subscription_id": subscription_id, "amount": payment.amount},
        )
        return {"message": "Subscription canceled successfully", "refunded_payment_id": payment.payment_id}

    async def monthly_report(self, count: int | None = None, skip: int | None = None) -> dict:
        count, skip = paginate(count, skip)
        subscriptions = await self.gateway.list_subscriptions(count, skip)
        final_months = bucket_by_month(subscriptions.get("items", []))
        return {
            "subscriptions": subscriptions,
            "final_months": final_months,
            "monthly_sales_record": list(final_months.values()),
        }

    async def reconcile(self, lookback: timedelta = timedelta(days=1)) -> int:
        """Finish orders whose payment was recorded but whose verified transition was lost."""
        repaired = 0
        since = datetime.utcnow() - lookback
        async for payment in Payment.find(Payment.verified_at >= since):
            if payment.order_id:
                order = await ledger.find_by_order(payment.order_id)
            else:
                order = await ledger.find_by_subscription(payment.subscription_id)
            if order is None or order.state != "created":
                continue
            order, transitioned = await ledger.mark_verified(order)
            if transitioned:
                await self._after_verified(order, payment, first=True)
                repaired += 1
        if repaired:
            log.info("payments_reconciled", count=repaired)
        return repaired
