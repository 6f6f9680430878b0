from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel

from app.core.config import get_settings
from app.deps import get_current_user, get_payment_workflow, require_admin, require_subscriber
from app.models.user import User
from app.services.payments import PaymentWorkflow, VerificationRequest

router = APIRouter()


class CreateOrderRequest(BaseModel):
    product_id: str  # course; price comes from server config, never the client


@router.post("/order")
async def create_order(
    body: CreateOrderRequest,
    user: User = Depends(get_current_user),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
):
    """Create Razorpay order; frontend opens checkout with order_id and key_id."""
    order = await workflow.initiate(user, body.product_id)
    return {"success": True, **order}


@router.post("/subscribe")
async def subscribe(
    user: User = Depends(get_current_user),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
):
    out = await workflow.subscribe(user)
    return {"success": True, "message": "subscribed successfully", **out}


@router.post("/callback")
async def payment_callback(
    body: VerificationRequest,
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
):
    """Checkout success handler payload; authenticated by its Razorpay signature."""
    out = await workflow.handle_callback(body)
    return {"success": True, **out}


@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str = Header(..., alias="X-Razorpay-Signature"),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
):
    """Razorpay webhook: payment.captured / payment.failed (idempotent)."""
    body = await request.body()
    return await workflow.handle_webhook(body, x_razorpay_signature)


@router.post("/unsubscribe")
async def unsubscribe(
    user: User = Depends(require_subscriber),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
):
    """Cancel subscription; full refund within the refund window."""
    out = await workflow.cancel(user)
    return {"success": True, **out}


@router.get("/razorpay-key")
async def razorpay_key():
    return {"success": True, "message": "Razorpay API key", "key": get_settings().razorpay_key_id}


@router.get("")
async def all_payments(
    user: User = Depends(require_admin),
    workflow: PaymentWorkflow = Depends(get_payment_workflow),
    count: int | None = Query(None, ge=1, le=100),
    skip: int | None = Query(None, ge=0),
):
    """Admin: subscriptions from Razorpay with per-month counts."""
    report = await workflow.monthly_report(count, skip)
    return {"success": True, "message": "All payments", **report}
