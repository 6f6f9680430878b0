"""Subscription cancellation and the refund window."""

from datetime import datetime, timedelta

import pytest

from app.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    ProviderError,
    RefundWindowExpiredError,
)
from app.core.security import sign
from app.models.payment import Payment
from app.models.user import User
from app.services import ledger
from app.services.payments import VerificationRequest


async def _active_subscription(workflow, gateway, user, paid_days_ago: int) -> Payment:
    gateway.next_subscription_id = "sub_xyz"
    await workflow.subscribe(user)
    await workflow.handle_callback(VerificationRequest(
        razorpay_subscription_id="sub_xyz",
        razorpay_payment_id="pay_1",
        razorpay_signature=sign("pay_1|sub_xyz", "test_key_secret"),
    ))
    payment = await Payment.find_one(Payment.payment_id == "pay_1")
    payment.verified_at = datetime.utcnow() - timedelta(days=paid_days_ago)
    await payment.save()
    return payment


async def test_cancel_inside_window_refunds_and_clears(workflow, gateway, user):
    await _active_subscription(workflow, gateway, user, paid_days_ago=13)

    out = await workflow.cancel(await User.get(user.id))

    assert out["refunded_payment_id"] == "pay_1"
    assert gateway.called("cancel_subscription") == [("cancel_subscription", "sub_xyz")]
    assert gateway.called("refund") == [("refund", "pay_1", "optimum")]
    fresh = await User.get(user.id)
    assert fresh.subscription.id is None
    assert fresh.subscription.status is None
    assert await Payment.find_all().count() == 0
    order = await ledger.find_by_subscription("sub_xyz")
    assert order.state == "verified"
    assert order.refunded_at is not None


async def test_cancel_after_window_keeps_payment(workflow, gateway, user):
    await _active_subscription(workflow, gateway, user, paid_days_ago=15)

    with pytest.raises(RefundWindowExpiredError):
        await workflow.cancel(await User.get(user.id))

    assert gateway.called("refund") == []
    fresh = await User.get(user.id)
    assert fresh.subscription.id == "sub_xyz"
    assert await Payment.find_one(Payment.payment_id == "pay_1") is not None
    assert (await ledger.find_by_subscription("sub_xyz")).refunded_at is None


async def test_provider_cancel_failure_is_surfaced(workflow, gateway, user):
    await _active_subscription(workflow, gateway, user, paid_days_ago=1)
    gateway.cancel_error = ProviderError("Subscription is not cancellable", provider_status=400)

    with pytest.raises(ProviderError) as exc:
        await workflow.cancel(await User.get(user.id))

    assert exc.value.message == "Subscription is not cancellable"
    assert exc.value.provider_status == 400
    fresh = await User.get(user.id)
    assert fresh.subscription.status == "active"
    assert gateway.called("refund") == []


async def test_cancel_without_subscription(workflow, gateway, user):
    with pytest.raises(NotFoundError):
        await workflow.cancel(user)
    assert gateway.calls == []


async def test_admin_cannot_cancel(workflow, admin):
    with pytest.raises(ForbiddenError):
        await workflow.cancel(admin)
