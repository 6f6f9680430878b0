"""Razorpay gateway: one client per process, every call bounded by a timeout."""

import asyncio
from typing import Any, Callable

import razorpay
import requests
from razorpay.errors import BadRequestError as RazorpayBadRequest
from razorpay.errors import GatewayError as RazorpayGatewayError
from razorpay.errors import ServerError as RazorpayServerError

from app.core.config import Settings
from app.core.exceptions import ProviderError, ProviderTimeoutError, ValidationError
from app.core.logging import get_logger

log = get_logger(__name__)

# Razorpay SDK raises one class per error family; HTTP status is implied by the class.
_PROVIDER_STATUS = {
    RazorpayBadRequest: 400,
    RazorpayGatewayError: 502,
    RazorpayServerError: 500,
}


class RazorpayGateway:
    """Async facade over the synchronous razorpay SDK.

    Construct once at startup and inject it into PaymentWorkflow; tests pass a
    fake with the same coroutine methods.
    """

    def __init__(self, client: Any, key_id: str, timeout_seconds: float = 10.0) -> None:
        self._client = client
        self.key_id = key_id
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        client = razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))
        return cls(client, settings.razorpay_key_id, settings.razorpay_timeout_seconds)

    async def _call(self, op: str, fn: Callable[..., Any], *args: Any) -> Any:
        if not self.key_id:
            raise ValidationError("Payments not configured")
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, requests.exceptions.Timeout) as e:
            log.warning("razorpay_timeout", op=op, timeout_seconds=self.timeout_seconds)
            raise ProviderTimeoutError(f"Razorpay {op} timed out") from e
        except (RazorpayBadRequest, RazorpayGatewayError, RazorpayServerError) as e:
            status = _PROVIDER_STATUS.get(type(e), 502)
            message = str(e) or f"Razorpay {op} failed"
            log.warning("razorpay_error", op=op, provider_status=status, message=message)
            raise ProviderError(message, provider_status=status) from e
        except requests.exceptions.RequestException as e:
            log.warning("razorpay_unreachable", op=op, error=str(e))
            raise ProviderError(f"Razorpay {op} failed: {e}") from e

    async def create_order(self, amount: int, currency: str, receipt: str) -> dict:
        return await self._call(
            "order.create",
            self._client.order.create,
            {"amount": amount, "currency": currency, "receipt": receipt, "payment_capture": 1},
        )

    async def create_subscription(self, plan_id: str, total_count: int) -> dict:
        return await self._call(
            "subscription.create",
            self._client.subscription.create,
            {"plan_id": plan_id, "customer_notify": 1, "total_count": total_count},
        )

    async def cancel_subscription(self, subscription_id: str) -> dict:
        return await self._call("subscription.cancel", self._client.subscription.cancel, subscription_id)

    async def refund(self, payment_id: str, speed: str = "optimum") -> dict:
        return await self._call("payment.refund", self._client.payment.refund, payment_id, {"speed": speed})

    async def list_subscriptions(self, count: int, skip: int) -> dict:
        return await self._call("subscription.all", self._client.subscription.all, {"count": count, "skip": skip})
