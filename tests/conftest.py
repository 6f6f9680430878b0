import os
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("MONGODB_DB_NAME", "coursepay_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test_key_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "test_webhook_secret")
os.environ.setdefault("RAZORPAY_PLAN_ID", "plan_test")
os.environ.setdefault("PAYMENT_AMOUNT", "250000")
os.environ.setdefault("CURRENCY", "INR")
os.environ.setdefault("COURSE_PRODUCTS", "iyfa,ylp")


class FakeGateway:
    """Stands in for RazorpayGateway; records every call."""

    key_id = "rzp_test_key"

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.next_order_id: str | None = None
        self.next_subscription_id: str | None = None
        self.cancel_error: Exception | None = None
        self.subscriptions: dict[str, Any] = {"entity": "collection", "count": 0, "items": []}
        self._seq = 0

    async def create_order(self, amount: int, currency: str, receipt: str) -> dict:
        self._seq += 1
        order_id = self.next_order_id or f"order_test{self._seq}"
        self.next_order_id = None
        self.calls.append(("create_order", amount, currency, receipt))
        return {"id": order_id, "amount": amount, "currency": currency, "receipt": receipt, "status": "created"}

    async def create_subscription(self, plan_id: str, total_count: int) -> dict:
        self._seq += 1
        sub_id = self.next_subscription_id or f"sub_test{self._seq}"
        self.next_subscription_id = None
        self.calls.append(("create_subscription", plan_id, total_count))
        return {"id": sub_id, "plan_id": plan_id, "status": "created"}

    async def cancel_subscription(self, subscription_id: str) -> dict:
        self.calls.append(("cancel_subscription", subscription_id))
        if self.cancel_error:
            raise self.cancel_error
        return {"id": subscription_id, "status": "cancelled"}

    async def refund(self, payment_id: str, speed: str = "optimum") -> dict:
        self.calls.append(("refund", payment_id, speed))
        return {"id": "rfnd_test", "payment_id": payment_id}

    async def list_subscriptions(self, count: int, skip: int) -> dict:
        self.calls.append(("list_subscriptions", count, skip))
        return self.subscriptions

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]


@pytest_asyncio.fixture(autouse=True)
async def db():
    """Fresh in-memory Mongo per test."""
    from mongomock_motor import AsyncMongoMockClient

    from app.db.init import init_db
    client = AsyncMongoMockClient()
    database = client["coursepay_test"]
    await init_db(database)
    yield database


@pytest.fixture
def settings():
    from app.core.config import get_settings
    return get_settings()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notified() -> list:
    return []


@pytest.fixture
def workflow(gateway, settings, notified):
    from app.services.payments import PaymentWorkflow

    async def notifier(order):
        notified.append(order.provider_ref)

    return PaymentWorkflow(gateway, settings, notifier=notifier)


@pytest_asyncio.fixture
async def user():
    from app.models.user import User
    u = User(email="student@example.com", name="Student")
    await u.insert()
    return u


@pytest_asyncio.fixture
async def admin():
    from app.models.user import User
    u = User(email="admin@example.com", name="Admin", role="admin")
    await u.insert()
    return u


@pytest.fixture
def auth_headers():
    from app.core.security import create_access_token

    def _headers(user) -> dict[str, str]:
        token = create_access_token({"user_id": str(user.id), "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(workflow) -> AsyncGenerator[AsyncClient, None]:
    from app.deps import get_payment_workflow
    from app.main import app
    app.dependency_overrides[get_payment_workflow] = lambda: workflow
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
