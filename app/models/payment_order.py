from datetime import datetime
from typing import Literal

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field

OrderKind = Literal["order", "subscription"]
OrderState = Literal["created", "verified", "failed"]


class PaymentOrder(Document):
    """One payment attempt. amount/currency are fixed at creation; state only leaves "created" once."""
    kind: OrderKind = "order"
    provider_ref: Indexed(str, unique=True)  # Razorpay order_... or sub_... id
    receipt_id: str
    user_id: PydanticObjectId
    product_id: str
    amount: int  # minor units
    currency: str
    state: OrderState = "created"
    failure_reason: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    verified_at: datetime | None = None
    failed_at: datetime | None = None
    refunded_at: datetime | None = None

    @property
    def order_id(self) -> str | None:
        return self.provider_ref if self.kind == "order" else None

    @property
    def subscription_id(self) -> str | None:
        return self.provider_ref if self.kind == "subscription" else None

    class Settings:
        name = "payment_orders"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("state", 1)],
        ]
