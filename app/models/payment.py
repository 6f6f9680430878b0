from datetime import datetime

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field


class Payment(Document):
    """Verified payment. Written only after a signature check succeeded; never updated."""
    payment_id: Indexed(str, unique=True)
    order_id: str | None = None
    subscription_id: str | None = None
    signature: str | None = None  # None when attested by a signed webhook instead of a checkout callback
    user_id: PydanticObjectId
    amount: int
    currency: str
    verified_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "payments"
        indexes = [
            [("order_id", 1)],
            [("subscription_id", 1)],
        ]
