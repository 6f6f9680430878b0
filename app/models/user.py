from datetime import datetime
from typing import Literal

from beanie import Document, Indexed
from pydantic import BaseModel, Field

Role = Literal["user", "admin"]


class SubscriptionInfo(BaseModel):
    """Provider subscription reference; both fields None when the user has none."""
    id: str | None = None
    status: str | None = None  # created | active | cancelled | ... as reported by Razorpay

    def clear(self) -> None:
        self.id = None
        self.status = None


class User(Document):
    email: Indexed(str, unique=True)
    name: str = ""
    role: Role = "user"
    subscription: SubscriptionInfo = Field(default_factory=SubscriptionInfo)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def has_active_subscription(self) -> bool:
        return self.subscription.status == "active"

    class Settings:
        name = "users"
