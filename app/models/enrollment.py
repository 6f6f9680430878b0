from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, IndexModel


class Enrollment(Document):
    user_id: PydanticObjectId
    email: str
    product_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "enrollments"
        indexes = [
            IndexModel([("user_id", ASCENDING), ("product_id", ASCENDING)], unique=True),
            [("product_id", 1), ("created_at", -1)],
        ]
