"""Course enrollment after a verified payment. Bookkeeping failures never fail the payment."""

from beanie import PydanticObjectId
from pymongo.errors import DuplicateKeyError

from app.core.logging import get_logger
from app.models.enrollment import Enrollment

log = get_logger(__name__)


async def is_enrolled(user_id: PydanticObjectId, product_id: str) -> bool:
    existing = await Enrollment.find_one(Enrollment.user_id == user_id, Enrollment.product_id == product_id)
    return existing is not None


async def enroll(user_id: PydanticObjectId, email: str, product_id: str) -> Enrollment | None:
    """Idempotent insert; the unique (user_id, product_id) index backs the check-then-create race."""
    try:
        existing = await Enrollment.find_one(Enrollment.user_id == user_id, Enrollment.product_id == product_id)
        if existing:
            return existing
        enrollment = Enrollment(user_id=user_id, email=email, product_id=product_id)
        try:
            await enrollment.insert()
        except DuplicateKeyError:
            return await Enrollment.find_one(Enrollment.user_id == user_id, Enrollment.product_id == product_id)
        log.info("user_enrolled", user_id=str(user_id), product_id=product_id)
        return enrollment
    except Exception:
        log.exception("enrollment_failed", user_id=str(user_id), product_id=product_id)
        return None
