from app.models.user import SubscriptionInfo, User
from app.models.payment_order import PaymentOrder
from app.models.payment import Payment
from app.models.enrollment import Enrollment
from app.models.audit_log import AuditLog
from app.models.failed_job import FailedJob

__all__ = [
    "User",
    "SubscriptionInfo",
    "PaymentOrder",
    "Payment",
    "Enrollment",
    "AuditLog",
    "FailedJob",
]
