import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from app.core.config import get_settings
from app.models.audit_log import AuditLog
from app.models.enrollment import Enrollment
from app.models.failed_job import FailedJob
from app.models.payment import Payment
from app.models.payment_order import PaymentOrder
from app.models.user import User

DOCUMENT_MODELS = [
    User,
    PaymentOrder,
    Payment,
    Enrollment,
    AuditLog,
    FailedJob,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db(database=None) -> None:
    """Register document models. Pass `database` to bind to an existing (e.g. in-memory) database."""
    if database is None:
        settings = get_settings()
        kwargs = {}
        if _use_tls(settings.mongodb_uri):
            kwargs["tlsCAFile"] = certifi.where()
            kwargs["tlsDisableOCSPEndpointCheck"] = True
        client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
        database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
