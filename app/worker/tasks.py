"""ARQ job definitions."""

import uuid
from typing import Any

from arq import create_pool
from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.logging import get_logger

log = get_logger(__name__)


async def _run_with_dlq(
    job_name: str,
    job_id: str | None,
    args: list[Any],
    kwargs: dict[str, Any],
    coro,
) -> None:
    """Run coroutine; on exception persist to FailedJob then re-raise."""
    try:
        await coro
    except Exception as e:
        from app.models.failed_job import FailedJob
        fid = job_id or str(uuid.uuid4())
        await FailedJob(
            job_name=job_name,
            job_id=fid,
            args=args,
            kwargs=kwargs,
            reason=str(e)[:2000],
            retries=0,
        ).insert()
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        raise


async def send_payment_receipt(ctx: dict[str, Any], order_id: str) -> None:
    """Render the PDF receipt for a verified order and email it to the buyer."""
    job_id = ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None

    async def _run() -> None:
        from app.services.notifications import send_receipt
        log.info("job_start", job="send_payment_receipt", order_id=order_id)
        await send_receipt(order_id)
        log.info("job_done", job="send_payment_receipt", order_id=order_id)

    await _run_with_dlq("send_payment_receipt", job_id, [order_id], {}, _run())


async def reconcile_payments(ctx: dict[str, Any]) -> None:
    """Cron job: verify orders whose payment record exists but whose transition was lost."""
    job_id = ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None
    await _run_with_dlq("reconcile_payments", job_id, [], {}, ctx["payment_workflow"].reconcile())


async def startup(ctx: dict) -> None:
    from app.db.init import init_db
    from app.services.gateway import RazorpayGateway
    from app.services.payments import PaymentWorkflow
    await init_db()
    settings = get_settings()
    ctx["payment_workflow"] = PaymentWorkflow(RazorpayGateway.from_settings(settings), settings)


async def shutdown(ctx: dict) -> None:
    pass


def get_redis_settings() -> RedisSettings:
    from urllib.parse import urlparse
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path.lstrip("/") else 0,
        conn_retries=0,
    )


async def enqueue_send_payment_receipt(order_id: str) -> None:
    """Enqueue send_payment_receipt (called from the payment workflow)."""
    redis = await create_pool(get_redis_settings())
    try:
        await redis.enqueue_job("send_payment_receipt", order_id, _job_id=f"receipt:{order_id}")
    finally:
        await redis.close()
