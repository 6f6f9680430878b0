"""Run ARQ worker. Usage: python -m app.worker.run_worker"""

from arq import run_worker
from arq.cron import cron

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.worker.tasks import get_redis_settings, reconcile_payments, send_payment_receipt, shutdown, startup


class WorkerSettings:
    redis_settings = get_redis_settings()
    functions = [send_payment_receipt]
    cron_jobs = [
        cron(reconcile_payments, minute=set(range(0, 60, 5)), second=0),
    ]
    on_startup = startup
    on_shutdown = shutdown
    max_tries = 3


def main() -> None:
    configure_logging(debug=get_settings().debug)
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
