"""One-shot subscription reconciliation, meant to be run by cron or a job scheduler."""

import logging
import signal
import sys
import threading

from dotenv import load_dotenv

from postboard.core.config import Settings
from postboard.core.logging import configure_logging
from postboard.infrastructure.persistence.sqlite import SQLitePersistence
from postboard.infrastructure.stripe_gateway import StripeGateway
from postboard.services.reconciliation import ReconciliationSweep

logger = logging.getLogger("reconcile_subscriptions")


def main() -> int:
    load_dotenv()
    configure_logging()
    settings = Settings()

    if not settings.stripe_secret_key:
        logger.error("Set STRIPE_SECRET_KEY in the environment or a .env file.")
        return 1

    stop_event = threading.Event()

    def _request_stop(signum, _frame) -> None:
        logger.info("Received signal %s; stopping after the current user.", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    persistence = SQLitePersistence(settings.database_path)
    gateway = StripeGateway(
        settings.stripe_secret_key,
        timeout_seconds=settings.stripe_timeout_seconds,
        max_network_retries=settings.stripe_max_network_retries,
    )
    try:
        report = ReconciliationSweep(persistence, gateway).run(stop_event)
    except Exception:
        logger.exception("Failed to run subscription reconciliation")
        return 1
    finally:
        persistence.close()

    for failure in report.failures:
        logger.warning("User %s was not reconciled: %s", failure.user_id, failure.error)
    return 0


if __name__ == "__main__":
    sys.exit(main())
