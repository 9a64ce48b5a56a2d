import logging
import os


def configure_logging() -> None:
    """Configure logging defaults for the API process and batch scripts."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # The Stripe SDK logs every request at INFO.
    logging.getLogger("stripe").setLevel(os.getenv("STRIPE_LOG_LEVEL", "WARNING").upper())
