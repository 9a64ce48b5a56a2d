import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/app.db")).resolve()
        self.stripe_secret_key = os.getenv("STRIPE_SECRET_KEY") or None
        self.stripe_price_id = os.getenv("STRIPE_PRICE_ID") or None
        self.stripe_webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET") or None
        self.stripe_timeout_seconds = self._get_int("STRIPE_TIMEOUT_SECONDS", default=10)
        self.stripe_max_network_retries = self._get_int("STRIPE_MAX_NETWORK_RETRIES", default=2)
        self.frontend_base_url = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000").rstrip("/")
        self.reconciliation_interval_minutes = self._get_int(
            "RECONCILIATION_INTERVAL_MINUTES", default=60
        )
        self.jwt_secret = os.getenv("JWT_SECRET", "change-me")
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            self.cors_allow_origins = [item.strip() for item in origins.split(",") if item.strip()]
        else:
            self.cors_allow_origins = ["*"]

    @property
    def checkout_success_url(self) -> str:
        return f"{self.frontend_base_url}/subscription/success?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def checkout_cancel_url(self) -> str:
        return f"{self.frontend_base_url}/subscription/cancel"

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc
