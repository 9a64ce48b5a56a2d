"""Error taxonomy shared by the billing synchronisation services."""

from __future__ import annotations

from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base class for every failure the entitlement services report to callers.

    ``retryable`` tells transport layers whether repeating the same request
    can reasonably succeed later (provider retries for webhooks, caller
    retries for checkout).
    """

    status_code = 400
    code = "billing_error"
    retryable = False

    def __init__(
        self,
        message: str = "",
        *,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.message = message or self.code.replace("_", " ").capitalize()
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class AuthenticationError(BillingError):
    """Webhook signature did not verify; the payload is never processed."""

    status_code = 400
    code = "invalid_signature"


class ValidationError(BillingError):
    """Payload is permanently unprocessable."""

    status_code = 400
    code = "invalid_payload"


class NotFoundError(BillingError):
    status_code = 404
    code = "not_found"


class TransientProviderError(BillingError):
    """Network failure or error response from the billing provider."""

    status_code = 503
    code = "provider_unavailable"
    retryable = True


class ConfigurationError(BillingError):
    status_code = 500
    code = "billing_not_configured"


class AccountDisabledError(BillingError):
    status_code = 403
    code = "account_disabled"


class EntitlementDenied(BillingError):
    """Gate rejection. A normal business outcome rather than a fault."""

    status_code = 403
    code = "subscription_required"
