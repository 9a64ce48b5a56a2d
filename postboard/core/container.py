from dataclasses import dataclass

from .config import Settings
from ..domain.ports.billing import BillingProvider
from ..domain.ports.persistence import PersistenceGateway
from ..services.checkout_service import CheckoutSessionIssuer
from ..services.entitlement_gate import EntitlementGate
from ..services.post_service import PostService
from ..services.reconciliation import ReconciliationSweep
from ..services.reconciliation_scheduler import ReconciliationScheduler
from ..services.user_service import UserService
from ..services.webhook_processor import WebhookProcessor


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    persistence: PersistenceGateway
    billing_provider: BillingProvider
    user_service: UserService
    checkout_issuer: CheckoutSessionIssuer
    webhook_processor: WebhookProcessor
    reconciliation_sweep: ReconciliationSweep
    reconciliation_scheduler: ReconciliationScheduler
    entitlement_gate: EntitlementGate
    post_service: PostService


def build_container(
    settings: Settings,
    persistence: PersistenceGateway,
    billing_provider: BillingProvider,
) -> ApplicationContainer:
    gate = EntitlementGate(persistence)
    sweep = ReconciliationSweep(persistence, billing_provider)
    return ApplicationContainer(
        settings=settings,
        persistence=persistence,
        billing_provider=billing_provider,
        user_service=UserService(
            persistence,
            jwt_secret=settings.jwt_secret,
            jwt_algorithm=settings.jwt_algorithm,
        ),
        checkout_issuer=CheckoutSessionIssuer(
            persistence,
            billing_provider,
            price_id=settings.stripe_price_id,
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
        ),
        webhook_processor=WebhookProcessor(persistence, settings.stripe_webhook_secret),
        reconciliation_sweep=sweep,
        reconciliation_scheduler=ReconciliationScheduler(
            sweep,
            interval_minutes=settings.reconciliation_interval_minutes,
        ),
        entitlement_gate=gate,
        post_service=PostService(persistence, gate),
    )
