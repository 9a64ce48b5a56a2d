from fastapi import Depends, Request

from .container import ApplicationContainer


def get_container(request: Request) -> ApplicationContainer:
    container = getattr(request.app.state, "container", None)
    if not container:
        raise RuntimeError("Application container not initialised.")
    return container


def get_settings(container: ApplicationContainer = Depends(get_container)):
    return container.settings


def get_persistence_gateway(container: ApplicationContainer = Depends(get_container)):
    return container.persistence


def get_user_service(container: ApplicationContainer = Depends(get_container)):
    return container.user_service


def get_checkout_issuer(container: ApplicationContainer = Depends(get_container)):
    return container.checkout_issuer


def get_webhook_processor(container: ApplicationContainer = Depends(get_container)):
    return container.webhook_processor


def get_entitlement_gate(container: ApplicationContainer = Depends(get_container)):
    return container.entitlement_gate


def get_post_service(container: ApplicationContainer = Depends(get_container)):
    return container.post_service
