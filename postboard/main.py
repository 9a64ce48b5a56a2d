"""Postboard ASGI application entrypoint (``uvicorn postboard.main:app``)."""

from .core.app_factory import create_application

app = create_application()

__all__ = ("app",)
