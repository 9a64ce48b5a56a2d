"""Typed decoding of provider webhook events.

An event envelope is decoded first; its ``type`` tag then selects exactly
one payload model from :data:`EVENT_PAYLOADS`. Anything that fails to match
its expected shape is rejected with :class:`ValidationError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError


class EventType(str, Enum):
    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    PAYMENT_FAILED = "invoice.payment_failed"


def _object_id(value: Any) -> Any:
    # Expanded references arrive as objects instead of plain ids.
    if isinstance(value, dict):
        return value.get("id")
    return value


class CheckoutSessionPayload(BaseModel):
    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    mode: Optional[str] = None
    client_reference_id: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def _coerce_refs(cls, value: Any) -> Any:
        return _object_id(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_or_empty(cls, value: Any) -> Any:
        return value or {}

    def referenced_user_id(self) -> Optional[int]:
        """User id the checkout was issued for, if the session carries it."""
        raw = self.metadata.get("user_id") or self.client_reference_id
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            return None


class SubscriptionPayload(BaseModel):
    id: str
    customer: str
    status: str
    current_period_start: datetime
    current_period_end: datetime
    created: Optional[datetime] = None
    cancel_at_period_end: bool = False

    @field_validator("customer", mode="before")
    @classmethod
    def _coerce_customer(cls, value: Any) -> Any:
        return _object_id(value)

    @model_validator(mode="before")
    @classmethod
    def _period_from_items(cls, data: Any) -> Any:
        # Newer API versions report the billing period per subscription item.
        if not isinstance(data, dict):
            return data
        if data.get("current_period_start") is not None and data.get("current_period_end") is not None:
            return data
        items = data.get("items")
        if not isinstance(items, dict):
            return data
        item_list = items.get("data")
        if not isinstance(item_list, list) or not item_list or not isinstance(item_list[0], dict):
            return data
        first = item_list[0]
        merged = dict(data)
        for key in ("current_period_start", "current_period_end"):
            if merged.get(key) is None:
                merged[key] = first.get(key)
        return merged


class InvoicePayload(BaseModel):
    id: str
    customer: str
    subscription: Optional[str] = None

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def _coerce_refs(cls, value: Any) -> Any:
        return _object_id(value)


EventPayload = Union[CheckoutSessionPayload, SubscriptionPayload, InvoicePayload]

EVENT_PAYLOADS: Dict[EventType, Type[BaseModel]] = {
    EventType.CHECKOUT_COMPLETED: CheckoutSessionPayload,
    EventType.SUBSCRIPTION_CREATED: SubscriptionPayload,
    EventType.SUBSCRIPTION_UPDATED: SubscriptionPayload,
    EventType.SUBSCRIPTION_DELETED: SubscriptionPayload,
    EventType.PAYMENT_FAILED: InvoicePayload,
}


class _EventData(BaseModel):
    object: Dict[str, Any]


class EventEnvelope(BaseModel):
    id: str
    type: str
    data: _EventData


@dataclass(slots=True)
class WebhookEvent:
    """A decoded event. ``event_type`` and ``payload`` are ``None`` for unhandled types."""

    id: str
    raw_type: str
    event_type: Optional[EventType]
    payload: Optional[EventPayload]


def decode_event(raw: Union[bytes, str]) -> WebhookEvent:
    try:
        envelope = EventEnvelope.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Malformed event envelope",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc

    try:
        event_type = EventType(envelope.type)
    except ValueError:
        return WebhookEvent(id=envelope.id, raw_type=envelope.type, event_type=None, payload=None)

    model = EVENT_PAYLOADS[event_type]
    try:
        payload = model.model_validate(envelope.data.object)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Malformed {event_type.value} payload",
            details={"event_id": envelope.id, "errors": exc.errors(include_url=False, include_context=False)},
        ) from exc
    return WebhookEvent(id=envelope.id, raw_type=envelope.type, event_type=event_type, payload=payload)
