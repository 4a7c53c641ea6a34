"""Verified event type and the closed set of categories we act on.

An Event is only ever built by the signature verifier. It is frozen, and
its payload is deep-frozen so handlers cannot mutate what they receive.
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Optional


class EventCategory(enum.Enum):
    """Stripe event types with a registered handler.

    Anything else maps to UNHANDLED: it is verified, deduped and marked
    processed like any other event, but nothing is dispatched.
    """

    DISPUTE_CLOSED = "charge.dispute.closed"
    DISPUTE_CREATED = "charge.dispute.created"
    SOURCE_EXPIRING = "customer.source.expiring"
    INVOICE_CREATED = "invoice.created"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    MANDATE_UPDATED = "mandate.updated"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    PAYMENT_INTENT_PROCESSING = "payment_intent.processing"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    UNHANDLED = "*"

    @classmethod
    def from_type(cls, event_type: str) -> "EventCategory":
        """Map a raw Stripe type string to a category (UNHANDLED if unknown)."""
        try:
            return cls(event_type)
        except ValueError:
            return cls.UNHANDLED


def freeze(value: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


@dataclass(frozen=True)
class Event:
    id: str
    category: str  # raw type string, e.g. "invoice.payment_failed"
    payload: Mapping[str, Any]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Event":
        return cls(
            id=payload["id"],
            category=payload["type"],
            payload=freeze(payload),
        )

    @property
    def kind(self) -> EventCategory:
        return EventCategory.from_type(self.category)

    @property
    def data_object(self) -> Mapping[str, Any]:
        """The `data.object` sub-document handlers work on (empty if absent)."""
        data = self.payload.get("data") or {}
        obj = data.get("object") if isinstance(data, Mapping) else None
        return obj if isinstance(obj, Mapping) else MappingProxyType({})

    @property
    def created(self) -> Optional[int]:
        return self.payload.get("created")

    @property
    def livemode(self) -> bool:
        return bool(self.payload.get("livemode", False))

    def __repr__(self):
        return f"<Event {self.id} ({self.category})>"
