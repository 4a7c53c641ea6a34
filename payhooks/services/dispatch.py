"""Event dispatch — category → handler.

The registry is built once at startup and frozen. Categories without a
handler (EventCategory.UNHANDLED, or a known category left unbound) are a
successful no-op: Stripe sends far more event types than we act on.
"""

import logging
from types import MappingProxyType

from payhooks.errors import HandlerError
from payhooks.events import EventCategory
from payhooks.services.handlers import (
    handle_dispute_event,
    handle_invoice_event,
    handle_mandate_event,
    handle_payment_intent_event,
    handle_source_expiring_event,
)

logger = logging.getLogger(__name__)


def build_handler_registry():
    """Return the read-only EventCategory → handler table."""
    registry = {
        EventCategory.DISPUTE_CLOSED: handle_dispute_event,
        EventCategory.DISPUTE_CREATED: handle_dispute_event,
        EventCategory.SOURCE_EXPIRING: handle_source_expiring_event,
        EventCategory.INVOICE_CREATED: handle_invoice_event,
        EventCategory.INVOICE_PAYMENT_FAILED: handle_invoice_event,
        EventCategory.INVOICE_PAYMENT_SUCCEEDED: handle_invoice_event,
        EventCategory.MANDATE_UPDATED: handle_mandate_event,
        EventCategory.PAYMENT_INTENT_FAILED: handle_payment_intent_event,
        EventCategory.PAYMENT_INTENT_PROCESSING: handle_payment_intent_event,
        EventCategory.PAYMENT_INTENT_SUCCEEDED: handle_payment_intent_event,
    }
    return MappingProxyType(registry)


class EventDispatcher:
    def __init__(self, registry=None):
        if registry is None:
            registry = build_handler_registry()
        elif not isinstance(registry, MappingProxyType):
            registry = MappingProxyType(dict(registry))
        self._registry = registry

    @property
    def registry(self):
        return self._registry

    def handler_for(self, event):
        return self._registry.get(event.kind)

    def dispatch(self, event):
        """Invoke the handler bound to event's category.

        Returns True if a handler ran, False for unhandled categories.
        Raises HandlerError if the handler raises.
        """
        handler = self.handler_for(event)
        if handler is None:
            logger.info(f"No handler for {event.category} ({event.id}), skipping dispatch")
            return False

        try:
            handler(event.data_object, event.category)
        except Exception as e:
            logger.error(f"Error handling {event.category} ({event.id}): {e}", exc_info=True)
            raise HandlerError(event.category, str(e)) from e
        return True
