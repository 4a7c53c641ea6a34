"""Business handlers, one per payload shape.

Each handler receives the event's `data.object` (read-only) and the raw
event type string, so one handler can serve several related types
(invoice.created vs invoice.payment_failed). The actual business actions
are not wired up yet; handlers only log what they received.
"""

import logging

logger = logging.getLogger(__name__)


def handle_dispute_event(dispute, event_type):
    """charge.dispute.created / charge.dispute.closed"""
    logger.info(
        f"Handling {event_type}: dispute={dispute.get('id')} "
        f"charge={dispute.get('charge')} status={dispute.get('status')}"
    )


def handle_source_expiring_event(card, event_type):
    """customer.source.expiring"""
    logger.info(
        f"Handling {event_type}: card={card.get('id')} "
        f"customer={card.get('customer')} "
        f"exp={card.get('exp_month')}/{card.get('exp_year')}"
    )


def handle_invoice_event(invoice, event_type):
    """invoice.created / invoice.payment_failed / invoice.payment_succeeded"""
    logger.info(
        f"Handling {event_type}: invoice={invoice.get('id')} "
        f"customer={invoice.get('customer')} "
        f"amount_due={invoice.get('amount_due')} amount_paid={invoice.get('amount_paid')}"
    )


def handle_mandate_event(mandate, event_type):
    """mandate.updated"""
    logger.info(
        f"Handling {event_type}: mandate={mandate.get('id')} status={mandate.get('status')}"
    )


def handle_payment_intent_event(payment_intent, event_type):
    """payment_intent.succeeded / .processing / .payment_failed"""
    logger.info(
        f"Handling {event_type}: payment_intent={payment_intent.get('id')} "
        f"status={payment_intent.get('status')} amount={payment_intent.get('amount')}"
    )
