"""Stripe webhook signature verification.

Pure function of its inputs plus the current time: checks the
`Stripe-Signature` header (t=<timestamp>,v1=<hmac>) against the shared
webhook secret, enforces the replay tolerance window, then decodes the
body into an immutable Event.
"""

import json
import logging

import stripe

from payhooks.errors import InvalidPayload, InvalidSignature, MissingSignature
from payhooks.events import Event

logger = logging.getLogger(__name__)

# Stripe's own default replay window.
DEFAULT_TOLERANCE_SECONDS = stripe.Webhook.DEFAULT_TOLERANCE


def check_tolerance(tolerance_seconds):
    """Raise ValueError unless tolerance_seconds is a positive number.

    Stripe skips the timestamp check entirely for a falsy tolerance, so 0
    or None would silently accept replays of any age.
    """
    if tolerance_seconds is None or tolerance_seconds <= 0:
        raise ValueError(
            f"webhook tolerance must be a positive number of seconds, got {tolerance_seconds!r}"
        )
    return tolerance_seconds


def verify(raw_body, signature_header, secret, tolerance_seconds=DEFAULT_TOLERANCE_SECONDS):
    """Verify a webhook delivery and construct the Event.

    raw_body must be the exact bytes (or text) received; any re-encoding
    breaks the signature.

    Raises MissingSignature, InvalidSignature or InvalidPayload, and
    ValueError for a non-positive tolerance.
    """
    check_tolerance(tolerance_seconds)
    if not signature_header:
        raise MissingSignature("signature header is empty")

    if isinstance(raw_body, (bytes, bytearray)):
        try:
            payload = bytes(raw_body).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidSignature(f"body is not valid UTF-8: {e}") from e
    else:
        payload = raw_body

    try:
        stripe.WebhookSignature.verify_header(
            payload, signature_header, secret, tolerance=tolerance_seconds
        )
    except stripe.SignatureVerificationError as e:
        raise InvalidSignature(str(e)) from e

    return parse_event(payload)


def parse_event(payload):
    """Decode an authenticated body into an Event.

    Raises InvalidPayload if it is not a JSON object with string id/type.
    """
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise InvalidPayload(f"body is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidPayload("event body is not a JSON object")

    event_id = data.get("id")
    event_type = data.get("type")
    if not isinstance(event_id, str) or not event_id:
        raise InvalidPayload("event has no id")
    if not isinstance(event_type, str) or not event_type:
        raise InvalidPayload(f"event {event_id} has no type")

    return Event.from_payload(data)
