"""Shared test fixtures for the webhook intake test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, no rate limit)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- sign / event_body: build real Stripe-style signed deliveries
"""

import hashlib
import hmac
import json
import time

import pytest

from payhooks import create_app
from payhooks.extensions import db as _db

WEBHOOK_SECRET = "whsec_test_fake"  # matches TestConfig.STRIPE_WEBHOOK_SECRET


def make_signature_header(payload, secret=WEBHOOK_SECRET, timestamp=None):
    """Stripe-Signature value: t=<ts>,v1=HMAC_SHA256(secret, "<ts>.<payload>")."""
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    if timestamp is None:
        timestamp = int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def make_event_body(event_id="evt_123", event_type="payment_intent.succeeded", obj=None):
    """Minimal Stripe event JSON, as raw bytes."""
    event = {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": 1700000000,
        "livemode": False,
        "data": {"object": obj if obj is not None else {"id": "pi_123", "status": "succeeded"}},
    }
    return json.dumps(event).encode("utf-8")


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def sign():
    return make_signature_header


@pytest.fixture
def event_body():
    return make_event_body


@pytest.fixture
def post_webhook(client):
    """POST a body to /stripe/webhooks, signing it unless told otherwise."""

    def _post(body, signature="sign"):
        headers = {}
        if signature == "sign":
            headers["Stripe-Signature"] = make_signature_header(body)
        elif signature:
            headers["Stripe-Signature"] = signature
        return client.post(
            "/stripe/webhooks",
            data=body,
            content_type="application/json",
            headers=headers,
        )

    return _post
