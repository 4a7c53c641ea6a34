"""Tests for the webhooks blueprint — end-to-end through HTTP.

Covers:
- Missing / invalid signature (400, store untouched)
- Duplicate events skipped
- New events processed and recorded exactly once
- Store failures surfaced as retryable errors
- Unknown event types (accepted, recorded, not dispatched)
"""

import json
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from payhooks.errors import StoreUnavailable
from payhooks.extensions import db
from payhooks.models.processed_event import ProcessedEvent
from payhooks.services.idempotency import SQLAlchemyIdempotencyStore


def _pipeline(app):
    return app.extensions["intake_pipeline"]


class TestWebhookSignature:
    """Tests for webhook signature validation."""

    def test_missing_signature_returns_400(self, app, post_webhook, event_body):
        """No Stripe-Signature header -> 400, store never consulted."""
        with patch.object(SQLAlchemyIdempotencyStore, "exists") as mock_exists, \
                patch.object(SQLAlchemyIdempotencyStore, "mark_processed") as mock_mark:
            resp = post_webhook(event_body(), signature=None)

        assert resp.status_code == 400
        assert json.loads(resp.data) == {"error": "No signature provided"}
        mock_exists.assert_not_called()
        mock_mark.assert_not_called()

    def test_invalid_signature_returns_400(self, post_webhook, event_body):
        """Bad signature -> 400 with a Webhook Error message."""
        resp = post_webhook(event_body(), signature="invalid_signature")

        assert resp.status_code == 400
        assert json.loads(resp.data)["error"] == "Webhook Error: Invalid signature"
        assert ProcessedEvent.query.count() == 0

    def test_tampered_body_returns_400(self, post_webhook, event_body, sign):
        header = sign(event_body("evt_123"))
        resp = post_webhook(event_body("evt_124"), signature=header)

        assert resp.status_code == 400
        assert "Webhook Error" in json.loads(resp.data)["error"]


class TestWebhookIdempotency:
    """Tests for duplicate event handling."""

    def test_duplicate_event_is_skipped(self, app, post_webhook, event_body):
        """Existing tombstone for evt_123 -> 200 skipped, no dispatch, no write."""
        _pipeline(app).store.mark_processed("evt_123", 1_900_000_000, 86400)
        dispatcher = _pipeline(app).dispatcher

        with patch.object(dispatcher, "dispatch") as mock_dispatch:
            resp = post_webhook(event_body("evt_123"))

        assert resp.status_code == 200
        assert json.loads(resp.data) == {"status": "skipped", "message": "Duplicate event"}
        mock_dispatch.assert_not_called()

    def test_second_delivery_is_duplicate(self, app, post_webhook, event_body):
        """Same id twice -> success then skipped; dispatcher runs once."""
        dispatcher = _pipeline(app).dispatcher

        with patch.object(dispatcher, "dispatch", wraps=dispatcher.dispatch) as spy:
            first = post_webhook(event_body("evt_twice"))
            second = post_webhook(event_body("evt_twice"))

        assert json.loads(first.data) == {"status": "success"}
        assert json.loads(second.data)["status"] == "skipped"
        assert spy.call_count == 1

    def test_expired_tombstone_is_processed_again(self, app, post_webhook, event_body):
        db.session.add(ProcessedEvent(id="evt_stale", processed_at=1, expires_at=2))
        db.session.commit()

        resp = post_webhook(event_body("evt_stale"))

        assert json.loads(resp.data) == {"status": "success"}
        db.session.expire_all()
        assert db.session.get(ProcessedEvent, "evt_stale").expires_at > 2


class TestWebhookProcessing:

    def test_payment_intent_succeeded(self, app, post_webhook, event_body):
        """New evt_123 -> 200 success, exactly one tombstone write for evt_123."""
        store = _pipeline(app).store

        with patch.object(store, "mark_processed", wraps=store.mark_processed) as spy:
            resp = post_webhook(event_body("evt_123", "payment_intent.succeeded"))

        assert resp.status_code == 200
        assert json.loads(resp.data) == {"status": "success"}
        assert spy.call_count == 1
        assert spy.call_args.args[0] == "evt_123"

        record = db.session.get(ProcessedEvent, "evt_123")
        assert record is not None
        assert record.expires_at - record.processed_at == 86400

    def test_handler_receives_object_and_type(self, app, post_webhook, event_body):
        invoice = {"id": "in_42", "customer": "cus_1", "amount_due": 5900}

        with patch("payhooks.services.handlers.logger") as mock_logger:
            resp = post_webhook(event_body("evt_inv", "invoice.payment_failed", invoice))

        assert resp.status_code == 200
        logged = mock_logger.info.call_args.args[0]
        assert "invoice.payment_failed" in logged
        assert "in_42" in logged

    def test_unknown_event_accepted(self, app, post_webhook, event_body):
        """Unknown type -> 200 success, recorded, no handler called."""
        with patch("payhooks.services.handlers.logger") as mock_logger:
            resp = post_webhook(event_body("evt_unknown_001", "foo.bar"))

        assert resp.status_code == 200
        assert json.loads(resp.data) == {"status": "success"}
        mock_logger.info.assert_not_called()
        assert db.session.get(ProcessedEvent, "evt_unknown_001") is not None

    def test_handler_failure_returns_500_and_records_nothing(self, app, post_webhook, event_body):
        dispatcher = _pipeline(app).dispatcher

        with patch.object(dispatcher, "handler_for", return_value=_explode):
            resp = post_webhook(event_body("evt_boom", "mandate.updated"))

        assert resp.status_code == 500
        assert json.loads(resp.data) == {"error": "Webhook Error: Handler failed"}
        assert db.session.get(ProcessedEvent, "evt_boom") is None


def _explode(obj, event_type):
    raise RuntimeError("downstream failure with secret detail")


class TestWebhookStoreFailure:

    def test_exists_failure_returns_error_without_write(self, app, post_webhook, event_body):
        """Store check throws -> Webhook Error, nothing written."""
        with patch.object(
            SQLAlchemyIdempotencyStore, "exists",
            side_effect=StoreUnavailable("lookup failed"),
        ):
            resp = post_webhook(event_body("evt_123"))

        assert resp.status_code == 500
        assert "Webhook Error" in json.loads(resp.data)["error"]
        assert ProcessedEvent.query.count() == 0

    def test_database_error_on_lookup(self, app, post_webhook, event_body):
        with patch.object(
            db.session, "get",
            side_effect=OperationalError("SELECT", {}, Exception("db down")),
        ):
            resp = post_webhook(event_body("evt_123"))

        assert resp.status_code == 500
        body = json.loads(resp.data)
        assert body == {"error": "Webhook Error: Store unavailable"}

    def test_get_not_allowed(self, client):
        resp = client.get("/stripe/webhooks")
        assert resp.status_code == 405
        assert json.loads(resp.data) == {"error": "Method not allowed"}
