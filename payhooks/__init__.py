import os
import logging
import time

import click
from flask import Flask, jsonify

from payhooks.config import config_by_name
from payhooks.extensions import db, migrate, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from payhooks import models  # noqa: F401

    # --- Intake pipeline (registry is built once, read-only afterwards) ---
    init_intake_pipeline(app)

    # --- Register blueprints ---
    from payhooks.blueprints.webhooks import webhooks_bp

    app.register_blueprint(webhooks_bp)

    # --- Error handlers (JSON only, this is an API) ---
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "Rate limit exceeded"}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def init_intake_pipeline(app):
    """Build the IntakePipeline from app config and stash it on the app.

    Raises ValueError if WEBHOOK_TOLERANCE_SECONDS is not positive.
    """
    from payhooks.services.dispatch import EventDispatcher
    from payhooks.services.idempotency import SQLAlchemyIdempotencyStore
    from payhooks.services.intake import IntakePipeline

    secret = app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        app.logger.warning("STRIPE_WEBHOOK_SECRET is not set; every webhook will be rejected")

    pipeline = IntakePipeline(
        store=SQLAlchemyIdempotencyStore(),
        dispatcher=EventDispatcher(),
        secret=secret or "",
        tolerance_seconds=app.config["WEBHOOK_TOLERANCE_SECONDS"],
        ttl_seconds=app.config["IDEMPOTENCY_TTL_SECONDS"],
    )
    app.extensions["intake_pipeline"] = pipeline
    return pipeline


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("purge-expired-events")
    @click.option("--dry-run", is_flag=True, help="Only count expired tombstones.")
    def purge_expired_events(dry_run):
        """Delete processed-event tombstones whose TTL has passed.

        Expired rows are already ignored by the dedup check; this only
        reclaims space. Safe to run from cron.

        Usage:
            flask purge-expired-events
            flask purge-expired-events --dry-run
        """
        from payhooks.services.idempotency import SQLAlchemyIdempotencyStore

        store = SQLAlchemyIdempotencyStore()
        now = int(time.time())
        if dry_run:
            count = store.count_expired(now)
            click.echo(f"{count} expired tombstone(s) would be purged.")
            return
        removed = store.purge_expired(now)
        click.echo(f"Purged {removed} expired tombstone(s).")

    @app.cli.command("list-handlers")
    def list_handlers():
        """Show which event types are dispatched and to which handler."""
        pipeline = app.extensions["intake_pipeline"]
        for category, handler in pipeline.dispatcher.registry.items():
            click.echo(f"  {category.value:<32} -> {handler.__name__}")
        click.echo("")
        click.echo("All other event types are verified, deduped and marked processed")
        click.echo("without dispatch.")

    @app.cli.command("check-event")
    @click.argument("event_id")
    def check_event(event_id):
        """Report whether EVENT_ID has a live (unexpired) tombstone."""
        from payhooks.models.processed_event import ProcessedEvent

        record = db.session.get(ProcessedEvent, event_id)
        if record is None:
            click.echo(f"{event_id}: not processed")
            return
        state = "expired" if record.is_expired(int(time.time())) else "processed"
        click.echo(
            f"{event_id}: {state} "
            f"(processed_at={record.processed_at}, expires_at={record.expires_at})"
        )
