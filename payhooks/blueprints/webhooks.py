"""Webhooks blueprint — /stripe/webhooks

Receives Stripe webhook events. Raw body is required for signature
verification, so it is read as bytes and never parsed here. All the work
is done by the intake pipeline; this module only maps its result to an
HTTP response.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from payhooks.extensions import limiter

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/stripe")


def _webhook_rate_limit():
    return current_app.config["WEBHOOK_RATE_LIMIT"]


def get_pipeline():
    """The IntakePipeline built by create_app()."""
    return current_app.extensions["intake_pipeline"]


@webhooks_bp.route("/webhooks", methods=["POST"])
@limiter.limit(_webhook_rate_limit)
def stripe_webhook():
    """Receive and process a Stripe webhook delivery.

    1. Get raw body + Stripe-Signature header
    2. Hand both to the intake pipeline (verify, dedup, dispatch, mark)
    3. Return 200 for processed/duplicate, 400 for bad signature,
       500 for store/handler failures so Stripe redelivers
    """
    payload = request.get_data(cache=False)
    sig_header = request.headers.get("Stripe-Signature")

    if not sig_header:
        logger.warning("Webhook received without Stripe-Signature header")

    result = get_pipeline().process(payload, sig_header)

    if not result.ok:
        logger.info(
            f"Webhook rejected ({result.status.value}) at "
            f"{result.failed_at.value if result.failed_at else '?'}: {result.message}"
        )
    return jsonify(result.to_body()), result.http_status
