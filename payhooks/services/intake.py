"""Intake pipeline — verify → dedup → dispatch → mark processed → respond.

Responsible for:
- Rejecting deliveries without a signature before anything else runs
- Verifying the signature and building the Event
- Skipping event ids that already have a live tombstone
- Dispatching new events to their handler
- Writing the tombstone only after the handler has completed
- Converting every failure into an IntakeResult (nothing escapes)

Ordering: the tombstone is written after dispatch, so a crash between the
two can re-run a handler on redelivery, but an event is never marked
processed without its handler having run. A handler failure leaves no
tombstone and returns a 500 so Stripe redelivers.

The dedup check is read-then-write with no lock. Two near-simultaneous
deliveries of one id can both dispatch; handlers are expected to be
idempotent.
"""

import enum
import logging
import time
from dataclasses import dataclass
from typing import Optional

from payhooks.errors import (
    HandlerError,
    IntakeError,
    MissingSignature,
    StoreUnavailable,
    VerificationError,
)
from payhooks.services.idempotency import DEFAULT_TTL_SECONDS
from payhooks.services.signature import (
    DEFAULT_TOLERANCE_SECONDS,
    check_tolerance,
    verify,
)

logger = logging.getLogger(__name__)


class IntakeStage(enum.Enum):
    START = "start"
    SIGNATURE_CHECKED = "signature_checked"
    DEDUP_CHECKED = "dedup_checked"
    DISPATCHED = "dispatched"
    MARKED_PROCESSED = "marked_processed"
    RESPONDED = "responded"
    REJECTED = "rejected"


class IntakeStatus(enum.Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"


_HTTP_STATUS = {
    IntakeStatus.PROCESSED: 200,
    IntakeStatus.DUPLICATE: 200,
    IntakeStatus.CLIENT_ERROR: 400,
    IntakeStatus.SERVER_ERROR: 500,
}


@dataclass(frozen=True)
class IntakeResult:
    status: IntakeStatus
    message: str
    event_id: Optional[str] = None
    stage: IntakeStage = IntakeStage.RESPONDED
    # Stage reached before rejection, for logs and tests.
    failed_at: Optional[IntakeStage] = None

    @property
    def ok(self):
        return self.status in (IntakeStatus.PROCESSED, IntakeStatus.DUPLICATE)

    @property
    def http_status(self):
        return _HTTP_STATUS[self.status]

    def to_body(self):
        if self.status == IntakeStatus.PROCESSED:
            return {"status": "success"}
        if self.status == IntakeStatus.DUPLICATE:
            return {"status": "skipped", "message": self.message}
        return {"error": self.message}

    @classmethod
    def processed(cls, event_id):
        return cls(IntakeStatus.PROCESSED, "Event processed", event_id)

    @classmethod
    def duplicate(cls, event_id):
        return cls(IntakeStatus.DUPLICATE, "Duplicate event", event_id)

    @classmethod
    def rejected(cls, error, failed_at, event_id=None):
        if isinstance(error, MissingSignature):
            message = error.category
        else:
            message = f"Webhook Error: {error.category}"
        status = (
            IntakeStatus.CLIENT_ERROR
            if isinstance(error, VerificationError)
            else IntakeStatus.SERVER_ERROR
        )
        return cls(status, message, event_id, IntakeStage.REJECTED, failed_at)


class IntakePipeline:
    """One instance per app; `process` is called once per delivery.

    Holds only immutable configuration plus the store and dispatcher, so
    concurrent calls share nothing mutable in-process.
    """

    def __init__(self, store, dispatcher, secret,
                 tolerance_seconds=DEFAULT_TOLERANCE_SECONDS,
                 ttl_seconds=DEFAULT_TTL_SECONDS, clock=time.time):
        self.store = store
        self.dispatcher = dispatcher
        self._secret = secret
        self.tolerance_seconds = check_tolerance(tolerance_seconds)
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def process(self, raw_body, signature_header):
        """Run one delivery through the pipeline. Never raises."""
        stage = IntakeStage.START
        event_id = None
        try:
            if not signature_header:
                raise MissingSignature("no signature header")

            event = verify(raw_body, signature_header, self._secret, self.tolerance_seconds)
            event_id = event.id
            stage = IntakeStage.SIGNATURE_CHECKED

            if self.store.exists(event.id):
                logger.info(f"Duplicate webhook event {event.id}, skipping")
                return IntakeResult.duplicate(event.id)
            stage = IntakeStage.DEDUP_CHECKED

            self.dispatcher.dispatch(event)
            stage = IntakeStage.DISPATCHED

            self.store.mark_processed(event.id, int(self._clock()), self.ttl_seconds)
            stage = IntakeStage.MARKED_PROCESSED

            logger.info(f"Processed webhook event {event.id} ({event.category})")
            return IntakeResult.processed(event.id)

        except VerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            return IntakeResult.rejected(e, stage, event_id)
        except StoreUnavailable as e:
            logger.error(f"Idempotency store unavailable at {stage.value} for {event_id}: {e}")
            return IntakeResult.rejected(e, stage, event_id)
        except HandlerError as e:
            logger.error(f"Handler failed for {event_id} ({e.event_category}), not marking processed: {e}")
            return IntakeResult.rejected(e, stage, event_id)
        except IntakeError as e:
            logger.error(f"Webhook intake failed at {stage.value} for {event_id}: {e}")
            return IntakeResult.rejected(e, stage, event_id)
        except Exception as e:
            logger.exception(f"Unexpected webhook error at {stage.value} for {event_id}")
            return IntakeResult.rejected(IntakeError(str(e)), stage, event_id)
