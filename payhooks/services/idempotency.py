"""Idempotency store — which event ids have already been handled.

The pipeline only depends on the IdempotencyStore interface. The
SQLAlchemy implementation keeps tombstones in the processed_events table
and enforces expiry on read, since SQL has no native TTL.

Both operations fail closed: any backend error surfaces as
StoreUnavailable so the delivery is rejected and Stripe redelivers.
"""

import abc
import logging
import time

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from payhooks.errors import StoreUnavailable
from payhooks.extensions import db
from payhooks.models.processed_event import ProcessedEvent

logger = logging.getLogger(__name__)

# Longer than Stripe's redelivery window, short enough to bound table growth.
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class IdempotencyStore(abc.ABC):
    @abc.abstractmethod
    def exists(self, event_id):
        """Return True iff a non-expired tombstone exists for event_id."""

    @abc.abstractmethod
    def mark_processed(self, event_id, processed_at, ttl_seconds=DEFAULT_TTL_SECONDS):
        """Write a tombstone expiring at processed_at + ttl_seconds."""

    @abc.abstractmethod
    def purge_expired(self, now=None):
        """Delete expired tombstones. Returns the number removed."""


class SQLAlchemyIdempotencyStore(IdempotencyStore):
    """Tombstones in the processed_events table via Flask-SQLAlchemy.

    Must be used inside an app context; the session is the request's.
    """

    def __init__(self, session=None, clock=time.time):
        self._session = session
        self._clock = clock

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def _now(self):
        return int(self._clock())

    def exists(self, event_id):
        try:
            record = self.session.get(ProcessedEvent, event_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Idempotency lookup failed for {event_id}: {e}")
            raise StoreUnavailable(f"lookup failed for {event_id}") from e

        if record is None:
            return False
        if record.is_expired(self._now()):
            logger.info(f"Tombstone for {event_id} expired at {record.expires_at}, treating as new")
            return False
        return True

    def mark_processed(self, event_id, processed_at, ttl_seconds=DEFAULT_TTL_SECONDS):
        processed_at = int(processed_at)
        expires_at = processed_at + int(ttl_seconds)
        try:
            # merge() upserts: an expired tombstone for the same id is overwritten.
            self.session.merge(ProcessedEvent(
                id=event_id,
                processed_at=processed_at,
                expires_at=expires_at,
            ))
            self.session.commit()
        except IntegrityError:
            # A concurrent delivery of the same id committed first.
            self.session.rollback()
            logger.info(f"Tombstone for {event_id} already written by a concurrent delivery")
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to mark {event_id} processed: {e}")
            raise StoreUnavailable(f"write failed for {event_id}") from e

    def count_expired(self, now=None):
        now = self._now() if now is None else int(now)
        try:
            return self.session.query(ProcessedEvent).filter(
                ProcessedEvent.expires_at <= now
            ).count()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreUnavailable("expired count failed") from e

    def purge_expired(self, now=None):
        now = self._now() if now is None else int(now)
        try:
            removed = self.session.query(ProcessedEvent).filter(
                ProcessedEvent.expires_at <= now
            ).delete(synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to purge expired tombstones: {e}")
            raise StoreUnavailable("purge failed") from e
        logger.info(f"Purged {removed} expired tombstones (cutoff {now})")
        return removed
