"""Processed event model (idempotency tombstones).

One row per Stripe event id that made it all the way through intake.
The row carries no payload: it only says "this id was handled at
processed_at, and that fact matters until expires_at". Rows past
expires_at are treated as absent and removed by
`flask purge-expired-events`.
"""

from payhooks.extensions import db


class ProcessedEvent(db.Model):
    __tablename__ = "processed_events"

    id = db.Column(db.String(255), primary_key=True)  # e.g. "evt_1Abc..."
    processed_at = db.Column(db.BigInteger, nullable=False)  # epoch seconds
    expires_at = db.Column(
        db.BigInteger, nullable=False, index=True
    )  # epoch seconds

    def is_expired(self, now):
        return self.expires_at <= now

    def __repr__(self):
        return f"<ProcessedEvent {self.id} (expires {self.expires_at})>"
