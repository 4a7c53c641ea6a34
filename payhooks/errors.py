"""Intake error taxonomy.

Every failure inside the intake pipeline is one of these. The pipeline
catches them at its boundary and turns them into a structured result, so
none of them ever reaches the HTTP layer as an unhandled exception.

- VerificationError (client errors, never retried):
    MissingSignature, InvalidSignature, InvalidPayload
- StoreUnavailable: the idempotency store could not be read or written.
- HandlerError: a dispatched business handler raised.
"""


class IntakeError(Exception):
    """Base class for all intake failures.

    `category` is the short, safe text that may be shown to the caller.
    The exception message itself can carry internal detail and is only
    ever logged.
    """

    category = "Internal error"
    retryable = True


class VerificationError(IntakeError):
    category = "Invalid signature"
    retryable = False


class MissingSignature(VerificationError):
    category = "No signature provided"


class InvalidSignature(VerificationError):
    category = "Invalid signature"


class InvalidPayload(VerificationError):
    """Body was authentic but is not a usable event (bad JSON, no id/type)."""

    category = "Invalid payload"


class StoreUnavailable(IntakeError):
    category = "Store unavailable"


class HandlerError(IntakeError):
    category = "Handler failed"

    def __init__(self, event_category, message):
        super().__init__(message)
        self.event_category = event_category
