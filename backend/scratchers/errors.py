# Overview: Exception taxonomy for scratcher operations; routes turn these into JSON errors.

"""
Every recoverable failure raised by the services is a ScratcherError.

Each carries:
- code: stable machine-readable kind (e.g. "ROLLOVER_DETECTED")
- details: affected ids so a caller can react (e.g. rollover slot list)
- status_code: HTTP status used by the route layer

Storage/transport failures are NOT wrapped; they propagate and become 500s.
"""
from __future__ import annotations


class ScratcherError(Exception):
    """Base class for scratcher business errors."""

    status_code = 400
    code = "SCRATCHER_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(ScratcherError, ValueError):
    """400-level input problem."""

    code = "VALIDATION_ERROR"


class UnsupportedPriceError(ValidationError):
    code = "UNSUPPORTED_PRICE"


class InvalidStartTicketError(ValidationError):
    code = "INVALID_START_TICKET"


class ConflictError(ScratcherError):
    """409-level business rule conflict (e.g., duplicate slot number)."""

    status_code = 409
    code = "CONFLICT"


class DuplicateSnapshotError(ConflictError):
    code = "DUPLICATE_SNAPSHOT"


class EndSnapshotExistsError(ConflictError):
    code = "END_SNAPSHOT_EXISTS"


class RolloverDetectedError(ScratcherError):
    """
    End snapshot rejected: at least one slot reads lower than its start value
    while the slot still holds the same pack.

    details["rollover_slots"] = [{"slot_id": int, "slot_number": int}, ...]
    """

    status_code = 409
    code = "ROLLOVER_DETECTED"

    def __init__(self, rollover_slots: list[dict]):
        super().__init__(
            "Pack rollover detected. Activate a new pack before submitting end snapshot.",
            details={"rollover_slots": rollover_slots},
        )
        self.rollover_slots = rollover_slots


class NotFoundError(ScratcherError):
    status_code = 404
    code = "NOT_FOUND"


class PreconditionFailedError(ScratcherError):
    status_code = 412
    code = "PRECONDITION_FAILED"


class BaselineRequiredError(PreconditionFailedError):
    status_code = 409
    code = "BASELINE_REQUIRED"

    def __init__(self, store_id: int):
        super().__init__(
            "Baseline start snapshot is required before ending.",
            details={"store_id": store_id},
        )


class ReceiptRequiredError(PreconditionFailedError):
    status_code = 400
    code = "RECEIPT_REQUIRED"


class PermissionDeniedError(ScratcherError):
    status_code = 403
    code = "FORBIDDEN"
