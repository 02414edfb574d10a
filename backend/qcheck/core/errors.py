"""Error kinds raised by the review and assignment core.

Each kind maps to one HTTP response category so callers can tell
"fix the input" apart from "retry later" and "do not retry".
"""

from __future__ import annotations


class QCheckError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QCheckError):
    """Bad input, detected before any unit of work is opened."""

    kind = "validation_error"
    status_code = 400


class PermissionDeniedError(QCheckError):
    """The caller's role or ownership does not allow the operation."""

    kind = "permission_denied"
    status_code = 403


class NotFoundError(QCheckError):
    kind = "not_found"
    status_code = 404


class ConflictError(QCheckError):
    """A competing writer won (paper claim race, duplicate unique name)."""

    kind = "conflict"
    status_code = 409


class InvalidStateError(QCheckError):
    kind = "invalid_state"
    status_code = 422


class StoreError(QCheckError):
    """The transactional store failed; nothing from the unit of work persisted."""

    kind = "store_error"
    status_code = 500
