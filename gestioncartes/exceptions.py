"""Custom application exceptions mapped to API errors."""

from __future__ import annotations

from typing import Any

from gestioncartes import error_codes


class GestionCartesException(Exception):
    status_code = 500
    code = error_codes.INTERNAL_ERROR
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(GestionCartesException):
    status_code = 404
    code = "NOT_FOUND"


class AuthenticationError(GestionCartesException):
    status_code = 401
    code = "AUTHENTICATION_ERROR"


class AuthorizationError(GestionCartesException):
    status_code = 403
    code = "AUTHORIZATION_ERROR"


class ValidationError(GestionCartesException):
    status_code = 422
    code = error_codes.VALIDATION_ERROR


class ConflictError(GestionCartesException):
    status_code = 409
    code = "CONFLICT_ERROR"


# Journal / undo taxonomy


class LogEntryNotFoundError(NotFoundError):
    """The referenced journal entry does not exist."""

    code = error_codes.LOG_ENTRY_NOT_FOUND


class CarteNotFoundError(NotFoundError):
    code = error_codes.CARTE_NOT_FOUND


class CorruptEntryError(GestionCartesException):
    """The journal entry carries no usable old/new snapshot."""

    status_code = 422
    code = error_codes.CORRUPT_ENTRY


class UnsupportedUndoError(GestionCartesException):
    """The action type (or target table) has no compensating action."""

    status_code = 422
    code = error_codes.UNSUPPORTED_UNDO


class RecordGoneError(ConflictError):
    """The target record was already absent when the undo was applied."""

    code = error_codes.RECORD_GONE


class NoModifiableFieldsError(GestionCartesException):
    status_code = 422
    code = error_codes.NO_MODIFIABLE_FIELDS


class BatchEmptyError(NotFoundError):
    """No card matches the import batch being cancelled."""

    code = error_codes.BATCH_EMPTY


class WriteConflictError(ConflictError):
    """The store rejected the transaction because of a concurrent write.

    Safe to retry.
    """

    code = error_codes.WRITE_CONFLICT
    retryable = True


class JournalInternalError(GestionCartesException):
    """Unclassified store failure, distinct from the business taxonomy."""

    status_code = 500
    code = error_codes.INTERNAL_ERROR


class AlreadyUndoneError(ConflictError):
    """A deletion was already compensated; reinserting again would duplicate the record."""

    code = error_codes.ALREADY_UNDONE
