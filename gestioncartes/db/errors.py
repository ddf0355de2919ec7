"""Translation of store failures into the application error taxonomy."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from gestioncartes.exceptions import (
    GestionCartesException,
    JournalInternalError,
    WriteConflictError,
)

# serialization_failure, deadlock_detected
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


def _sqlstate(exc: DBAPIError) -> str | None:
    for attr in ("sqlstate", "pgcode"):
        code = getattr(exc.orig, attr, None)
        if code:
            return str(code)
    return None


def is_write_conflict(exc: BaseException) -> bool:
    """True when the store rejected the work because of a concurrent write."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in _CONFLICT_SQLSTATES:
            return True
        if isinstance(exc, OperationalError) and "database is locked" in str(exc.orig):
            return True
    return False


@asynccontextmanager
async def translate_store_errors(operation: str) -> AsyncIterator[None]:
    """
    Re-raise store failures as WriteConflictError or JournalInternalError.

    Application exceptions pass through untouched. Wrap the transaction
    block with this so the rollback has already happened when the
    translated error surfaces.
    """
    try:
        yield
    except GestionCartesException:
        raise
    except SQLAlchemyError as exc:
        if is_write_conflict(exc):
            logger.warning("Write conflict", operation=operation, error=str(exc))
            raise WriteConflictError(
                "The record was modified concurrently; retry the operation",
                details={"operation": operation, "retryable": True},
            ) from exc
        logger.exception("Store failure", operation=operation)
        raise JournalInternalError(
            "Internal storage error",
            details={"operation": operation, "retryable": False},
        ) from exc
