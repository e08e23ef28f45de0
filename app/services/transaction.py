"""Transaction primitive shared by every state-changing operation.

A transition is a function that reads, validates and mutates through one
session. ``execute_transition`` commits it as a unit, or rolls every change
back and re-raises. Low-level store failures are translated into StoreError
so they never leak to callers as opaque driver errors.
"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import Callable, Optional, Type, TypeVar
import logging
import re

from app.exceptions import ShiftChangeError, ResourceNotFoundError, StoreError


logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONSTRAINT_PATTERNS = (
    re.compile(r'constraint "?(?P<name>[\w]+)"?', re.IGNORECASE),
    re.compile(r"for key '(?:[\w]+\.)?(?P<name>[\w]+)'", re.IGNORECASE),
    re.compile(r"UNIQUE constraint failed: (?P<name>[\w.]+(?:, [\w.]+)*)"),
)


def _describe_integrity_error(error: IntegrityError) -> tuple:
    """Best-effort extraction of (constraint, table) from a driver message."""
    text = str(getattr(error, "orig", error))
    constraint = None
    table = None
    for pattern in _CONSTRAINT_PATTERNS:
        match = pattern.search(text)
        if match:
            constraint = match.group("name")
            break
    if constraint and "." in constraint:
        # SQLite reports "table.column, table.column"
        table = constraint.split(".", 1)[0]
    return constraint, table


def execute_transition(db: Session, operation: str, fn: Callable[[], T]) -> T:
    """
    Run ``fn`` as one all-or-nothing transaction.

    Args:
        db: Database session; the transaction is committed or rolled back on it
        operation: Short name used for logging and error context
        fn: Function performing locks, validation and mutation

    Returns:
        Whatever ``fn`` returns

    Raises:
        ShiftChangeError: Domain errors raised by ``fn``, after rollback
        StoreError: Any SQLAlchemy failure, after rollback
    """
    try:
        result = fn()
        db.commit()
        return result
    except ShiftChangeError as e:
        db.rollback()
        logger.info(f"{operation} rolled back: {e.error_code} {e.details}")
        raise
    except IntegrityError as e:
        db.rollback()
        constraint, table = _describe_integrity_error(e)
        logger.error(
            f"{operation} hit an unexpected integrity error "
            f"(constraint={constraint}, table={table}): {e.orig}",
            exc_info=True
        )
        raise StoreError(operation, constraint=constraint, table=table, cause=str(e.orig)) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{operation} failed in the store: {e}", exc_info=True)
        raise StoreError(operation, cause=str(e)) from e
    except Exception:
        db.rollback()
        logger.error(f"{operation} failed unexpectedly", exc_info=True)
        raise


def lock_row(db: Session, model: Type[T], row_id: Optional[str], resource_type: str) -> T:
    """
    Load a row with an exclusive lock (SELECT ... FOR UPDATE).

    Raises:
        ResourceNotFoundError: If the id is empty or no row matches
    """
    if not row_id:
        raise ResourceNotFoundError(resource_type, row_id)
    row = db.query(model).filter(model.id == row_id).with_for_update().first()
    if row is None:
        raise ResourceNotFoundError(resource_type, row_id)
    return row


def get_row(db: Session, model: Type[T], row_id: Optional[str], resource_type: str) -> T:
    """Load a row without locking, raising ResourceNotFoundError if missing."""
    if not row_id:
        raise ResourceNotFoundError(resource_type, row_id)
    row = db.query(model).filter(model.id == row_id).first()
    if row is None:
        raise ResourceNotFoundError(resource_type, row_id)
    return row
