"""
Database error handling for service write paths.

handle_db_error wraps a unit of work so that any failure rolls the session
back, is logged with context and surfaces as a typed engine error:

    ExecutionError subclasses   -> re-raised unchanged
    StaleDataError              -> ConcurrentModificationError (409)
    IntegrityError              -> ConcurrentModificationError (409)
    other SQLAlchemyError       -> DatabaseOperationError (500)

Usage:
    with handle_db_error(db, "start test execution", execution_id=execution.id):
        apply_transition(execution, ExecutionAction.START)
        db.commit()
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from examhub.core.error_responses import ErrorMessages
from examhub.core.errors import ConcurrentModificationError, ExecutionError

logger = logging.getLogger(__name__)


class DatabaseOperationError(Exception):
    """A database operation failed for a reason the client cannot fix.

    Attributes:
        operation_name: Human-readable name of the operation that failed
        original_error: The underlying exception
    """

    def __init__(self, operation_name: str, original_error: Exception):
        self.operation_name = operation_name
        self.original_error = original_error
        super().__init__(f"Failed to {operation_name}: {original_error}")


@contextmanager
def handle_db_error(
    db: Session,
    operation_name: str,
    *,
    execution_id: Optional[int] = None,
    conflict_message: str = ErrorMessages.CONCURRENT_MODIFICATION,
) -> Generator[None, None, None]:
    """Roll back and translate errors raised inside the block.

    Args:
        db: Session to roll back on error
        operation_name: Used in log lines and error messages
        execution_id: Attached to log records when known
        conflict_message: Message for IntegrityError conflicts
    """
    extra = {"execution_id": execution_id} if execution_id is not None else {}
    try:
        yield
    except ExecutionError:
        db.rollback()
        raise
    except StaleDataError as e:
        db.rollback()
        logger.warning(
            f"Concurrent modification during {operation_name}: {e}", extra=extra
        )
        raise ConcurrentModificationError(ErrorMessages.CONCURRENT_MODIFICATION) from e
    except IntegrityError as e:
        db.rollback()
        logger.warning(
            f"Integrity conflict during {operation_name}: {e.orig}", extra=extra
        )
        raise ConcurrentModificationError(conflict_message) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Database error during {operation_name}: {e}", exc_info=True, extra=extra
        )
        raise DatabaseOperationError(operation_name, e) from e
