"""
Unit-of-work helper with optimistic retry.

LeaveRequest, ApprovalLevel and LeaveBalance carry a version column
(SQLAlchemy version_id_col); an UPDATE that races another writer affects zero
rows and raises StaleDataError at flush. An INSERT that loses a unique-key
race (first ledger row of a year, request number) raises IntegrityError. The
whole unit is then rolled back and executed again from scratch.
"""
import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(
    db: Session,
    work: Callable[[], T],
    *,
    label: str = "unit of work",
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run ``work`` and commit, retrying the whole unit on a lost race.

    ``work`` must re-read everything it needs from ``db``; objects loaded
    before a rollback are expired.

    Raises:
        ConcurrencyConflictError: every attempt lost the race
        Exception: anything else raised by ``work`` after rolling back
    """
    attempts = max_attempts or settings.TRANSACTION_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.commit()
            return result
        except (StaleDataError, IntegrityError) as exc:
            db.rollback()
            logger.warning(
                "optimistic conflict: label=%s attempt=%s/%s error=%s",
                label, attempt, attempts, type(exc).__name__,
            )
        except Exception:
            db.rollback()
            raise
    raise ConcurrencyConflictError(
        f"{label} conflicted with a concurrent update; please retry"
    )
