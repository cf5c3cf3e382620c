"""
Working-day counting for leave requests.

Saturdays, Sundays and active holidays are non-working. The holiday table
is owned by the calendar service; this module only reads it.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from app.models.holiday import Holiday


def get_holidays_in_range(db: Session, from_date: date, to_date: date) -> Set[date]:
    """Active holiday dates between from_date and to_date (inclusive)."""
    rows = db.query(Holiday.date).filter(
        Holiday.active.is_(True),
        Holiday.date >= from_date,
        Holiday.date <= to_date,
    ).all()
    return {row[0] for row in rows}


def is_working_day(check_date: date, holidays: Set[date]) -> bool:
    return check_date.weekday() < 5 and check_date not in holidays


def working_dates(
    db: Session,
    from_date: date,
    to_date: date,
    selected_dates: Optional[Iterable[date]] = None,
) -> List[date]:
    """
    Working dates covered by a request.

    With ``selected_dates`` only those dates are considered (sparse leave);
    otherwise every day from from_date to to_date inclusive.
    """
    if from_date > to_date:
        return []
    holidays = get_holidays_in_range(db, from_date, to_date)
    if selected_dates is not None:
        candidates = sorted(set(selected_dates))
    else:
        candidates = [from_date + timedelta(days=i) for i in range((to_date - from_date).days + 1)]
    return [d for d in candidates if is_working_day(d, holidays)]


def count_working_days(
    db: Session,
    from_date: date,
    to_date: date,
    selected_dates: Optional[Iterable[date]] = None,
) -> Decimal:
    return Decimal(len(working_dates(db, from_date, to_date, selected_dates)))
