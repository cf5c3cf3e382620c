"""
Balance ledger - entitled/used/pending/available/carried-forward per
(employee, leave type, year).

- reserve on request creation: pending += days, available -= days
- commit on final approval: pending -= days, used += days
- release on rejection/cancellation: undo the reservation, or the usage when
  the request had already been approved
- year-end carry forward (capped) and its expiry a few months into the new year

Every mutation re-derives ``available = entitled + carried_forward - used - pending``
on a row read with SELECT ... FOR UPDATE; the row's version column turns the
write into a compare-and-swap, so a concurrent writer makes the flush raise
StaleDataError and the caller's unit of work is retried (see
app.db.transaction.run_in_transaction). Nothing here commits.
"""
import logging
import math
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InsufficientBalanceError, NotFoundError
from app.models.employee import Employee
from app.models.leave import (
    LeaveBalance,
    LeaveTransaction,
    LeaveTransactionAction,
    LeaveTypeConfig,
)
from app.services.audit_service import log_audit
from app.utils.datetime_utils import add_months, days_in_year

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]


def _dec(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _snapshot(bal: LeaveBalance) -> Dict[str, Any]:
    return {
        "entitled": bal.entitled,
        "carried_forward": bal.carried_forward,
        "used": bal.used,
        "pending": bal.pending,
        "available": bal.available,
    }


def _recompute(bal: LeaveBalance) -> List[str]:
    """
    Clamp used/pending at zero and re-derive available.

    Returns a note per clamped field; callers log those as integrity warnings.
    """
    notes = []
    for field in ("used", "pending"):
        value = _dec(getattr(bal, field))
        if value < ZERO:
            notes.append(f"{field} would be {value}; clamped to 0")
            setattr(bal, field, ZERO)
    raw = (
        _dec(bal.entitled) + _dec(bal.carried_forward)
        - _dec(bal.used) - _dec(bal.pending)
    )
    bal.available = raw if raw > ZERO else ZERO
    return notes


def _record(
    db: Session,
    bal: LeaveBalance,
    action: LeaveTransactionAction,
    before: Dict[str, Any],
    delta: Decimal,
    actor_id: Optional[int],
    leave_request_id: Optional[int] = None,
    remarks: Optional[str] = None,
    notes: Optional[List[str]] = None,
) -> None:
    """Journal row + audit entry for one mutation, plus integrity warnings."""
    db.flush()
    db.add(LeaveTransaction(
        employee_id=bal.employee_id,
        leave_request_id=leave_request_id,
        leave_type_id=bal.leave_type_id,
        year=bal.year,
        delta_days=delta,
        action=action,
        remarks=remarks,
        action_by_employee_id=actor_id,
    ))
    log_audit(
        db,
        actor_id=actor_id,
        action=f"BALANCE_{action.value}",
        entity_type="leave_balances",
        entity_id=bal.id,
        meta={
            "employee_id": bal.employee_id,
            "leave_type_id": bal.leave_type_id,
            "year": bal.year,
            "leave_request_id": leave_request_id,
            "before": before,
            "after": _snapshot(bal),
        },
    )
    if notes:
        logger.warning(
            "balance integrity: balance_id=%s employee_id=%s action=%s notes=%s",
            bal.id, bal.employee_id, action.value, "; ".join(notes),
        )
        log_audit(
            db,
            actor_id=actor_id,
            action="BALANCE_INTEGRITY_WARNING",
            entity_type="leave_balances",
            entity_id=bal.id,
            meta={"operation": action.value, "notes": notes, "leave_request_id": leave_request_id},
        )


def prorated_entitlement(annual: Number, join_date: Optional[date], year: int) -> Decimal:
    """
    Entitlement for ``year`` given the join date.

    Full entitlement for anyone who joined on or before 1 January, nothing for
    someone joining after the year, otherwise
    ceil(remaining calendar days / days in year * annual).
    """
    annual = _dec(annual)
    if not settings.PRO_RATE_ENABLED or join_date is None or join_date <= date(year, 1, 1):
        return annual
    if join_date.year > year:
        return ZERO
    remaining = (date(year, 12, 31) - join_date).days + 1
    return Decimal(math.ceil(remaining / days_in_year(year) * float(annual)))


def _locked_balance(db: Session, employee_id: int, leave_type_id: int, year: int) -> Optional[LeaveBalance]:
    return (
        db.query(LeaveBalance)
        .filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year,
        )
        .with_for_update()
        .populate_existing()
        .first()
    )


def ensure_balance(
    db: Session,
    employee: Employee,
    leave_type: LeaveTypeConfig,
    year: int,
    actor_id: Optional[int] = None,
) -> LeaveBalance:
    """Return the locked ledger row, creating it with the pro-rated entitlement if missing."""
    bal = _locked_balance(db, employee.id, leave_type.id, year)
    if bal is not None:
        return bal
    entitled = prorated_entitlement(leave_type.annual_entitlement, employee.join_date, year)
    bal = LeaveBalance(
        employee_id=employee.id,
        leave_type_id=leave_type.id,
        year=year,
        entitled=entitled,
        used=ZERO,
        pending=ZERO,
        carried_forward=ZERO,
        available=entitled,
    )
    db.add(bal)
    db.flush()
    empty = {k: ZERO for k in ("entitled", "carried_forward", "used", "pending", "available")}
    _record(db, bal, LeaveTransactionAction.INITIALIZE, empty, entitled, actor_id,
            remarks=f"Entitlement for {year}")
    logger.info(
        "balance initialized: employee_id=%s leave_type=%s year=%s entitled=%s",
        employee.id, leave_type.code, year, entitled,
    )
    return bal


def _load_pair(db: Session, employee_id: int, leave_type_id: int):
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise NotFoundError(f"Employee with id {employee_id} not found")
    leave_type = db.query(LeaveTypeConfig).filter(LeaveTypeConfig.id == leave_type_id).first()
    if leave_type is None:
        raise NotFoundError(f"Leave type with id {leave_type_id} not found")
    return employee, leave_type


def reserve(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    year: int,
    days: Number,
    *,
    leave_request_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> LeaveBalance:
    """
    Hold ``days`` against the balance for a pending request.

    Raises:
        InsufficientBalanceError: available < days; the row is left untouched
    """
    days = _dec(days)
    employee, leave_type = _load_pair(db, employee_id, leave_type_id)
    bal = ensure_balance(db, employee, leave_type, year, actor_id=actor_id)
    if _dec(bal.available) < days:
        logger.info(
            "balance reserve refused: employee_id=%s leave_type=%s year=%s requested=%s available=%s",
            employee_id, leave_type.code, year, days, bal.available,
        )
        raise InsufficientBalanceError(days, _dec(bal.available), leave_type.code)

    before = _snapshot(bal)
    bal.pending = _dec(bal.pending) + days
    notes = _recompute(bal)
    _record(db, bal, LeaveTransactionAction.RESERVE, before, -days, actor_id, leave_request_id, notes=notes)
    return bal


def commit(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    year: int,
    days: Number,
    *,
    leave_request_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> LeaveBalance:
    """Move ``days`` from pending to used once a request is fully approved."""
    days = _dec(days)
    employee, leave_type = _load_pair(db, employee_id, leave_type_id)
    bal = ensure_balance(db, employee, leave_type, year, actor_id=actor_id)
    before = _snapshot(bal)
    bal.pending = _dec(bal.pending) - days
    bal.used = _dec(bal.used) + days
    notes = _recompute(bal)
    _record(db, bal, LeaveTransactionAction.COMMIT, before, ZERO, actor_id, leave_request_id, notes=notes)
    return bal


def release(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    year: int,
    days: Number,
    was_approved: bool,
    *,
    leave_request_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> LeaveBalance:
    """
    Give ``days`` back when a request is rejected or cancelled.

    A request that never reached APPROVED gives back its reservation
    (pending); a late cancellation of an approved request gives back usage.
    """
    days = _dec(days)
    employee, leave_type = _load_pair(db, employee_id, leave_type_id)
    bal = ensure_balance(db, employee, leave_type, year, actor_id=actor_id)
    before = _snapshot(bal)
    if was_approved:
        bal.used = _dec(bal.used) - days
        action = LeaveTransactionAction.REVERSE_USED
    else:
        bal.pending = _dec(bal.pending) - days
        action = LeaveTransactionAction.RELEASE
    notes = _recompute(bal)
    _record(db, bal, action, before, days, actor_id, leave_request_id, notes=notes)
    return bal


def get_balances(db: Session, employee_id: int, year: int) -> List[LeaveBalance]:
    return (
        db.query(LeaveBalance)
        .filter(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
        .order_by(LeaveBalance.leave_type_id)
        .all()
    )


def initialize_balances(
    db: Session,
    employee_id: int,
    year: int,
    actor_id: Optional[int] = None,
) -> List[LeaveBalance]:
    """
    Create any missing ledger rows for the employee's active balance-tracked
    leave types. Existing rows are returned unchanged.
    """
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise NotFoundError(f"Employee with id {employee_id} not found")
    leave_types = (
        db.query(LeaveTypeConfig)
        .filter(LeaveTypeConfig.is_active.is_(True), LeaveTypeConfig.tracks_balance.is_(True))
        .order_by(LeaveTypeConfig.id)
        .all()
    )
    return [ensure_balance(db, employee, lt, year, actor_id=actor_id) for lt in leave_types]


def process_year_end(db: Session, year: int, actor_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Roll ``year`` into ``year + 1``.

    For every ledger row of ``year``: carry = min(available, MAX_CARRY_FORWARD_DAYS)
    when carry forward is enabled globally and for the leave type, otherwise 0.
    The next-year row is created if needed and its carried_forward set (not
    added), so running the close twice gives the same result.
    """
    next_year = year + 1
    cap = Decimal(settings.MAX_CARRY_FORWARD_DAYS)
    rows = (
        db.query(LeaveBalance)
        .filter(LeaveBalance.year == year)
        .order_by(LeaveBalance.employee_id, LeaveBalance.leave_type_id)
        .all()
    )

    processed = 0
    with_carry = 0
    total_carry = ZERO
    details = []
    for row in rows:
        employee, leave_type = _load_pair(db, row.employee_id, row.leave_type_id)
        if not leave_type.tracks_balance:
            continue
        processed += 1
        carry = ZERO
        if settings.CARRY_FORWARD_ENABLED and leave_type.allow_carry_forward:
            carry = min(_dec(row.available), cap)

        next_row = ensure_balance(db, employee, leave_type, next_year, actor_id=actor_id)
        before = _snapshot(next_row)
        delta = carry - _dec(next_row.carried_forward)
        next_row.carried_forward = carry
        notes = _recompute(next_row)
        if delta != ZERO or notes:
            _record(
                db, next_row, LeaveTransactionAction.CARRY_FORWARD, before, delta, actor_id,
                remarks=f"Carry forward from {year}", notes=notes,
            )
        if carry > ZERO:
            with_carry += 1
            total_carry += carry
        details.append({
            "employee_id": employee.id,
            "leave_type": leave_type.code,
            "unused": float(row.available),
            "carry_forward": float(carry),
            "next_year_available": float(next_row.available),
        })

    log_audit(
        db,
        actor_id=actor_id,
        action="YEAR_END_CARRY_FORWARD_RUN",
        entity_type="leave_balances",
        meta={"year": year, "next_year": next_year, "rows_processed": processed,
              "rows_with_carry_forward": with_carry, "total_carry_forward": total_carry},
    )
    logger.info(
        "year end processed: year=%s rows=%s with_carry=%s total_carry=%s",
        year, processed, with_carry, total_carry,
    )
    return {
        "year": year,
        "next_year": next_year,
        "rows_processed": processed,
        "rows_with_carry_forward": with_carry,
        "total_carry_forward": float(total_carry),
        "details": details,
    }


def carry_forward_expiry_date(year: int) -> date:
    return add_months(date(year, 1, 1), settings.CARRY_FORWARD_EXPIRY_MONTHS)


def expire_carry_forward(
    db: Session,
    year: int,
    as_of: Optional[date] = None,
    actor_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Lapse carried-forward days of ``year`` once the expiry date has passed.

    available -= carried_forward (floored at zero); carried_forward = 0.
    Before the expiry date this is a no-op.
    """
    as_of = as_of or date.today()
    expiry = carry_forward_expiry_date(year)
    if as_of < expiry:
        return {"year": year, "expiry_date": expiry.isoformat(), "expired": False, "rows_expired": 0}

    rows = (
        db.query(LeaveBalance)
        .filter(LeaveBalance.year == year, LeaveBalance.carried_forward > 0)
        .with_for_update()
        .all()
    )
    total = ZERO
    for row in rows:
        before = _snapshot(row)
        lapsed = _dec(row.carried_forward)
        row.carried_forward = ZERO
        notes = _recompute(row)
        total += lapsed
        _record(
            db, row, LeaveTransactionAction.CARRY_FORWARD_EXPIRY, before,
            _dec(row.available) - _dec(before["available"]), actor_id,
            remarks=f"Carry forward of {lapsed} day(s) expired on {expiry}", notes=notes,
        )

    logger.info("carry forward expired: year=%s rows=%s days=%s", year, len(rows), total)
    return {
        "year": year,
        "expiry_date": expiry.isoformat(),
        "expired": True,
        "rows_expired": len(rows),
        "total_days_expired": float(total),
    }
