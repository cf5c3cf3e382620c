"""
Tests for the balance ledger: reserve / commit / release arithmetic, clamping,
pro-rating, year-end carry forward and carry-forward expiry
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import ConcurrencyConflictError, InsufficientBalanceError
from app.db.transaction import run_in_transaction
from app.models.audit_log import AuditLog
from app.models.leave import LeaveBalance, LeaveTransaction, LeaveTransactionAction
from app.services import balance_ledger_service as ledger
from helpers import LEAVE_YEAR


def _balance(db, employee, leave_type, year=LEAVE_YEAR):
    db.expire_all()
    return db.query(LeaveBalance).filter(
        LeaveBalance.employee_id == employee.id,
        LeaveBalance.leave_type_id == leave_type.id,
        LeaveBalance.year == year,
    ).first()


def _assert_invariant(bal):
    expected = bal.entitled + bal.carried_forward - bal.used - bal.pending
    assert bal.available == max(expected, Decimal("0"))


def test_reserve_moves_days_to_pending(db, org, annual_leave):
    ledger.reserve(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 5, actor_id=org.employee.id)
    db.commit()

    bal = _balance(db, org.employee, annual_leave)
    assert bal.entitled == Decimal("20")
    assert bal.pending == Decimal("5")
    assert bal.used == Decimal("0")
    assert bal.available == Decimal("15")
    _assert_invariant(bal)


def test_reserve_insufficient_leaves_row_untouched(db, org, annual_leave):
    ledger.reserve(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 5)
    db.commit()

    with pytest.raises(InsufficientBalanceError) as exc_info:
        ledger.reserve(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 20)
    db.rollback()

    assert exc_info.value.status_code == 400
    assert exc_info.value.extra == {"requested": 20.0, "available": 15.0}
    bal = _balance(db, org.employee, annual_leave)
    assert bal.pending == Decimal("5")
    assert bal.available == Decimal("15")


def test_commit_moves_pending_to_used(db, org, annual_leave):
    ledger.reserve(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 5)
    ledger.commit(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 5)
    db.commit()

    bal = _balance(db, org.employee, annual_leave)
    assert bal.pending == Decimal("0")
    assert bal.used == Decimal("5")
    assert bal.available == Decimal("15")
    _assert_invariant(bal)


def test_release_pending_restores_available(db, org, annual_leave):
    ledger.reserve(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 3)
    ledger.release(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 3, False)
    db.commit()

    bal = _balance(db, org.employee, annual_leave)
    assert bal.pending == Decimal("0")
    assert bal.available == Decimal("20")


def test_release_approved_gives_back_used(db, org, annual_leave):
    ledger.reserve(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 4)
    ledger.commit(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 4)
    ledger.release(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 4, True)
    db.commit()

    bal = _balance(db, org.employee, annual_leave)
    assert bal.used == Decimal("0")
    assert bal.available == Decimal("20")
    actions = [t.action for t in db.query(LeaveTransaction).order_by(LeaveTransaction.id).all()]
    assert actions == [
        LeaveTransactionAction.INITIALIZE,
        LeaveTransactionAction.RESERVE,
        LeaveTransactionAction.COMMIT,
        LeaveTransactionAction.REVERSE_USED,
    ]


def test_release_more_than_pending_is_clamped_and_audited(db, org, annual_leave):
    ledger.reserve(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 2)
    ledger.release(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 5, False)
    db.commit()

    bal = _balance(db, org.employee, annual_leave)
    assert bal.pending == Decimal("0")
    assert bal.available == Decimal("20")
    warning = db.query(AuditLog).filter(AuditLog.action == "BALANCE_INTEGRITY_WARNING").one()
    assert warning.meta_json["operation"] == "RELEASE"


def test_every_mutation_is_audited_with_snapshots(db, org, annual_leave):
    ledger.reserve(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 5, actor_id=org.employee.id)
    db.commit()

    entry = db.query(AuditLog).filter(AuditLog.action == "BALANCE_RESERVE").one()
    assert entry.actor_id == org.employee.id
    assert entry.meta_json["before"]["available"] == 20.0
    assert entry.meta_json["after"]["available"] == 15.0
    assert entry.meta_json["after"]["pending"] == 5.0


@pytest.mark.parametrize(
    "join_date, expected",
    [
        (date(2019, 6, 1), Decimal("20")),
        (date(LEAVE_YEAR, 1, 1), Decimal("20")),
        (date(LEAVE_YEAR + 1, 2, 1), Decimal("0")),
    ],
)
def test_prorated_entitlement_boundaries(join_date, expected):
    assert ledger.prorated_entitlement(20, join_date, LEAVE_YEAR) == expected


def test_prorated_entitlement_rounds_up():
    # 2027-07-01 leaves 184 of 365 days: 184 / 365 * 20 = 10.08 -> 11
    assert ledger.prorated_entitlement(20, date(2027, 7, 1), 2027) == Decimal("11")


def test_initialize_balances_is_idempotent(db, org, annual_leave, unpaid_leave):
    first = ledger.initialize_balances(db, org.employee.id, LEAVE_YEAR)
    db.commit()
    second = ledger.initialize_balances(db, org.employee.id, LEAVE_YEAR)
    db.commit()

    assert [b.id for b in first] == [b.id for b in second]
    assert len(first) == 1  # unpaid leave does not track a balance
    assert db.query(LeaveTransaction).filter(
        LeaveTransaction.action == LeaveTransactionAction.INITIALIZE
    ).count() == 1


def test_year_end_caps_carry_forward_and_is_idempotent(db, org, annual_leave):
    ledger.reserve(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 4)
    ledger.commit(db, org.employee.id, annual_leave.id, LEAVE_YEAR, 4)
    db.commit()

    result = ledger.process_year_end(db, LEAVE_YEAR)
    db.commit()
    assert result["rows_with_carry_forward"] == 1
    assert result["total_carry_forward"] == float(settings.MAX_CARRY_FORWARD_DAYS)

    ledger.process_year_end(db, LEAVE_YEAR)
    db.commit()

    nxt = _balance(db, org.employee, annual_leave, LEAVE_YEAR + 1)
    assert nxt.carried_forward == Decimal(settings.MAX_CARRY_FORWARD_DAYS)
    assert nxt.available == Decimal("20") + Decimal(settings.MAX_CARRY_FORWARD_DAYS)
    _assert_invariant(nxt)


def test_year_end_skips_types_without_carry_forward(db, org, medical_leave):
    ledger.initialize_balances(db, org.employee.id, LEAVE_YEAR)
    db.commit()

    result = ledger.process_year_end(db, LEAVE_YEAR)
    db.commit()

    assert result["rows_with_carry_forward"] == 0
    nxt = _balance(db, org.employee, medical_leave, LEAVE_YEAR + 1)
    assert nxt.carried_forward == Decimal("0")


def test_carry_forward_expiry(db, org, annual_leave):
    ledger.initialize_balances(db, org.employee.id, LEAVE_YEAR)
    db.commit()
    ledger.process_year_end(db, LEAVE_YEAR)
    db.commit()
    next_year = LEAVE_YEAR + 1

    early = ledger.expire_carry_forward(db, next_year, as_of=date(next_year, 2, 1))
    assert early["expired"] is False

    result = ledger.expire_carry_forward(db, next_year, as_of=date(next_year, 4, 1))
    db.commit()
    assert result["expired"] is True
    assert result["rows_expired"] == 1

    bal = _balance(db, org.employee, annual_leave, next_year)
    assert bal.carried_forward == Decimal("0")
    assert bal.available == Decimal("20")


def test_lost_version_race_is_retried(db, org, annual_leave):
    ledger.initialize_balances(db, org.employee.id, LEAVE_YEAR)
    db.commit()
    attempts = []

    def work():
        attempts.append(1)
        bal = _balance(db, org.employee, annual_leave)
        if len(attempts) == 1:
            # another writer bumps the row between our read and our write
            table = LeaveBalance.__table__
            db.execute(update(table).where(table.c.id == bal.id).values(version=table.c.version + 1))
        bal.pending = bal.pending + 1
        db.flush()
        return bal.id

    run_in_transaction(db, work, label="test")
    assert len(attempts) == 2
    assert _balance(db, org.employee, annual_leave).pending == Decimal("1")


def test_retries_exhausted_raise_concurrency_conflict(db):
    def work():
        raise StaleDataError("row changed")

    with pytest.raises(ConcurrencyConflictError) as exc_info:
        run_in_transaction(db, work, label="always stale", max_attempts=2)
    assert exc_info.value.status_code == 409
    assert exc_info.value.kind == "concurrency_conflict"


def test_unique_key_race_exhausted_raises_concurrency_conflict(db):
    def work():
        raise IntegrityError("INSERT INTO leave_balances", {}, Exception("UNIQUE constraint failed"))

    with pytest.raises(ConcurrencyConflictError):
        run_in_transaction(db, work, label="always duplicate", max_attempts=2)
