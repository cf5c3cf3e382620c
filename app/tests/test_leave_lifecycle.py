"""
Tests for the leave request state machine: create, decide, finalize, cancel,
HR document verification
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import event

from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InsufficientBalanceError,
    ValidationError,
)
from app.models.audit_log import AuditLog
from app.models.employee import OrgRole
from app.models.holiday import Holiday
from app.models.leave import (
    ApprovalStatus,
    HRVerificationStatus,
    LeaveBalance,
    LeaveRequest,
    LeaveStatus,
)
from app.models.notification import Notification
from app.services import leave_request_service as svc
from app.services.approval_chain_service import sorted_levels
from app.utils.datetime_utils import now_utc
from helpers import LEAVE_YEAR, FailingNotifier, first_monday


def _balance(db, employee, leave_type, year=LEAVE_YEAR):
    db.expire_all()
    return db.query(LeaveBalance).filter(
        LeaveBalance.employee_id == employee.id,
        LeaveBalance.leave_type_id == leave_type.id,
        LeaveBalance.year == year,
    ).one()


def _create(db, requester, leave_type, days=5, start=None, notifier=None, **kwargs):
    start = start or first_monday(LEAVE_YEAR, 3)
    return svc.create_leave_request(
        db,
        requester,
        leave_type.id,
        from_date=start,
        to_date=start + timedelta(days=days - 1),
        reason="Family trip",
        notifier=notifier,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------

def test_create_reserves_balance_and_builds_chain(db, org, annual_leave, notifier):
    result = _create(db, org.employee, annual_leave, notifier=notifier)
    lr = result.leave_request

    assert lr.status == LeaveStatus.PENDING
    assert lr.total_days == Decimal("5")
    assert lr.request_number.startswith("LR-")
    levels = sorted_levels(lr)
    assert [(lvl.level, lvl.approver_id, lvl.status) for lvl in levels] == [
        (1, org.manager.id, ApprovalStatus.PENDING)
    ]
    bal = _balance(db, org.employee, annual_leave)
    assert (bal.pending, bal.available) == (Decimal("5"), Decimal("15"))
    assert notifier.events() == ["LEAVE_REQUESTED", "APPROVAL_REQUIRED"]
    assert notifier.sent[1].recipient_ids == [org.manager.id]
    assert result.warnings == []


def test_request_numbers_are_sequential(db, org, annual_leave):
    first = _create(db, org.employee, annual_leave, days=1).leave_request
    second = _create(db, org.employee, annual_leave, days=1, start=first_monday(LEAVE_YEAR, 5)).leave_request
    assert first.request_number.endswith("-0001")
    assert second.request_number.endswith("-0002")


def test_first_reservation_retries_after_losing_balance_insert(db, org, annual_leave):
    table = LeaveBalance.__table__
    calls = []

    def insert_competing_row(mapper, connection, target):
        calls.append(target.year)
        if len(calls) == 1:
            stamp = now_utc()
            connection.execute(table.insert().values(
                employee_id=target.employee_id, leave_type_id=target.leave_type_id, year=target.year,
                entitled=0, used=0, pending=0, available=0, carried_forward=0, version=1,
                created_at=stamp, updated_at=stamp,
            ))

    event.listen(LeaveBalance, "before_insert", insert_competing_row)
    try:
        lr = _create(db, org.employee, annual_leave).leave_request
    finally:
        event.remove(LeaveBalance, "before_insert", insert_competing_row)

    assert len(calls) == 2
    assert lr.status == LeaveStatus.PENDING
    assert db.query(LeaveBalance).count() == 1
    assert _balance(db, org.employee, annual_leave).pending == Decimal("5")


def test_duplicate_request_number_is_retried(db, org, annual_leave, monkeypatch):
    taken = _create(db, org.employee, annual_leave, days=1).leave_request.request_number
    real = svc.generate_request_number
    numbers = []

    def stale_count(session, year):
        numbers.append(year)
        return taken if len(numbers) == 1 else real(session, year)

    monkeypatch.setattr(svc, "generate_request_number", stale_count)
    second = _create(db, org.employee, annual_leave, days=1, start=first_monday(LEAVE_YEAR, 5)).leave_request

    assert len(numbers) == 2
    assert second.request_number.endswith("-0002")
    assert db.query(LeaveRequest).count() == 2


def test_scenario_b_insufficient_balance_no_mutation(db, org, annual_leave):
    _create(db, org.employee, annual_leave, days=5)

    # four working weeks = 20 working days, only 15 available
    with pytest.raises(InsufficientBalanceError) as exc_info:
        _create(db, org.employee, annual_leave, days=26, start=first_monday(LEAVE_YEAR, 6))

    assert exc_info.value.extra == {"requested": 20.0, "available": 15.0}
    bal = _balance(db, org.employee, annual_leave)
    assert (bal.pending, bal.available) == (Decimal("5"), Decimal("15"))
    assert db.query(LeaveRequest).count() == 1


def test_weekends_and_holidays_are_not_counted(db, org, annual_leave):
    start = first_monday(LEAVE_YEAR, 3)
    db.add(Holiday(year=LEAVE_YEAR, date=start + timedelta(days=2), name="Founders Day", active=True))
    db.commit()

    lr = _create(db, org.employee, annual_leave, days=7, start=start).leave_request
    assert lr.total_days == Decimal("4")


def test_selected_dates_reserve_only_working_days(db, org, annual_leave):
    monday = first_monday(LEAVE_YEAR, 3)
    picked = [monday, monday + timedelta(days=2), monday + timedelta(days=5)]  # Mon, Wed, Sat
    result = svc.create_leave_request(db, org.employee, annual_leave.id, selected_dates=picked)

    lr = result.leave_request
    assert lr.from_date == monday
    assert lr.to_date == monday + timedelta(days=5)
    assert lr.total_days == Decimal("2")
    assert _balance(db, org.employee, annual_leave).pending == Decimal("2")


def test_reversed_and_cross_year_ranges_are_rejected(db, org, annual_leave):
    base = first_monday(LEAVE_YEAR, 3)
    with pytest.raises(ValidationError):
        svc.create_leave_request(db, org.employee, annual_leave.id, from_date=base + timedelta(days=3), to_date=base)
    with pytest.raises(ValidationError):
        svc.create_leave_request(
            db, org.employee, annual_leave.id,
            from_date=date(LEAVE_YEAR, 12, 30), to_date=date(LEAVE_YEAR + 1, 1, 2),
        )


def test_weekend_only_request_is_rejected(db, org, annual_leave):
    saturday = first_monday(LEAVE_YEAR, 3) + timedelta(days=5)
    with pytest.raises(ValidationError):
        svc.create_leave_request(
            db, org.employee, annual_leave.id, from_date=saturday, to_date=saturday + timedelta(days=1)
        )


def test_overlap_is_a_conflict(db, org, annual_leave):
    _create(db, org.employee, annual_leave, days=5)
    with pytest.raises(ConflictError):
        _create(db, org.employee, annual_leave, days=2, start=first_monday(LEAVE_YEAR, 3) + timedelta(days=1))


def test_inactive_leave_type_is_rejected(db, org, annual_leave):
    annual_leave.is_active = False
    db.commit()
    with pytest.raises(ValidationError):
        _create(db, org.employee, annual_leave)


def test_unpaid_leave_does_not_touch_ledger(db, org, unpaid_leave):
    lr = _create(db, org.employee, unpaid_leave, days=3).leave_request
    assert lr.total_days == Decimal("3")
    assert db.query(LeaveBalance).count() == 0


def test_create_audit_entry(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    entry = db.query(AuditLog).filter(AuditLog.action == "LEAVE_REQUEST_CREATED").one()
    assert entry.entity_id == lr.id
    assert entry.actor_id == org.employee.id
    assert entry.meta_json["total_days"] == 5.0


def test_notification_failure_is_a_warning(db, org, annual_leave):
    result = _create(db, org.employee, annual_leave, notifier=FailingNotifier())
    assert result.leave_request.status == LeaveStatus.PENDING
    assert len(result.warnings) == 2
    assert db.query(LeaveRequest).count() == 1


def test_default_notifier_writes_rows(db, org, annual_leave):
    _create(db, org.employee, annual_leave)
    recipients = {n.employee_id for n in db.query(Notification).all()}
    assert recipients == {org.employee.id, org.manager.id}


# ---------------------------------------------------------------------------
# decide
# ---------------------------------------------------------------------------

def test_scenario_a_approval_commits_balance(db, org, annual_leave, notifier):
    lr = _create(db, org.employee, annual_leave).leave_request
    level = sorted_levels(lr)[0]

    result = svc.decide_approval(db, level.id, org.manager, True, comments="Enjoy", notifier=notifier)

    assert result.leave_request.status == LeaveStatus.APPROVED
    bal = _balance(db, org.employee, annual_leave)
    assert (bal.used, bal.pending, bal.available) == (Decimal("5"), Decimal("0"), Decimal("15"))
    assert "LEAVE_APPROVED" in notifier.events()


def test_only_assigned_approver_can_decide(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    level = sorted_levels(lr)[0]
    with pytest.raises(AuthorizationError):
        svc.decide_approval(db, level.id, org.director, True)


def test_repeat_decision_is_noop_and_conflicting_decision_is_409(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    level_id = sorted_levels(lr)[0].id
    svc.decide_approval(db, level_id, org.manager, True)

    again = svc.decide_approval(db, level_id, org.manager, True)
    assert again.changed is False
    assert _balance(db, org.employee, annual_leave).used == Decimal("5")

    with pytest.raises(ConflictError):
        svc.decide_approval(db, level_id, org.manager, False, comments="changed my mind")


def test_repeated_rejection_after_request_closed_is_noop(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    level_id = sorted_levels(lr)[0].id
    svc.decide_approval(db, level_id, org.manager, False, comments="Team coverage")

    again = svc.decide_approval(db, level_id, org.manager, False, comments="Team coverage")

    assert again.changed is False
    assert again.leave_request.status == LeaveStatus.REJECTED
    assert db.query(AuditLog).filter(AuditLog.action == "LEAVE_REQUEST_REJECTED").count() == 1
    with pytest.raises(ConflictError):
        svc.decide_approval(db, level_id, org.manager, True)


def test_later_level_waits_for_earlier_one(db, org, annual_leave, make_employee):
    report = make_employee("MG010", OrgRole.MANAGER, reporting_manager=org.manager, department_director=org.director)
    lr = _create(db, report, annual_leave).leave_request
    second = sorted_levels(lr)[1]
    with pytest.raises(ConflictError):
        svc.decide_approval(db, second.id, org.director, True)


def test_scenario_d_rejection_at_second_level_releases(db, org, annual_leave, make_employee):
    report = make_employee("MG011", OrgRole.MANAGER, reporting_manager=org.manager, department_director=org.director)
    lr = _create(db, report, annual_leave).leave_request
    first, second = sorted_levels(lr)

    mid = svc.decide_approval(db, first.id, org.manager, True)
    assert mid.leave_request.status == LeaveStatus.PENDING
    assert _balance(db, report, annual_leave).pending == Decimal("5")

    result = svc.decide_approval(db, second.id, org.director, False, comments="Team coverage")

    assert result.leave_request.status == LeaveStatus.REJECTED
    bal = _balance(db, report, annual_leave)
    assert (bal.pending, bal.used, bal.available) == (Decimal("0"), Decimal("0"), Decimal("20"))


def test_rejection_closes_remaining_levels(db, org, annual_leave, make_employee):
    report = make_employee("MG012", OrgRole.MANAGER, reporting_manager=org.manager, department_director=org.director)
    lr = _create(db, report, annual_leave).leave_request
    first, second = sorted_levels(lr)

    svc.decide_approval(db, first.id, org.manager, False, comments="No")

    db.expire_all()
    lr = db.get(LeaveRequest, lr.id)
    _, closed = sorted_levels(lr)
    assert closed.status == ApprovalStatus.REJECTED
    assert closed.comments.startswith("Closed: request rejected")
    with pytest.raises(ConflictError):
        svc.decide_approval(db, second.id, org.director, True)


def test_finalize_is_idempotent(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    svc.decide_approval(db, sorted_levels(lr)[0].id, org.manager, True)

    db.expire_all()
    lr = db.get(LeaveRequest, lr.id)
    assert svc.finalize_if_all_approved(db, lr) is False
    db.commit()
    assert _balance(db, org.employee, annual_leave).used == Decimal("5")


# ---------------------------------------------------------------------------
# cancel
# ---------------------------------------------------------------------------

def test_self_cancel_pending_releases(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    result = svc.cancel_leave_request(db, lr.id, org.employee, reason="Plans changed")

    assert result.leave_request.status == LeaveStatus.CANCELLED
    level = sorted_levels(result.leave_request)[0]
    assert level.status == ApprovalStatus.REJECTED
    assert level.comments == "Request cancelled by employee"
    assert _balance(db, org.employee, annual_leave).available == Decimal("20")


def test_scenario_e_cancel_approved_before_start(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    svc.decide_approval(db, sorted_levels(lr)[0].id, org.manager, True)
    day_before = lr.from_date - timedelta(days=1)

    result = svc.cancel_leave_request(db, lr.id, org.employee, today=day_before)
    assert result.leave_request.status == LeaveStatus.CANCELLED
    bal = _balance(db, org.employee, annual_leave)
    assert (bal.used, bal.available) == (Decimal("0"), Decimal("20"))

    again = svc.cancel_leave_request(db, lr.id, org.employee, today=day_before)
    assert again.changed is False
    assert again.message == "Leave request already cancelled"
    assert _balance(db, org.employee, annual_leave).available == Decimal("20")


def test_cannot_cancel_started_leave(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    svc.decide_approval(db, sorted_levels(lr)[0].id, org.manager, True)
    with pytest.raises(ConflictError):
        svc.cancel_leave_request(db, lr.id, org.employee, today=lr.from_date)


def test_cannot_cancel_rejected_or_someone_elses(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    with pytest.raises(AuthorizationError):
        svc.cancel_leave_request(db, lr.id, org.manager)

    svc.decide_approval(db, sorted_levels(lr)[0].id, org.manager, False, comments="No")
    with pytest.raises(ConflictError):
        svc.cancel_leave_request(db, lr.id, org.employee)


def test_admin_cancel_requires_capability_and_is_audited(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    with pytest.raises(AuthorizationError):
        svc.cancel_leave_request(db, lr.id, org.manager, administrative=True)

    result = svc.cancel_leave_request(db, lr.id, org.hr, reason="Duplicate", administrative=True)
    assert result.leave_request.status == LeaveStatus.CANCELLED
    assert result.leave_request.cancelled_by_id == org.hr.id
    entry = db.query(AuditLog).filter(AuditLog.action == "LEAVE_REQUEST_CANCELLED").one()
    assert entry.actor_id == org.hr.id
    assert entry.meta_json["reason"] == "Duplicate"


def test_no_level_changes_after_cancellation(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    level_id = sorted_levels(lr)[0].id
    svc.cancel_leave_request(db, lr.id, org.employee)
    with pytest.raises(ConflictError):
        svc.decide_approval(db, level_id, org.manager, True)


# ---------------------------------------------------------------------------
# HR document verification gate
# ---------------------------------------------------------------------------

def test_hr_gate_blocks_decisions_until_verified(db, org, medical_leave, notifier):
    result = _create(db, org.employee, medical_leave, days=2, notifier=notifier)
    lr = result.leave_request
    assert lr.hr_verification_status == HRVerificationStatus.PENDING
    assert notifier.events() == ["LEAVE_REQUESTED"]
    level_id = sorted_levels(lr)[0].id

    with pytest.raises(ConflictError):
        svc.decide_approval(db, level_id, org.manager, True)

    verified = svc.verify_documents(db, lr.id, org.hr, True, notes="Certificate ok", notifier=notifier)
    assert verified.leave_request.hr_verification_status == HRVerificationStatus.VERIFIED
    assert notifier.events()[-1] == "APPROVAL_REQUIRED"

    done = svc.decide_approval(db, level_id, org.manager, True)
    assert done.leave_request.status == LeaveStatus.APPROVED


def test_failed_verification_rejects_and_releases(db, org, medical_leave):
    lr = _create(db, org.employee, medical_leave, days=2).leave_request
    result = svc.verify_documents(db, lr.id, org.hr, False, notes="Illegible")

    assert result.leave_request.status == LeaveStatus.REJECTED
    assert result.leave_request.hr_verification_status == HRVerificationStatus.FAILED
    assert _balance(db, org.employee, medical_leave).available == Decimal("10")
    with pytest.raises(ConflictError):
        svc.verify_documents(db, lr.id, org.hr, True)


def test_only_hr_capable_roles_verify(db, org, medical_leave):
    lr = _create(db, org.employee, medical_leave, days=2).leave_request
    with pytest.raises(AuthorizationError):
        svc.verify_documents(db, lr.id, org.manager, True)


# ---------------------------------------------------------------------------
# reads
# ---------------------------------------------------------------------------

def test_pending_list_only_shows_active_levels(db, org, annual_leave, make_employee):
    report = make_employee("MG013", OrgRole.MANAGER, reporting_manager=org.manager, department_director=org.director)
    lr = _create(db, report, annual_leave).leave_request

    assert [lvl.leave_request_id for lvl in svc.list_pending_for_approver(db, org.manager.id)] == [lr.id]
    assert svc.list_pending_for_approver(db, org.director.id) == []

    svc.decide_approval(db, sorted_levels(lr)[0].id, org.manager, True)
    assert [lvl.leave_request_id for lvl in svc.list_pending_for_approver(db, org.director.id)] == [lr.id]


def test_visibility(db, org, annual_leave):
    lr = _create(db, org.employee, annual_leave).leave_request
    assert svc.get_leave_request(db, lr.id, org.manager).id == lr.id
    assert svc.get_leave_request(db, lr.id, org.hr).id == lr.id
    with pytest.raises(AuthorizationError):
        svc.get_leave_request(db, lr.id, org.lead)
