"""
Escalation evaluator - reassigns approval levels left idle past the threshold.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.employee import Employee, OrgRole
from app.models.leave import (
    ApprovalLevel,
    ApprovalRole,
    ApprovalStatus,
    LeaveRequest,
    LeaveStatus,
)
from app.services import notification_service as notices
from app.services.approval_chain_service import active_levels, first_active_with_roles
from app.services.audit_service import log_audit
from app.utils.datetime_utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)


def activation_time(leave_request: LeaveRequest, level: ApprovalLevel) -> datetime:
    """
    When the level became actionable: the latest of its creation, the last
    decision on an earlier ordinal, and HR document verification.
    """
    moments = [ensure_utc(level.created_at)]
    prior = [
        ensure_utc(lvl.decided_at)
        for lvl in leave_request.approval_levels
        if lvl.level < level.level and lvl.decided_at is not None
    ]
    if prior:
        moments.append(max(prior))
    if leave_request.hr_verified_at is not None:
        moments.append(ensure_utc(leave_request.hr_verified_at))
    return max(moments)


def _active_employee(db: Session, employee_id: Optional[int]) -> Optional[Employee]:
    if employee_id is None:
        return None
    return db.query(Employee).filter(Employee.id == employee_id, Employee.active.is_(True)).first()


def find_escalation_target(db: Session, leave_request: LeaveRequest, level: ApprovalLevel) -> Optional[Employee]:
    """
    Approver's own manager, then the approver's department director, then the
    first active HR/EXECUTIVE employee. Never the requester, the current
    approver, or anyone already holding a level at the same ordinal.
    """
    excluded = {leave_request.employee_id, level.approver_id}
    excluded.update(lvl.approver_id for lvl in leave_request.approval_levels if lvl.level == level.level)

    approver = level.approver
    for candidate_id in (approver.reporting_manager_id, approver.department_director_id):
        if candidate_id in excluded:
            continue
        candidate = _active_employee(db, candidate_id)
        if candidate is not None:
            return candidate
    return first_active_with_roles(db, [OrgRole.HR, OrgRole.EXECUTIVE], exclude_ids=excluded)


def _escalations_at(leave_request: LeaveRequest, ordinal: int) -> int:
    return sum(
        1 for lvl in leave_request.approval_levels
        if lvl.level == ordinal and lvl.escalated_from_id is not None
    )


def _escalate_level(
    db: Session,
    leave_request: LeaveRequest,
    level: ApprovalLevel,
    target: Employee,
    idle_days: int,
    now: datetime,
) -> Optional[ApprovalLevel]:
    """Claim the level with a conditional UPDATE and add the replacement level. None if another run won."""
    reason = f"Auto-escalated after {idle_days} days of inactivity"
    table = ApprovalLevel.__table__
    result = db.execute(
        update(table)
        .where(
            table.c.id == level.id,
            table.c.escalated_to_id.is_(None),
            table.c.status == ApprovalStatus.PENDING,
        )
        .values(
            escalated_to_id=target.id,
            escalated_at=now,
            escalation_reason=reason,
            version=table.c.version + 1,
        )
    )
    if result.rowcount != 1:
        db.rollback()
        logger.info("escalation skipped, level already handled: level_id=%s", level.id)
        return None
    db.expire(level)

    replacement = ApprovalLevel(
        leave_request_id=leave_request.id,
        level=level.level,
        role=ApprovalRole.ESCALATION,
        approver_id=target.id,
        status=ApprovalStatus.PENDING,
        escalated_from_id=level.id,
        escalation_reason=reason,
        created_at=now,
    )
    db.add(replacement)
    db.flush()
    log_audit(
        db,
        actor_id=None,
        action="APPROVAL_ESCALATED",
        entity_type="approval_levels",
        entity_id=level.id,
        meta={
            "leave_request_id": leave_request.id,
            "level": level.level,
            "from_approver_id": level.approver_id,
            "to_approver_id": target.id,
            "new_level_id": replacement.id,
            "reason": reason,
        },
    )
    db.commit()
    logger.info(
        "approval escalated: leave_request_id=%s level_id=%s from=%s to=%s",
        leave_request.id, level.id, level.approver_id, target.id,
    )
    return replacement


def run_escalation_check(
    db: Session,
    notifier: Optional[notices.Notifier] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Escalate every overdue active level once

    Each escalation commits on its own; a failing level is rolled back and
    logged without stopping the run.

    Returns:
        Summary with counts and the escalated level ids
    """
    notifier = notifier or notices.InAppNotifier()
    now = ensure_utc(now) if now is not None else now_utc()
    summary: Dict[str, Any] = {
        "checked": 0,
        "escalated": 0,
        "skipped": 0,
        "failed": 0,
        "escalated_level_ids": [],
        "warnings": [],
        "ran_at": now,
    }
    if not settings.ESCALATION_ENABLED:
        logger.info("escalation check disabled by configuration")
        summary["disabled"] = True
        return summary

    threshold = timedelta(days=settings.ESCALATION_THRESHOLD_DAYS)
    request_ids: List[int] = [
        row[0] for row in db.query(LeaveRequest.id).filter(LeaveRequest.status == LeaveStatus.PENDING).all()
    ]

    for leave_request_id in request_ids:
        leave_request = db.query(LeaveRequest).filter(LeaveRequest.id == leave_request_id).first()
        if leave_request is None:
            continue
        for level in active_levels(leave_request):
            summary["checked"] += 1
            idle = now - activation_time(leave_request, level)
            if idle <= threshold:
                continue
            if _escalations_at(leave_request, level.level) >= settings.ESCALATION_MAX_LEVELS:
                logger.info(
                    "escalation cap reached: leave_request_id=%s level=%s", leave_request.id, level.level
                )
                summary["skipped"] += 1
                continue
            target = find_escalation_target(db, leave_request, level)
            if target is None:
                logger.warning(
                    "no escalation target: leave_request_id=%s level_id=%s", leave_request.id, level.id
                )
                summary["skipped"] += 1
                continue
            try:
                replacement = _escalate_level(db, leave_request, level, target, idle.days, now)
            except Exception as exc:
                db.rollback()
                logger.error("escalation failed: level_id=%s error=%s", level.id, exc, exc_info=True)
                summary["failed"] += 1
                continue
            if replacement is None:
                summary["skipped"] += 1
                continue
            summary["escalated"] += 1
            summary["escalated_level_ids"].append(level.id)
            summary["warnings"] += notices.dispatch(
                db, notifier, [notices.approval_escalated(leave_request, target.id, replacement.escalation_reason)]
            )

    logger.info(
        "escalation check finished: checked=%s escalated=%s skipped=%s failed=%s",
        summary["checked"], summary["escalated"], summary["skipped"], summary["failed"],
    )
    return summary
