"""
Leave request service - the request state machine.

PENDING -> APPROVED | REJECTED | CANCELLED. APPROVED may still move to
CANCELLED while the leave has not started; REJECTED and CANCELLED are final.

Each mutating operation runs as one unit of work through
run_in_transaction (ledger mutation, level updates, audit rows and the
"all levels approved?" check commit together). Notifications and document
signatures are handled after the commit; their failures come back as
warnings next to the successful result.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.db.transaction import run_in_transaction
from app.models.document import SignatureRole
from app.models.employee import Employee, OrgRole
from app.models.leave import (
    ApprovalLevel,
    ApprovalStatus,
    HRVerificationStatus,
    LeaveRequest,
    LeaveStatus,
    LeaveTypeConfig,
)
from app.services import balance_ledger_service as ledger
from app.services import notification_service as notices
from app.services import signature_service
from app.services.approval_chain_service import (
    active_levels,
    build_chain,
    chain_is_open,
    create_approval_levels,
    sorted_levels,
)
from app.services.audit_service import log_audit
from app.services.role_capabilities import capabilities_for, require_capability
from app.services.working_days_service import count_working_days
from app.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


@dataclass
class LeaveOperationResult:
    leave_request: LeaveRequest
    warnings: List[str] = field(default_factory=list)
    message: Optional[str] = None
    changed: bool = True


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------

def _get_request(db: Session, leave_request_id: int, lock: bool = False) -> LeaveRequest:
    query = db.query(LeaveRequest).filter(LeaveRequest.id == leave_request_id)
    if lock:
        query = query.with_for_update().populate_existing()
    leave_request = query.first()
    if leave_request is None:
        raise NotFoundError(f"Leave request with id {leave_request_id} not found")
    return leave_request


def _snapshot(leave_request: LeaveRequest) -> dict:
    return {
        "status": leave_request.status,
        "hr_verification_status": leave_request.hr_verification_status,
        "levels": [
            {"id": lvl.id, "level": lvl.level, "approver_id": lvl.approver_id, "status": lvl.status}
            for lvl in sorted_levels(leave_request)
        ],
    }


def _tracks_balance(leave_request: LeaveRequest) -> bool:
    return bool(leave_request.leave_type and leave_request.leave_type.tracks_balance)


def _release_balance(db: Session, leave_request: LeaveRequest, was_approved: bool, actor_id: Optional[int]) -> None:
    if not _tracks_balance(leave_request):
        return
    ledger.release(
        db,
        leave_request.employee_id,
        leave_request.leave_type_id,
        leave_request.from_date.year,
        leave_request.total_days,
        was_approved,
        leave_request_id=leave_request.id,
        actor_id=actor_id,
    )


def _close_pending_levels(leave_request: LeaveRequest, comment: str, actor_id: Optional[int]) -> List[int]:
    """Reject every still-PENDING level with a system comment; decided levels are left alone."""
    closed = []
    now = now_utc()
    for lvl in leave_request.approval_levels:
        if lvl.status != ApprovalStatus.PENDING:
            continue
        lvl.status = ApprovalStatus.REJECTED
        lvl.comments = comment
        lvl.decided_at = now
        lvl.decided_by_id = actor_id
        closed.append(lvl.id)
    return closed


def _transition(leave_request: LeaveRequest, after: LeaveStatus, action: str) -> None:
    before = leave_request.status
    leave_request.status = after
    logger.info(
        "leave status transition: leave_request_id=%s before=%s after=%s action=%s",
        leave_request.id, before.value, after.value, action,
    )


def generate_request_number(db: Session, year: int) -> str:
    """LR-<year>-<sequence>, sequence counted per creation year."""
    prefix = f"LR-{year}-"
    count = db.query(func.count(LeaveRequest.id)).filter(LeaveRequest.request_number.like(f"{prefix}%")).scalar()
    return f"{prefix}{(count or 0) + 1:04d}"


def validate_dates(from_date: date, to_date: date, selected_dates: Optional[List[date]]) -> None:
    """
    Validate the requested period.

    Raises:
        ValidationError: from_date after to_date, dates across a year boundary,
            or selected dates outside the range
    """
    if from_date > to_date:
        raise ValidationError("from_date must be on or before to_date")
    if from_date.year != to_date.year:
        raise ValidationError(
            f"Leave cannot span across years. From date year: {from_date.year}, To date year: {to_date.year}"
        )
    if selected_dates is not None:
        if not selected_dates:
            raise ValidationError("selected_dates must not be empty when provided")
        outside = [d for d in selected_dates if d < from_date or d > to_date]
        if outside:
            raise ValidationError(f"Selected dates outside the requested range: {sorted(outside)}")


def validate_overlap(db: Session, employee_id: int, from_date: date, to_date: date) -> None:
    """
    Reject a request overlapping an existing PENDING or APPROVED request.

    Raises:
        ConflictError: overlap detected
    """
    overlapping = db.query(LeaveRequest).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_([LeaveStatus.PENDING, LeaveStatus.APPROVED]),
        LeaveRequest.to_date >= from_date,
        LeaveRequest.from_date <= to_date,
    ).first()
    if overlapping:
        raise ConflictError(
            f"Leave request overlaps with {overlapping.request_number} "
            f"from {overlapping.from_date} to {overlapping.to_date}"
        )


def _after_commit(db: Session, notifier: notices.Notifier, build: Callable[[], List[notices.LeaveNotification]]) -> List[str]:
    try:
        notifications = build()
    except Exception as exc:
        logger.warning("could not build notifications: error=%s", exc)
        return ["Notifications could not be prepared"]
    return notices.dispatch(db, notifier, notifications)


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------

def create_leave_request(
    db: Session,
    requester: Employee,
    leave_type_id: int,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    selected_dates: Optional[List[date]] = None,
    reason: Optional[str] = None,
    selected_peer_id: Optional[int] = None,
    employee_signature: Optional[str] = None,
    notifier: Optional[notices.Notifier] = None,
) -> LeaveOperationResult:
    """
    Create a PENDING leave request

    Validates the period, counts working days, reserves the balance, builds the
    approval chain and writes the audit entry in one transaction.

    Args:
        db: Database session
        requester: Employee raising the request
        leave_type_id: Configured leave type
        from_date, to_date: Date range (derived from selected_dates when omitted)
        selected_dates: Explicit non-contiguous dates; only their working days count
        reason: Free text
        selected_peer_id: Peer executive for executive self-requests
        employee_signature: Optional requester signature for the document
        notifier: Notification sink

    Returns:
        LeaveOperationResult with the new request and any downstream warnings

    Raises:
        ValidationError: bad dates, unknown/inactive leave type, zero working days, no approver
        ConflictError: overlap with an existing request
        InsufficientBalanceError: not enough available days
    """
    notifier = notifier or notices.InAppNotifier()
    if selected_dates:
        selected_dates = sorted(set(selected_dates))
        from_date = from_date or selected_dates[0]
        to_date = to_date or selected_dates[-1]
    if from_date is None or to_date is None:
        raise ValidationError("Provide from_date and to_date, or selected_dates")
    validate_dates(from_date, to_date, selected_dates)

    requester_id = requester.id

    def work() -> int:
        employee = db.query(Employee).filter(Employee.id == requester_id).first()
        leave_type = db.query(LeaveTypeConfig).filter(LeaveTypeConfig.id == leave_type_id).first()
        if leave_type is None or not leave_type.is_active:
            raise ValidationError(f"Leave type {leave_type_id} does not exist or is inactive")

        total_days = count_working_days(db, from_date, to_date, selected_dates)
        if total_days <= 0:
            raise ValidationError("The requested period contains no working days")
        validate_overlap(db, requester_id, from_date, to_date)

        steps = build_chain(db, employee, selected_peer_id=selected_peer_id)

        leave_request = LeaveRequest(
            request_number=generate_request_number(db, now_utc().year),
            employee_id=requester_id,
            leave_type_id=leave_type.id,
            from_date=from_date,
            to_date=to_date,
            selected_dates=[d.isoformat() for d in selected_dates] if selected_dates else None,
            total_days=total_days,
            reason=reason,
            status=LeaveStatus.PENDING,
            hr_verification_status=(
                HRVerificationStatus.PENDING if leave_type.requires_hr_verification
                else HRVerificationStatus.NOT_REQUIRED
            ),
        )
        db.add(leave_request)
        db.flush()

        if leave_type.tracks_balance:
            ledger.reserve(
                db, requester_id, leave_type.id, from_date.year, total_days,
                leave_request_id=leave_request.id, actor_id=requester_id,
            )
        create_approval_levels(db, leave_request, steps)
        db.refresh(leave_request)

        log_audit(
            db,
            actor_id=requester_id,
            action="LEAVE_REQUEST_CREATED",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={
                "request_number": leave_request.request_number,
                "leave_type": leave_type.code,
                "from_date": from_date,
                "to_date": to_date,
                "selected_dates": selected_dates,
                "total_days": total_days,
                "after": _snapshot(leave_request),
            },
        )
        logger.info(
            "leave request created: leave_request_id=%s employee_id=%s leave_type=%s days=%s",
            leave_request.id, requester_id, leave_type.code, total_days,
        )
        return leave_request.id

    leave_request_id = run_in_transaction(db, work, label="create leave request")
    leave_request = _get_request(db, leave_request_id)

    warnings: List[str] = []
    try:
        document = signature_service.ensure_document(db, leave_request)
        if employee_signature:
            signature_service.attach_signature(
                db, document, requester_id, SignatureRole.EMPLOYEE,
                employee_signature, actor_id=requester_id,
            )
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning("document setup failed: leave_request_id=%s error=%s", leave_request_id, exc)
        warnings.append("Leave document could not be prepared")

    def build():
        items = [notices.leave_requested(leave_request)]
        if chain_is_open(leave_request):
            items.append(notices.approval_required(
                leave_request, [lvl.approver_id for lvl in active_levels(leave_request)]
            ))
        return items

    warnings += _after_commit(db, notifier, build)
    return LeaveOperationResult(leave_request=leave_request, warnings=warnings)


# ---------------------------------------------------------------------------
# finalize
# ---------------------------------------------------------------------------

def finalize_if_all_approved(db: Session, leave_request: LeaveRequest, actor_id: Optional[int] = None) -> bool:
    """
    Move a PENDING request to APPROVED when every level is APPROVED.

    Commits the reserved days to used. Calling it on a request that is already
    APPROVED (or not PENDING) does nothing and returns False.
    """
    if leave_request.status != LeaveStatus.PENDING:
        return False
    levels = leave_request.approval_levels
    if not levels or any(lvl.status != ApprovalStatus.APPROVED for lvl in levels):
        return False

    before = _snapshot(leave_request)
    _transition(leave_request, LeaveStatus.APPROVED, "finalize")
    leave_request.updated_at = now_utc()
    if _tracks_balance(leave_request):
        ledger.commit(
            db,
            leave_request.employee_id,
            leave_request.leave_type_id,
            leave_request.from_date.year,
            leave_request.total_days,
            leave_request_id=leave_request.id,
            actor_id=actor_id,
        )
    db.flush()
    log_audit(
        db,
        actor_id=actor_id,
        action="LEAVE_REQUEST_APPROVED",
        entity_type="leave_requests",
        entity_id=leave_request.id,
        meta={"before": before, "after": _snapshot(leave_request)},
    )
    return True


# ---------------------------------------------------------------------------
# decide
# ---------------------------------------------------------------------------

def decide_approval(
    db: Session,
    level_id: int,
    approver: Employee,
    approve: bool,
    comments: Optional[str] = None,
    signature_data: Optional[str] = None,
    notifier: Optional[notices.Notifier] = None,
) -> LeaveOperationResult:
    """
    Approve or reject one approval level

    A rejection rejects the whole request and releases the balance. An
    approval finalizes the request when it was the last outstanding level.
    Repeating a decision with the same outcome is a no-op.

    Raises:
        NotFoundError: unknown level
        AuthorizationError: caller is not the level's approver
        ConflictError: request already REJECTED/CANCELLED, level decided with a
            different outcome, superseded by escalation, or not yet active
    """
    notifier = notifier or notices.InAppNotifier()
    outcome = ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED
    approver_id = approver.id
    state = {"changed": True, "finalized": False, "rejected": False, "document_completed": False}

    def work() -> int:
        level = db.query(ApprovalLevel).filter(ApprovalLevel.id == level_id).first()
        if level is None:
            raise NotFoundError(f"Approval level with id {level_id} not found")
        leave_request = _get_request(db, level.leave_request_id, lock=True)

        if level.approver_id != approver_id:
            raise AuthorizationError("You are not the assigned approver for this level")

        # a retried decision by the same approver, even after it ended the request
        if level.status == outcome and level.decided_by_id == approver_id:
            state["changed"] = False
            return leave_request.id

        if leave_request.status in (LeaveStatus.CANCELLED, LeaveStatus.REJECTED):
            raise ConflictError(
                f"Leave request is {leave_request.status.value}; approval actions are no longer accepted"
            )

        if level.status != ApprovalStatus.PENDING:
            raise ConflictError(f"Approval level already {level.status.value}")

        if level.escalated_to_id is not None:
            raise ConflictError("This approval level was escalated and is handled by the new approver")

        if leave_request.status != LeaveStatus.PENDING:
            raise ConflictError(f"Leave request is already {leave_request.status.value}")

        if leave_request.hr_verification_status == HRVerificationStatus.PENDING:
            raise ConflictError("Awaiting HR document verification")

        if level not in active_levels(leave_request):
            raise ConflictError("Earlier approval levels are still pending")

        before = _snapshot(leave_request)
        now = now_utc()
        level.status = outcome
        level.decided_at = now
        level.decided_by_id = approver_id
        level.comments = comments
        if approve and signature_data:
            level.signature_data = signature_data

        # levels this one replaced through escalation follow its outcome
        for other in leave_request.approval_levels:
            if (
                other.id != level.id
                and other.level == level.level
                and other.status == ApprovalStatus.PENDING
                and other.escalated_to_id is not None
            ):
                other.status = outcome
                other.decided_at = now
                other.decided_by_id = approver_id
                other.comments = f"Resolved through escalated level {level.id}"

        # bumps the request version so concurrent deciders on this request serialize
        leave_request.updated_at = now

        if approve:
            db.flush()
            state["finalized"] = finalize_if_all_approved(db, leave_request, actor_id=approver_id)
        else:
            _transition(leave_request, LeaveStatus.REJECTED, "reject")
            _close_pending_levels(
                leave_request, f"Closed: request rejected at level {level.level}", approver_id
            )
            _release_balance(db, leave_request, was_approved=False, actor_id=approver_id)
            state["rejected"] = True
        db.flush()

        log_audit(
            db,
            actor_id=approver_id,
            action="APPROVAL_LEVEL_APPROVED" if approve else "APPROVAL_LEVEL_REJECTED",
            entity_type="approval_levels",
            entity_id=level.id,
            meta={
                "leave_request_id": leave_request.id,
                "level": level.level,
                "comments": comments,
                "before": before,
                "after": _snapshot(leave_request),
            },
        )
        if state["rejected"]:
            log_audit(
                db,
                actor_id=approver_id,
                action="LEAVE_REQUEST_REJECTED",
                entity_type="leave_requests",
                entity_id=leave_request.id,
                meta={"level": level.level, "before": before, "after": _snapshot(leave_request)},
            )
        return leave_request.id

    leave_request_id = run_in_transaction(db, work, label="approval decision")
    leave_request = _get_request(db, leave_request_id)
    if not state["changed"]:
        return LeaveOperationResult(
            leave_request=leave_request,
            changed=False,
            message=f"Approval level already {outcome.value}",
        )

    warnings: List[str] = []
    if approve:
        try:
            level = db.query(ApprovalLevel).filter(ApprovalLevel.id == level_id).first()
            signature_service.record_approval_signature(db, level)
            state["document_completed"] = signature_service.refresh_document_status(db, leave_request)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.warning("signature recording failed: level_id=%s error=%s", level_id, exc)
            warnings.append("Signature could not be attached to the leave document")

    def build():
        if state["rejected"]:
            return [notices.leave_rejected(leave_request, comments)]
        if state["finalized"]:
            items = [notices.leave_approved(leave_request, approver.name)]
            if state["document_completed"]:
                items.append(notices.document_ready(leave_request))
            return items
        return [notices.approval_required(leave_request, [lvl.approver_id for lvl in active_levels(leave_request)])]

    warnings += _after_commit(db, notifier, build)
    return LeaveOperationResult(leave_request=leave_request, warnings=warnings)


# ---------------------------------------------------------------------------
# cancel
# ---------------------------------------------------------------------------

def cancel_leave_request(
    db: Session,
    leave_request_id: int,
    actor: Employee,
    reason: Optional[str] = None,
    administrative: bool = False,
    today: Optional[date] = None,
    notifier: Optional[notices.Notifier] = None,
) -> LeaveOperationResult:
    """
    Cancel a request (self-service or administrative)

    Allowed while PENDING, or APPROVED with a start date still in the future.
    Still-PENDING levels are rejected with a system comment, decided levels are
    skipped, and the balance is released (usage is given back for approved
    requests). Cancelling an already-CANCELLED request is a no-op.

    Raises:
        NotFoundError: unknown request
        AuthorizationError: not the owner (self) or lacking admin cancel capability
        ConflictError: request REJECTED, or APPROVED leave already started
    """
    notifier = notifier or notices.InAppNotifier()
    today = today or date.today()
    actor_id = actor.id
    actor_role = OrgRole(actor.role)
    state = {"changed": True, "approvers": []}

    if administrative:
        require_capability(actor, "can_admin_cancel")

    def work() -> int:
        leave_request = _get_request(db, leave_request_id, lock=True)
        if not administrative and leave_request.employee_id != actor_id:
            raise AuthorizationError("You can only cancel your own leave requests")

        if leave_request.status == LeaveStatus.CANCELLED:
            state["changed"] = False
            return leave_request.id
        if leave_request.status == LeaveStatus.REJECTED:
            raise ConflictError("Cannot cancel a rejected leave request")
        was_approved = leave_request.status == LeaveStatus.APPROVED
        if was_approved and leave_request.from_date <= today:
            raise ConflictError("Cannot cancel an approved leave that has already started")

        before = _snapshot(leave_request)
        state["approvers"] = sorted({lvl.approver_id for lvl in leave_request.approval_levels})
        role_label = "admin" if administrative else actor_role.value.lower()
        _close_pending_levels(leave_request, f"Request cancelled by {role_label}", actor_id)
        _transition(leave_request, LeaveStatus.CANCELLED, "admin_cancel" if administrative else "self_cancel")
        leave_request.cancelled_by_id = actor_id
        leave_request.cancelled_at = now_utc()
        leave_request.cancellation_reason = reason
        _release_balance(db, leave_request, was_approved=was_approved, actor_id=actor_id)
        db.flush()

        log_audit(
            db,
            actor_id=actor_id,
            action="LEAVE_REQUEST_CANCELLED" if administrative else "LEAVE_REQUEST_SELF_CANCELLED",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={
                "reason": reason,
                "actor_role": actor_role.value,
                "was_approved": was_approved,
                "total_days": leave_request.total_days,
                "before": before,
                "after": _snapshot(leave_request),
            },
        )
        return leave_request.id

    leave_request_id = run_in_transaction(db, work, label="cancel leave request")
    leave_request = _get_request(db, leave_request_id)
    if not state["changed"]:
        return LeaveOperationResult(leave_request=leave_request, changed=False, message="Leave request already cancelled")

    def build():
        recipients = set(state["approvers"])
        recipients.add(leave_request.employee_id)
        recipients.discard(actor_id)
        return [notices.leave_cancelled(leave_request, sorted(recipients))]

    warnings = _after_commit(db, notifier, build)
    return LeaveOperationResult(leave_request=leave_request, warnings=warnings, message="Leave request cancelled")


# ---------------------------------------------------------------------------
# HR document verification gate
# ---------------------------------------------------------------------------

def verify_documents(
    db: Session,
    leave_request_id: int,
    hr_actor: Employee,
    approved: bool,
    notes: Optional[str] = None,
    notifier: Optional[notices.Notifier] = None,
) -> LeaveOperationResult:
    """
    Record HR's verdict on supporting documents

    Passing opens the approval chain; failing rejects the request and
    releases its reservation.

    Raises:
        AuthorizationError: caller cannot verify documents
        ConflictError: request not awaiting verification
    """
    require_capability(hr_actor, "can_verify_documents")
    notifier = notifier or notices.InAppNotifier()
    actor_id = hr_actor.id

    def work() -> int:
        leave_request = _get_request(db, leave_request_id, lock=True)
        if leave_request.status != LeaveStatus.PENDING:
            raise ConflictError(f"Leave request is already {leave_request.status.value}")
        if leave_request.hr_verification_status != HRVerificationStatus.PENDING:
            raise ConflictError("Leave request is not awaiting HR document verification")

        before = _snapshot(leave_request)
        now = now_utc()
        leave_request.hr_verified_by_id = actor_id
        leave_request.hr_verified_at = now
        leave_request.hr_verification_notes = notes
        if approved:
            leave_request.hr_verification_status = HRVerificationStatus.VERIFIED
        else:
            leave_request.hr_verification_status = HRVerificationStatus.FAILED
            _transition(leave_request, LeaveStatus.REJECTED, "hr_verification_failed")
            _close_pending_levels(leave_request, "Closed: HR document verification failed", actor_id)
            _release_balance(db, leave_request, was_approved=False, actor_id=actor_id)
        db.flush()
        log_audit(
            db,
            actor_id=actor_id,
            action="HR_DOCUMENT_APPROVED" if approved else "HR_DOCUMENT_REJECTED",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={"notes": notes, "before": before, "after": _snapshot(leave_request)},
        )
        return leave_request.id

    leave_request_id = run_in_transaction(db, work, label="hr document verification")
    leave_request = _get_request(db, leave_request_id)

    def build():
        if not approved:
            return [notices.leave_rejected(leave_request, notes or "supporting documents were not accepted")]
        return [notices.approval_required(leave_request, [lvl.approver_id for lvl in active_levels(leave_request)])]

    warnings = _after_commit(db, notifier, build)
    return LeaveOperationResult(leave_request=leave_request, warnings=warnings)


# ---------------------------------------------------------------------------
# reads
# ---------------------------------------------------------------------------

def can_view(leave_request: LeaveRequest, viewer: Employee) -> bool:
    if leave_request.employee_id == viewer.id:
        return True
    if any(lvl.approver_id == viewer.id for lvl in leave_request.approval_levels):
        return True
    caps = capabilities_for(viewer.role)
    return caps.can_admin_cancel or caps.can_verify_documents


def get_leave_request(db: Session, leave_request_id: int, viewer: Employee) -> LeaveRequest:
    leave_request = _get_request(db, leave_request_id)
    if not can_view(leave_request, viewer):
        raise AuthorizationError("You are not allowed to view this leave request")
    return leave_request


def list_my_requests(db: Session, employee_id: int, status: Optional[LeaveStatus] = None) -> List[LeaveRequest]:
    query = db.query(LeaveRequest).filter(LeaveRequest.employee_id == employee_id)
    if status is not None:
        query = query.filter(LeaveRequest.status == status)
    return query.order_by(LeaveRequest.from_date.desc(), LeaveRequest.id.desc()).all()


def list_pending_for_approver(db: Session, approver_id: int) -> List[ApprovalLevel]:
    """Levels the approver can act on right now."""
    candidates = (
        db.query(ApprovalLevel)
        .join(LeaveRequest, LeaveRequest.id == ApprovalLevel.leave_request_id)
        .filter(
            ApprovalLevel.approver_id == approver_id,
            ApprovalLevel.status == ApprovalStatus.PENDING,
            ApprovalLevel.escalated_to_id.is_(None),
            LeaveRequest.status == LeaveStatus.PENDING,
        )
        .order_by(ApprovalLevel.created_at, ApprovalLevel.id)
        .all()
    )
    return [lvl for lvl in candidates if lvl in active_levels(lvl.leave_request)]


def reserved_days(leave_request: LeaveRequest) -> Decimal:
    return leave_request.total_days if _tracks_balance(leave_request) else Decimal("0")
