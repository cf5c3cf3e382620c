"""
Approval chain builder.

Turns the requester's position in the org chart into an ordered list of
approval steps. Steps whose approver already holds an earlier step (typically
a manager who is also the department director) stay in the plan with
required=False and get no ApprovalLevel row.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.models.employee import Employee, OrgRole
from app.models.leave import (
    ApprovalLevel,
    ApprovalRole,
    ApprovalStatus,
    HRVerificationStatus,
    LeaveRequest,
    LeaveStatus,
)
from app.services.role_capabilities import capabilities_for

logger = logging.getLogger(__name__)


@dataclass
class ChainStep:
    level: int
    role: ApprovalRole
    approver_id: int
    required: bool = True
    note: Optional[str] = None

    def to_json(self) -> Dict:
        data = asdict(self)
        data["role"] = self.role.value
        return data

    @classmethod
    def from_json(cls, data: Dict) -> "ChainStep":
        return cls(
            level=int(data["level"]),
            role=ApprovalRole(data["role"]),
            approver_id=int(data["approver_id"]),
            required=bool(data.get("required", True)),
            note=data.get("note"),
        )


def _active(db: Session, employee_id: Optional[int]) -> Optional[Employee]:
    if employee_id is None:
        return None
    return db.query(Employee).filter(Employee.id == employee_id, Employee.active.is_(True)).first()


def first_active_with_roles(
    db: Session,
    roles: Iterable[OrgRole],
    exclude_ids: Iterable[int] = (),
) -> Optional[Employee]:
    """Lowest-id active employee holding one of ``roles``, skipping ``exclude_ids``."""
    query = db.query(Employee).filter(Employee.active.is_(True), Employee.role.in_(list(roles)))
    exclude = [i for i in exclude_ids if i is not None]
    if exclude:
        query = query.filter(Employee.id.notin_(exclude))
    return query.order_by(Employee.id).first()


def _resolve_step_approver(
    db: Session,
    requester: Employee,
    step: ApprovalRole,
    selected_peer_id: Optional[int],
) -> Optional[Employee]:
    if step == ApprovalRole.DIRECT_MANAGER:
        return (
            _active(db, requester.reporting_manager_id)
            or _active(db, requester.department_director_id)
            or first_active_with_roles(db, [OrgRole.EXECUTIVE], exclude_ids=[requester.id])
        )
    if step == ApprovalRole.DEPARTMENT_DIRECTOR:
        return _active(db, requester.department_director_id)
    if step == ApprovalRole.EXECUTIVE:
        return (
            first_active_with_roles(db, [OrgRole.EXECUTIVE], exclude_ids=[requester.id])
            or _active(db, requester.reporting_manager_id)
        )
    if step == ApprovalRole.PEER_EXECUTIVE:
        if selected_peer_id is not None:
            peer = _active(db, selected_peer_id)
            if peer is None or OrgRole(peer.role) != OrgRole.EXECUTIVE or peer.id == requester.id:
                raise ValidationError("Selected peer must be another active executive")
            return peer
        return first_active_with_roles(db, [OrgRole.EXECUTIVE], exclude_ids=[requester.id])
    return None


def build_chain(
    db: Session,
    requester: Employee,
    selected_peer_id: Optional[int] = None,
) -> List[ChainStep]:
    """
    Build the approval plan for a request raised by ``requester``.

    Args:
        db: Database session
        requester: Employee raising the request
        selected_peer_id: Peer executive chosen by an executive requester

    Returns:
        Ordered ChainSteps; only required ones become ApprovalLevel rows

    Raises:
        ValidationError: No eligible approver for the first step
    """
    steps: List[ChainStep] = []
    levels_by_approver: Dict[int, int] = {}
    previous: Optional[Employee] = None

    for step_role in capabilities_for(requester.role).chain_steps:
        approver = _resolve_step_approver(db, requester, step_role, selected_peer_id)
        if approver is None or approver.id == requester.id:
            if not steps:
                raise ValidationError(
                    "No approver could be determined for this request; "
                    "ask HR to assign a reporting manager"
                )
            continue
        if (
            step_role == ApprovalRole.DEPARTMENT_DIRECTOR
            and previous is not None
            and OrgRole(previous.role) == OrgRole.EXECUTIVE
        ):
            # an executive manager's sign-off already outranks the director
            continue
        if approver.id in levels_by_approver:
            steps.append(ChainStep(
                level=levels_by_approver[approver.id],
                role=step_role,
                approver_id=approver.id,
                required=False,
                note=f"Same approver as level {levels_by_approver[approver.id]}",
            ))
            continue
        level = len(levels_by_approver) + 1
        levels_by_approver[approver.id] = level
        steps.append(ChainStep(level=level, role=step_role, approver_id=approver.id))
        previous = approver

    return steps


def create_approval_levels(db: Session, leave_request: LeaveRequest, steps: List[ChainStep]) -> List[ApprovalLevel]:
    """Persist the plan on the request and one PENDING level per required step."""
    leave_request.approval_chain_json = [s.to_json() for s in steps]
    levels = []
    for step in steps:
        if not step.required:
            continue
        level = ApprovalLevel(
            leave_request_id=leave_request.id,
            level=step.level,
            role=step.role,
            approver_id=step.approver_id,
            status=ApprovalStatus.PENDING,
        )
        db.add(level)
        levels.append(level)
    db.flush()
    logger.info(
        "approval chain created: leave_request_id=%s levels=%s plan=%s",
        leave_request.id,
        len(levels),
        [(s.level, s.role.value, s.approver_id, s.required) for s in steps],
    )
    return levels


def load_chain_plan(leave_request: LeaveRequest) -> List[ChainStep]:
    return [ChainStep.from_json(item) for item in (leave_request.approval_chain_json or [])]


def sorted_levels(leave_request: LeaveRequest) -> List[ApprovalLevel]:
    return sorted(leave_request.approval_levels, key=lambda lvl: (lvl.level, lvl.id))


def chain_is_open(leave_request: LeaveRequest) -> bool:
    """PENDING and past the HR document gate (if the leave type has one)."""
    return leave_request.status == LeaveStatus.PENDING and leave_request.hr_verification_status in (
        HRVerificationStatus.NOT_REQUIRED,
        HRVerificationStatus.VERIFIED,
    )


def active_levels(leave_request: LeaveRequest) -> List[ApprovalLevel]:
    """
    Levels that may be decided now: PENDING, not superseded by an escalation,
    at the lowest pending ordinal. Usually one; several when peers share an ordinal.
    """
    if not chain_is_open(leave_request):
        return []
    pending = [
        lvl for lvl in leave_request.approval_levels
        if lvl.status == ApprovalStatus.PENDING and lvl.escalated_to_id is None
    ]
    if not pending:
        return []
    lowest = min(lvl.level for lvl in pending)
    return sorted((lvl for lvl in pending if lvl.level == lowest), key=lambda lvl: lvl.id)
