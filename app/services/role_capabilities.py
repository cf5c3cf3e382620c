"""
Role capabilities - the one place that branches on OrgRole.

The approval chain builder, the signature resolver, the escalation target
search and the API guards all ask ``capabilities_for(role)`` instead of
comparing role strings themselves.
"""
from dataclasses import dataclass
from typing import Dict, Tuple, Union

from app.core.exceptions import AuthorizationError
from app.models.document import SignatureRole
from app.models.employee import Employee, OrgRole
from app.models.leave import ApprovalRole


@dataclass(frozen=True)
class RoleCapabilities:
    # ordered approval steps for a request raised by someone holding this role
    chain_steps: Tuple[ApprovalRole, ...]
    # signature slot when this role signs without being the requester's manager
    signature_role: SignatureRole
    can_admin_cancel: bool = False
    can_verify_documents: bool = False
    can_manage_balances: bool = False
    can_control_scheduler: bool = False
    # last-resort escalation target when the org chart has nobody above
    is_escalation_fallback: bool = False


_CAPABILITIES: Dict[OrgRole, RoleCapabilities] = {
    OrgRole.EMPLOYEE: RoleCapabilities(
        chain_steps=(ApprovalRole.DIRECT_MANAGER,),
        signature_role=SignatureRole.HR,
    ),
    OrgRole.MANAGER: RoleCapabilities(
        chain_steps=(ApprovalRole.DIRECT_MANAGER, ApprovalRole.DEPARTMENT_DIRECTOR),
        signature_role=SignatureRole.HR,
    ),
    OrgRole.DEPARTMENT_DIRECTOR: RoleCapabilities(
        chain_steps=(ApprovalRole.EXECUTIVE,),
        signature_role=SignatureRole.DEPARTMENT_MANAGER,
    ),
    OrgRole.EXECUTIVE: RoleCapabilities(
        chain_steps=(ApprovalRole.PEER_EXECUTIVE,),
        signature_role=SignatureRole.EXECUTIVE,
        is_escalation_fallback=True,
    ),
    OrgRole.HR: RoleCapabilities(
        chain_steps=(ApprovalRole.DIRECT_MANAGER,),
        signature_role=SignatureRole.HR,
        can_admin_cancel=True,
        can_verify_documents=True,
        can_manage_balances=True,
        is_escalation_fallback=True,
    ),
    OrgRole.ADMIN: RoleCapabilities(
        chain_steps=(ApprovalRole.DIRECT_MANAGER,),
        signature_role=SignatureRole.HR,
        can_admin_cancel=True,
        can_verify_documents=True,
        can_manage_balances=True,
        can_control_scheduler=True,
    ),
}


def capabilities_for(role: Union[OrgRole, str]) -> RoleCapabilities:
    """Resolve the capability record for a role (enum or stored string)."""
    return _CAPABILITIES[OrgRole(role)]


def require_capability(employee: Employee, capability: str) -> None:
    """
    Raise AuthorizationError unless the employee's role grants ``capability``.

    ``capability`` is a boolean field name of RoleCapabilities, e.g.
    "can_admin_cancel".
    """
    if not getattr(capabilities_for(employee.role), capability):
        raise AuthorizationError(
            f"Role {OrgRole(employee.role).value} is not allowed to perform this action"
        )


def signature_role_for(approver: Employee, requester: Employee) -> SignatureRole:
    """
    Signature slot an approver signs under for this requester.

    The requester's direct manager always signs as manager; everyone else
    signs under the slot their own role maps to.
    """
    if requester.reporting_manager_id is not None and approver.id == requester.reporting_manager_id:
        return SignatureRole.MANAGER
    return capabilities_for(approver.role).signature_role
