"""
Signature role resolver.

Maps approvals onto the fixed signature slots of a leave document
(employee, manager, department_manager, executive, hr) and keeps one person
from owing two signatures when they hold two positions for the requester.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from app.models.document import DocumentSignature, DocumentStatus, GeneratedDocument, SignatureRole
from app.models.employee import Employee
from app.models.leave import ApprovalLevel, ApprovalRole, ApprovalStatus, LeaveRequest
from app.services.approval_chain_service import load_chain_plan, sorted_levels
from app.services.audit_service import log_audit
from app.services.role_capabilities import signature_role_for
from app.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

# slot a collapsed (not required) plan step is listed under when the
# approver's own slot is already taken
_POSITIONAL_SLOT = {
    ApprovalRole.DIRECT_MANAGER: SignatureRole.MANAGER,
    ApprovalRole.DEPARTMENT_DIRECTOR: SignatureRole.DEPARTMENT_MANAGER,
    ApprovalRole.EXECUTIVE: SignatureRole.EXECUTIVE,
    ApprovalRole.PEER_EXECUTIVE: SignatureRole.EXECUTIVE,
    ApprovalRole.HR: SignatureRole.HR,
}


@dataclass
class SignatureRequirement:
    role: SignatureRole
    required: bool
    signer_id: int
    signer_name: Optional[str]
    signed: bool
    signed_at: Optional[datetime] = None
    note: Optional[str] = None


def _employee(db: Session, employee_id: int) -> Optional[Employee]:
    return db.query(Employee).filter(Employee.id == employee_id).first()


def _effective_approver_id(levels: List[ApprovalLevel], ordinal: int, planned_id: int) -> int:
    """Who actually holds an ordinal now: the approver of the latest non-superseded level."""
    current = [lvl for lvl in levels if lvl.level == ordinal and lvl.escalated_to_id is None]
    if not current:
        return planned_id
    acting = current[-1]
    return acting.decided_by_id or acting.approver_id


def signature_requirements(db: Session, leave_request: LeaveRequest) -> List[SignatureRequirement]:
    """
    Resolved signature slots for the request's document.

    The employee slot comes first and is always required. Then one slot per
    plan step (following escalations to whoever holds the ordinal now). A
    person who already owes a required signature is listed again with
    required=False, and no role appears twice.
    """
    requester = leave_request.employee
    document = leave_request.document
    signed: Dict[str, DocumentSignature] = {}
    if document is not None:
        signed = {sig.signer_role: sig for sig in document.signatures}

    def _entry(role: SignatureRole, signer: Employee, required: bool, note: Optional[str] = None):
        sig = signed.get(role.value)
        return SignatureRequirement(
            role=role,
            required=required,
            signer_id=signer.id,
            signer_name=signer.name,
            signed=sig is not None,
            signed_at=sig.signed_at if sig is not None else None,
            note=note,
        )

    requirements = [_entry(SignatureRole.EMPLOYEE, requester, True)]
    taken_roles: Set[SignatureRole] = {SignatureRole.EMPLOYEE}
    owing: Set[int] = {requester.id}
    levels = sorted_levels(leave_request)

    for step in load_chain_plan(leave_request):
        signer_id = _effective_approver_id(levels, step.level, step.approver_id) if step.required else step.approver_id
        signer = _employee(db, signer_id)
        if signer is None:
            continue
        role = signature_role_for(signer, requester)
        required = step.required and signer.id not in owing
        if role in taken_roles and not required:
            role = _POSITIONAL_SLOT.get(step.role, role)
        if role in taken_roles:
            logger.debug(
                "signature slot already listed: leave_request_id=%s role=%s signer_id=%s",
                leave_request.id, role.value, signer.id,
            )
            continue
        note = None if required else (step.note or "Already signing under another role")
        requirements.append(_entry(role, signer, required, note))
        taken_roles.add(role)
        if required:
            owing.add(signer.id)

    return requirements


def ensure_document(db: Session, leave_request: LeaveRequest) -> GeneratedDocument:
    document = leave_request.document
    if document is None:
        document = GeneratedDocument(status=DocumentStatus.DRAFT)
        leave_request.document = document
        db.flush()
    return document


def attach_signature(
    db: Session,
    document: GeneratedDocument,
    signer_id: int,
    role: SignatureRole,
    signature_data: str,
    actor_id: Optional[int] = None,
) -> Optional[DocumentSignature]:
    """
    Attach a signature unless the (document, role) slot is already used.

    The same signer re-signing the same slot is a no-op returning the
    existing row. A different signer for a taken slot is dropped, logged and
    audited as a duplicate-slot anomaly; None is returned.
    """
    existing = (
        db.query(DocumentSignature)
        .filter(DocumentSignature.document_id == document.id, DocumentSignature.signer_role == role.value)
        .first()
    )
    if existing is not None:
        if existing.signer_id == signer_id:
            return existing
        logger.warning(
            "duplicate signature slot: document_id=%s role=%s existing_signer=%s new_signer=%s",
            document.id, role.value, existing.signer_id, signer_id,
        )
        log_audit(
            db,
            actor_id=actor_id,
            action="SIGNATURE_DUPLICATE_SLOT",
            entity_type="generated_documents",
            entity_id=document.id,
            meta={"role": role.value, "existing_signer_id": existing.signer_id, "rejected_signer_id": signer_id},
        )
        return None

    signature = DocumentSignature(
        signer_id=signer_id,
        signer_role=role.value,
        signature_data=signature_data,
        signed_at=now_utc(),
    )
    document.signatures.append(signature)
    db.flush()
    logger.info("signature attached: document_id=%s role=%s signer_id=%s", document.id, role.value, signer_id)
    return signature


def refresh_document_status(db: Session, leave_request: LeaveRequest) -> bool:
    """Mark the document COMPLETED once every required slot is signed. Returns True on that transition."""
    document = leave_request.document
    if document is None or document.status == DocumentStatus.COMPLETED:
        return False
    if all(req.signed for req in signature_requirements(db, leave_request) if req.required):
        document.status = DocumentStatus.COMPLETED
        document.completed_at = now_utc()
        db.flush()
        logger.info("document completed: document_id=%s leave_request_id=%s", document.id, leave_request.id)
        return True
    return False


def record_approval_signature(db: Session, level: ApprovalLevel) -> Optional[DocumentSignature]:
    """Attach the signature captured with an approval, under the role the approver resolves to."""
    if level.status != ApprovalStatus.APPROVED or not level.signature_data:
        return None
    leave_request = level.leave_request
    signer = _employee(db, level.decided_by_id or level.approver_id)
    role = signature_role_for(signer, leave_request.employee)
    document = ensure_document(db, leave_request)
    return attach_signature(db, document, signer.id, role, level.signature_data, actor_id=signer.id)


def backfill_signatures(db: Session, leave_request: LeaveRequest, actor_id: Optional[int] = None) -> int:
    """
    Attach every historical approval signature that is missing from the document.

    Each APPROVED level with a captured signature is mapped through the same
    role rule; it is inserted only if no (document, signer, role) row exists.
    Returns the number of signatures added.
    """
    document = ensure_document(db, leave_request)
    requester = leave_request.employee
    added = 0
    for level in sorted_levels(leave_request):
        if level.status != ApprovalStatus.APPROVED or not level.signature_data:
            continue
        signer_id = level.decided_by_id or level.approver_id
        signer = _employee(db, signer_id)
        if signer is None:
            continue
        role = signature_role_for(signer, requester)
        already = (
            db.query(DocumentSignature.id)
            .filter(
                DocumentSignature.document_id == document.id,
                DocumentSignature.signer_id == signer_id,
                DocumentSignature.signer_role == role.value,
            )
            .first()
        )
        if already is not None:
            continue
        if attach_signature(db, document, signer_id, role, level.signature_data, actor_id=actor_id) is not None:
            added += 1
    return added
