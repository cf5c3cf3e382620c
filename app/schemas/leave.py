"""
Leave request schemas
"""
import enum
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from app.models.document import DocumentStatus, SignatureRole
from app.models.leave import ApprovalRole, ApprovalStatus, HRVerificationStatus, LeaveStatus
from app.schemas.employee import EmployeeBrief
from app.utils.datetime_utils import iso_utc


class LeaveCreateRequest(BaseModel):
    """Schema for raising a leave request"""
    leave_type_id: int = Field(..., description="Configured leave type ID")
    from_date: Optional[date] = Field(None, description="Start date of leave")
    to_date: Optional[date] = Field(None, description="End date of leave")
    selected_dates: Optional[List[date]] = Field(
        None, description="Specific dates (non-contiguous); only their working days are counted"
    )
    reason: Optional[str] = Field(None, description="Reason for leave")
    selected_peer_id: Optional[int] = Field(None, description="Peer executive approver (executives only)")
    employee_signature: Optional[str] = Field(None, description="Requester signature for the leave document")

    @model_validator(mode="after")
    def check_period(self) -> "LeaveCreateRequest":
        if not self.selected_dates and (self.from_date is None or self.to_date is None):
            raise ValueError("Provide from_date and to_date, or selected_dates")
        return self


class DecisionAction(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class ApprovalDecisionRequest(BaseModel):
    """Schema for approving or rejecting one approval level"""
    action: DecisionAction = Field(..., description="APPROVE or REJECT")
    comments: Optional[str] = Field(None, description="Remarks (required for rejection)")
    signature_data: Optional[str] = Field(None, description="Approver signature captured with the approval")

    @model_validator(mode="after")
    def require_rejection_comments(self) -> "ApprovalDecisionRequest":
        if self.action == DecisionAction.REJECT and not (self.comments or "").strip():
            raise ValueError("comments are required when rejecting")
        return self


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Reason for cancellation")


class VerifyDocumentsRequest(BaseModel):
    """HR verdict on supporting documents"""
    approved: bool = Field(..., description="True if the documents are acceptable")
    notes: Optional[str] = Field(None, description="Verification notes")


class ApprovalLevelOut(BaseModel):
    id: int
    leave_request_id: int
    level: int
    role: ApprovalRole
    approver_id: int
    approver: Optional[EmployeeBrief] = None
    status: ApprovalStatus
    decided_at: Optional[datetime] = None
    decided_by_id: Optional[int] = None
    comments: Optional[str] = None
    escalated_to_id: Optional[int] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    escalated_from_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("decided_at", "escalated_at", "created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt) if dt is not None else None


class LeaveRequestOut(BaseModel):
    """Schema for leave request output, including its approval levels"""
    id: int
    request_number: str
    employee_id: int
    employee: Optional[EmployeeBrief] = None
    leave_type_id: int
    from_date: date
    to_date: date
    selected_dates: Optional[List[date]] = None
    total_days: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    hr_verification_status: HRVerificationStatus
    hr_verified_by_id: Optional[int] = None
    hr_verified_at: Optional[datetime] = None
    hr_verification_notes: Optional[str] = None
    cancelled_by_id: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    approval_levels: List[ApprovalLevelOut] = Field(default_factory=list)
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("hr_verified_at", "cancelled_at", "created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt) if dt is not None else None


class LeaveOperationOut(BaseModel):
    """Result of a state-changing call; warnings list downstream failures that did not undo it"""
    leave_request: LeaveRequestOut
    message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class LeaveListResponse(BaseModel):
    items: List[LeaveRequestOut]
    total: int


class PendingApprovalItem(BaseModel):
    level: ApprovalLevelOut
    leave_request: LeaveRequestOut


class PendingApprovalResponse(BaseModel):
    items: List[PendingApprovalItem]
    total: int


class SignatureRequirementOut(BaseModel):
    role: SignatureRole
    required: bool
    signer_id: int
    signer_name: Optional[str] = None
    signed: bool
    signed_at: Optional[datetime] = None
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("signed_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt) if dt is not None else None


class SignatureRequirementsResponse(BaseModel):
    leave_request_id: int
    items: List[SignatureRequirementOut]


class DocumentSignatureOut(BaseModel):
    role: str
    signer_id: int
    signature_data: str
    signed_at: datetime

    @field_serializer("signed_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt) if dt is not None else None


class LeaveDocumentOut(BaseModel):
    """Everything a renderer needs to produce the signed leave form"""
    leave_request_id: int
    request_number: str
    employee_id: int
    employee_name: str
    employee_code: str
    department: Optional[str] = None
    leave_type: str
    leave_type_code: str
    from_date: date
    to_date: date
    selected_dates: Optional[List[date]] = None
    total_days: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    document_status: DocumentStatus
    signature_requirements: List[SignatureRequirementOut]
    signatures: List[DocumentSignatureOut]


class RegenerateDocumentsRequest(BaseModel):
    leave_request_ids: Optional[List[int]] = Field(None, description="Limit to these requests; all APPROVED if omitted")


class RegenerateDocumentsResponse(BaseModel):
    processed: int
    signatures_added: int
    completed: int
    failed: List[int]
    warnings: List[str]

