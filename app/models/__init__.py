"""
Database models
"""
from app.models.department import Department
from app.models.employee import Employee, OrgRole
from app.models.audit_log import AuditLog
from app.models.holiday import Holiday
from app.models.notification import Notification
from app.models.leave import (
    LeaveTypeConfig,
    LeaveRequest,
    ApprovalLevel,
    LeaveBalance,
    LeaveTransaction,
    LeaveStatus,
    ApprovalStatus,
    ApprovalRole,
    HRVerificationStatus,
    LeaveTransactionAction,
    TERMINAL_LEAVE_STATUSES,
)
from app.models.document import GeneratedDocument, DocumentSignature, DocumentStatus, SignatureRole

__all__ = [
    "Department",
    "Employee",
    "OrgRole",
    "AuditLog",
    "Holiday",
    "Notification",
    "LeaveTypeConfig",
    "LeaveRequest",
    "ApprovalLevel",
    "LeaveBalance",
    "LeaveTransaction",
    "LeaveStatus",
    "ApprovalStatus",
    "ApprovalRole",
    "HRVerificationStatus",
    "LeaveTransactionAction",
    "TERMINAL_LEAVE_STATUSES",
    "GeneratedDocument",
    "DocumentSignature",
    "DocumentStatus",
    "SignatureRole",
]
