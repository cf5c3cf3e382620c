"""
Leave models
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Numeric,
    Enum as SQLEnum,
    Boolean,
    JSON,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from app.db.base import Base
from app.utils.datetime_utils import now_utc


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


TERMINAL_LEAVE_STATUSES = frozenset({
    LeaveStatus.APPROVED,
    LeaveStatus.REJECTED,
    LeaveStatus.CANCELLED,
})


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalRole(str, enum.Enum):
    """Derived label for an approval ordinal."""
    DIRECT_MANAGER = "DIRECT_MANAGER"
    DEPARTMENT_DIRECTOR = "DEPARTMENT_DIRECTOR"
    EXECUTIVE = "EXECUTIVE"
    PEER_EXECUTIVE = "PEER_EXECUTIVE"
    HR = "HR"
    ESCALATION = "ESCALATION"


class HRVerificationStatus(str, enum.Enum):
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"


class LeaveTransactionAction(str, enum.Enum):
    INITIALIZE = "INITIALIZE"
    RESERVE = "RESERVE"
    COMMIT = "COMMIT"
    RELEASE = "RELEASE"
    REVERSE_USED = "REVERSE_USED"
    CARRY_FORWARD = "CARRY_FORWARD"
    CARRY_FORWARD_EXPIRY = "CARRY_FORWARD_EXPIRY"


class LeaveTypeConfig(Base):
    """
    Configured leave type.

    tracks_balance=False types (work from home, unpaid leave) go through the
    approval chain without touching the ledger.
    """
    __tablename__ = "leave_types"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    annual_entitlement = Column(Numeric(6, 2), nullable=False, default=0)
    tracks_balance = Column(Boolean, nullable=False, default=True)
    allow_carry_forward = Column(Boolean, nullable=False, default=False)
    requires_hr_verification = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_number = Column(String(20), unique=True, nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False, index=True)
    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)
    selected_dates = Column(JSON, nullable=True)  # ISO dates, sorted
    total_days = Column(Numeric(6, 2), nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(SQLEnum(LeaveStatus), nullable=False, default=LeaveStatus.PENDING, server_default=text("'PENDING'"))
    approval_chain_json = Column(JSON, nullable=True)

    hr_verification_status = Column(
        SQLEnum(HRVerificationStatus), nullable=False, default=HRVerificationStatus.NOT_REQUIRED
    )
    hr_verified_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    hr_verified_at = Column(DateTime(timezone=True), nullable=True)
    hr_verification_notes = Column(Text, nullable=True)

    cancelled_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    # Relationships
    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="leave_requests")
    leave_type = relationship("LeaveTypeConfig")
    hr_verified_by = relationship("Employee", foreign_keys=[hr_verified_by_id])
    cancelled_by = relationship("Employee", foreign_keys=[cancelled_by_id])
    approval_levels = relationship(
        "ApprovalLevel",
        back_populates="leave_request",
        order_by="ApprovalLevel.id",
        cascade="all, delete-orphan",
    )
    document = relationship("GeneratedDocument", back_populates="leave_request", uselist=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_leave_requests_employee_dates", "employee_id", "from_date", "to_date"),
        CheckConstraint("from_date <= to_date", name="check_from_date_le_to_date"),
    )


class ApprovalLevel(Base):
    __tablename__ = "approval_levels"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False, index=True)
    level = Column(Integer, nullable=False)
    role = Column(SQLEnum(ApprovalRole), nullable=False)
    approver_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    status = Column(SQLEnum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    decided_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    comments = Column(Text, nullable=True)
    signature_data = Column(Text, nullable=True)

    escalated_to_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    escalated_at = Column(DateTime(timezone=True), nullable=True)
    escalation_reason = Column(Text, nullable=True)
    escalated_from_id = Column(Integer, ForeignKey("approval_levels.id"), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    leave_request = relationship("LeaveRequest", back_populates="approval_levels")
    approver = relationship("Employee", foreign_keys=[approver_id])
    decided_by = relationship("Employee", foreign_keys=[decided_by_id])
    escalated_to = relationship("Employee", foreign_keys=[escalated_to_id])
    escalated_from = relationship("ApprovalLevel", remote_side=[id])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_approval_levels_status_approver", "status", "approver_id"),
        CheckConstraint("level >= 1", name="check_approval_level_positive"),
    )


class LeaveBalance(Base):
    """
    Ledger row: one per (employee_id, leave_type_id, year).
    available = entitled + carried_forward - used - pending.
    """
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    entitled = Column(Numeric(6, 2), nullable=False, default=0)
    used = Column(Numeric(6, 2), nullable=False, default=0)
    pending = Column(Numeric(6, 2), nullable=False, default=0)
    available = Column(Numeric(6, 2), nullable=False, default=0)
    carried_forward = Column(Numeric(6, 2), nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    employee = relationship("Employee", backref="leave_balances")
    leave_type = relationship("LeaveTypeConfig")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balances_employee_type_year"),
    )


class LeaveTransaction(Base):
    """Ledger journal: one row per balance mutation."""
    __tablename__ = "leave_transactions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False)
    year = Column(Integer, nullable=False, index=True)
    delta_days = Column(Numeric(6, 2), nullable=False)  # + credits available, - debits it, 0 moves pending to used
    action = Column(SQLEnum(LeaveTransactionAction), nullable=False)
    remarks = Column(Text, nullable=True)
    action_by_employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
