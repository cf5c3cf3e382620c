"""
Generated leave document and its signatures
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum
from app.db.base import Base
from app.utils.datetime_utils import now_utc


class DocumentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    COMPLETED = "COMPLETED"


class SignatureRole(str, enum.Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"
    DEPARTMENT_MANAGER = "department_manager"
    EXECUTIVE = "executive"
    HR = "hr"


class GeneratedDocument(Base):
    __tablename__ = "generated_documents"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False, unique=True)
    status = Column(SQLEnum(DocumentStatus), nullable=False, default=DocumentStatus.DRAFT)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    leave_request = relationship("LeaveRequest", back_populates="document")
    signatures = relationship(
        "DocumentSignature", back_populates="document", order_by="DocumentSignature.id",
        cascade="all, delete-orphan",
    )


class DocumentSignature(Base):
    __tablename__ = "document_signatures"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("generated_documents.id"), nullable=False, index=True)
    signer_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    signer_role = Column(String(30), nullable=False)  # SignatureRole value
    signature_data = Column(Text, nullable=False)
    signed_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    document = relationship("GeneratedDocument", back_populates="signatures")
    signer = relationship("Employee")

    __table_args__ = (
        UniqueConstraint("document_id", "signer_role", name="uq_document_signatures_document_role"),
    )
