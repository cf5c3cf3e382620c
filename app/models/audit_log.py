"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from app.db.base import Base
from app.utils.datetime_utils import now_utc


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("employees.id"), nullable=True)  # NULL for SYSTEM (scheduler) actions
    action = Column(String, nullable=False, index=True)  # e.g. "LEAVE_REQUEST_CREATED", "BALANCE_RESERVE"
    entity_type = Column(String, nullable=False)  # e.g. "leave_requests", "leave_balances", "approval_levels"
    entity_id = Column(Integer, nullable=True)
    meta_json = Column(JSON, nullable=True)  # before/after values and context
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
