"""
Employee model
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.db.base import Base


class OrgRole(str, enum.Enum):
    """Organizational role; the closed set every capability check dispatches on."""
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    DEPARTMENT_DIRECTOR = "DEPARTMENT_DIRECTOR"
    EXECUTIVE = "EXECUTIVE"
    HR = "HR"
    ADMIN = "ADMIN"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    emp_code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(SQLEnum(OrgRole), nullable=False, default=OrgRole.EMPLOYEE)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    reporting_manager_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    department_director_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    join_date = Column(Date, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    # Relationships
    department = relationship("Department", backref="employees")
    reporting_manager = relationship(
        "Employee", remote_side=[id], foreign_keys=[reporting_manager_id], backref="direct_reports"
    )
    department_director = relationship("Employee", remote_side=[id], foreign_keys=[department_director_id])
    leave_requests = relationship("LeaveRequest", foreign_keys="LeaveRequest.employee_id", back_populates="employee")
