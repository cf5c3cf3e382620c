"""
Employee schemas
"""
from datetime import date
from typing import Optional
from pydantic import BaseModel, ConfigDict
from app.models.employee import OrgRole


class EmployeeBrief(BaseModel):
    """Employee summary embedded in leave responses"""
    id: int
    emp_code: str
    name: str
    role: OrgRole
    department_id: Optional[int] = None
    reporting_manager_id: Optional[int] = None
    department_director_id: Optional[int] = None
    join_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)
