"""
Leave balance schemas
"""
from datetime import date
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class LeaveBalanceOut(BaseModel):
    """One ledger row. available = entitled + carried_forward - used - pending"""
    id: int
    employee_id: int
    leave_type_id: int
    leave_type_code: Optional[str] = None
    year: int
    entitled: float
    carried_forward: float
    used: float
    pending: float
    available: float
    version: int

    model_config = ConfigDict(from_attributes=True)


class BalanceListResponse(BaseModel):
    employee_id: int
    year: int
    items: List[LeaveBalanceOut]


class InitializeBalancesRequest(BaseModel):
    year: int = Field(..., description="Calendar year to open balances for")


class YearEndRequest(BaseModel):
    year: int = Field(..., description="Year being closed; carry forward goes into year + 1")


class YearEndDetail(BaseModel):
    employee_id: int
    leave_type: str
    unused: float
    carry_forward: float
    next_year_available: float


class YearEndResponse(BaseModel):
    year: int
    next_year: int
    rows_processed: int
    rows_with_carry_forward: int
    total_carry_forward: float
    details: List[YearEndDetail] = Field(default_factory=list)


class ExpireCarryForwardRequest(BaseModel):
    year: int = Field(..., description="Year whose carried-forward days expire")
    as_of: Optional[date] = Field(None, description="Evaluation date (defaults to today)")


class ExpireCarryForwardResponse(BaseModel):
    year: int
    expiry_date: date
    expired: bool
    rows_expired: int
    total_days_expired: float = 0.0
