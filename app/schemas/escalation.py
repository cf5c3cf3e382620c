"""
Escalation scheduler schemas
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_serializer
from app.utils.datetime_utils import iso_utc


class SchedulerStartRequest(BaseModel):
    interval_ms: Optional[int] = Field(None, gt=0, description="Run interval; defaults to ESCALATION_INTERVAL_HOURS")


class SchedulerStatusOut(BaseModel):
    running: bool
    interval_ms: Optional[int] = None
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    message: Optional[str] = None

    @field_serializer("last_run_at", "next_run_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt) if dt is not None else None


class EscalationRunOut(BaseModel):
    checked: int
    escalated: int
    skipped: int
    failed: int
    escalated_level_ids: List[int]
    warnings: List[str]
    ran_at: datetime
    disabled: bool = False

    @field_serializer("ran_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt) if dt is not None else None
