"""
Admin control of the escalation scheduler.
"""
from typing import Optional
from fastapi import APIRouter, Depends

from app.core.deps import get_escalation_scheduler, require_capability_dep
from app.models.employee import Employee
from app.schemas.escalation import EscalationRunOut, SchedulerStartRequest, SchedulerStatusOut
from app.services.escalation_scheduler import EscalationScheduler

router = APIRouter()


@router.get("/escalation/status", response_model=SchedulerStatusOut)
async def escalation_status(
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
    current_user: Employee = Depends(require_capability_dep("can_control_scheduler")),
):
    return SchedulerStatusOut(**scheduler.status())


@router.post("/escalation/start", response_model=SchedulerStatusOut)
async def escalation_start(
    payload: Optional[SchedulerStartRequest] = None,
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
    current_user: Employee = Depends(require_capability_dep("can_control_scheduler")),
):
    """Start periodic escalation checks (no-op if already running)."""
    started = scheduler.start(payload.interval_ms if payload else None)
    return SchedulerStatusOut(**scheduler.status(), message="started" if started else "already running")


@router.post("/escalation/stop", response_model=SchedulerStatusOut)
async def escalation_stop(
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
    current_user: Employee = Depends(require_capability_dep("can_control_scheduler")),
):
    stopped = scheduler.stop()
    return SchedulerStatusOut(**scheduler.status(), message="stopped" if stopped else "not running")


@router.post("/escalation/trigger", response_model=EscalationRunOut)
def escalation_trigger(
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
    current_user: Employee = Depends(require_capability_dep("can_control_scheduler")),
):
    """Run one escalation check now and return its summary."""
    return EscalationRunOut(**scheduler.trigger_manual())
