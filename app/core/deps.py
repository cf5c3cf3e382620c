"""
Dependencies and guards for FastAPI endpoints
"""
from typing import Generator
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from app.db.session import SessionLocal
from app.core.security import decode_token
from app.models.employee import Employee
from app.services.notification_service import InAppNotifier, Notifier
from app.services.role_capabilities import require_capability


security = HTTPBearer()


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Employee:
    """
    Resolve the calling employee from the bearer token issued by the auth service
    """
    try:
        payload = decode_token(credentials.credentials)
        sub_value = payload.get("sub")
        if sub_value is None:
            raise ValueError("missing sub")
        employee_id = int(sub_value)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return employee


def require_capability_dep(capability: str):
    """
    Dependency factory for capability-based access control

    Usage:
        @router.post("/year-end")
        async def year_end(user: Employee = Depends(require_capability_dep("can_manage_balances"))):
            ...
    """
    def capability_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        require_capability(current_user, capability)
        return current_user
    return capability_checker


def get_escalation_scheduler(request: Request):
    """The scheduler instance owned by the application lifecycle."""
    return request.app.state.escalation_scheduler


def get_notifier() -> Notifier:
    """Notification sink for leave lifecycle events"""
    return InAppNotifier()
