"""
Domain exceptions for the leave lifecycle.

Each exception is an HTTPException so services can raise it exactly where they
would raise a plain HTTPException; the central handler adds ``kind`` and any
``extra`` fields to the JSON body.
"""
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class LeaveEngineError(HTTPException):
    kind = "error"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(status_code=self.status_code_default, detail=message)
        self.message = message
        self.extra = extra or {}


class ValidationError(LeaveEngineError):
    kind = "validation_error"
    status_code_default = status.HTTP_400_BAD_REQUEST


class NotFoundError(LeaveEngineError):
    kind = "not_found"
    status_code_default = status.HTTP_404_NOT_FOUND


class AuthorizationError(LeaveEngineError):
    kind = "authorization_error"
    status_code_default = status.HTTP_403_FORBIDDEN


class ConflictError(LeaveEngineError):
    kind = "conflict"
    status_code_default = status.HTTP_409_CONFLICT


class ConcurrencyConflictError(ConflictError):
    kind = "concurrency_conflict"


class InsufficientBalanceError(LeaveEngineError):
    kind = "insufficient_balance"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, requested: Decimal, available: Decimal, leave_type_code: Optional[str] = None):
        label = f" {leave_type_code}" if leave_type_code else ""
        super().__init__(
            f"Insufficient{label} balance: requested {requested} day(s), available {available}",
            extra={"requested": float(requested), "available": float(available)},
        )
        self.requested = requested
        self.available = available
