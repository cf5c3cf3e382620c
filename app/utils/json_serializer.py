"""
Convert Python values to JSON-safe values before they land in JSON columns
(audit_logs.meta_json, leave_requests.approval_chain_json).
"""
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel


def sanitize_for_json(value: Any) -> Any:
    """
    Recursively convert a value to something json.dumps accepts.

    Dates become ISO strings, Decimals floats, Enums their value and
    pydantic models their dumped dict. Unknown objects fall back to str().
    """
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize_for_json(item) for item in value]
    if isinstance(value, BaseModel):
        return sanitize_for_json(value.model_dump())
    return str(value)
