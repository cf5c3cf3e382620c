"""
Notification service - fire-and-forget events for the leave lifecycle.

Notifications are dispatched only after the state change that caused them has
been committed. A failing notifier is logged and reported back as a warning;
it never undoes the transition.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol

from sqlalchemy.orm import Session

from app.models.leave import LeaveRequest
from app.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    LEAVE_REQUESTED = "LEAVE_REQUESTED"
    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    LEAVE_REJECTED = "LEAVE_REJECTED"
    LEAVE_CANCELLED = "LEAVE_CANCELLED"
    APPROVAL_ESCALATED = "APPROVAL_ESCALATED"
    DOCUMENT_READY = "DOCUMENT_READY"


@dataclass
class LeaveNotification:
    event: NotificationEvent
    recipient_ids: List[int]
    title: str
    message: str
    leave_request_id: Optional[int] = None
    link: Optional[str] = None
    extra: dict = field(default_factory=dict)


class Notifier(Protocol):
    def send(self, db: Session, notification: LeaveNotification) -> None:
        ...


class InAppNotifier:
    """Writes one Notification row per recipient; email/push delivery picks them up."""

    def send(self, db: Session, notification: LeaveNotification) -> None:
        for recipient_id in notification.recipient_ids:
            db.add(Notification(
                employee_id=recipient_id,
                type=notification.event.value,
                title=notification.title,
                message=notification.message,
                link=notification.link,
            ))
        db.flush()


def _dates_label(leave_request: LeaveRequest) -> str:
    if leave_request.from_date == leave_request.to_date:
        return leave_request.from_date.isoformat()
    return f"{leave_request.from_date.isoformat()} to {leave_request.to_date.isoformat()}"


def _type_label(leave_request: LeaveRequest) -> str:
    return leave_request.leave_type.name if leave_request.leave_type else "leave"


def _link(leave_request: LeaveRequest) -> str:
    return f"/leave-requests/{leave_request.id}"


def approval_required(leave_request: LeaveRequest, approver_ids: Iterable[int]) -> LeaveNotification:
    return LeaveNotification(
        event=NotificationEvent.APPROVAL_REQUIRED,
        recipient_ids=list(approver_ids),
        title="Approval Required",
        message=(
            f"{leave_request.employee.name} needs approval for {_type_label(leave_request)} "
            f"from {_dates_label(leave_request)}. Request #{leave_request.request_number}"
        ),
        leave_request_id=leave_request.id,
        link=_link(leave_request),
    )


def leave_requested(leave_request: LeaveRequest) -> LeaveNotification:
    return LeaveNotification(
        event=NotificationEvent.LEAVE_REQUESTED,
        recipient_ids=[leave_request.employee_id],
        title="Leave Request Submitted",
        message=(
            f"Your {_type_label(leave_request)} request for {_dates_label(leave_request)} "
            f"has been submitted. Request #{leave_request.request_number}"
        ),
        leave_request_id=leave_request.id,
        link=_link(leave_request),
    )


def leave_approved(leave_request: LeaveRequest, approver_name: str) -> LeaveNotification:
    return LeaveNotification(
        event=NotificationEvent.LEAVE_APPROVED,
        recipient_ids=[leave_request.employee_id],
        title="Leave Request Approved",
        message=(
            f"Your {_type_label(leave_request)} request for {_dates_label(leave_request)} "
            f"has been approved by {approver_name}. Request #{leave_request.request_number}"
        ),
        leave_request_id=leave_request.id,
        link=_link(leave_request),
    )


def leave_rejected(leave_request: LeaveRequest, reason: Optional[str] = None) -> LeaveNotification:
    suffix = f": {reason}" if reason else ""
    return LeaveNotification(
        event=NotificationEvent.LEAVE_REJECTED,
        recipient_ids=[leave_request.employee_id],
        title="Leave Request Rejected",
        message=(
            f"Your {_type_label(leave_request)} request for {_dates_label(leave_request)} "
            f"has been rejected{suffix}. Request #{leave_request.request_number}"
        ),
        leave_request_id=leave_request.id,
        link=_link(leave_request),
    )


def leave_cancelled(leave_request: LeaveRequest, recipient_ids: Iterable[int]) -> LeaveNotification:
    return LeaveNotification(
        event=NotificationEvent.LEAVE_CANCELLED,
        recipient_ids=list(recipient_ids),
        title="Leave Request Cancelled",
        message=(
            f"The {_type_label(leave_request)} request for {_dates_label(leave_request)} "
            f"has been cancelled. Request #{leave_request.request_number}"
        ),
        leave_request_id=leave_request.id,
        link=_link(leave_request),
    )


def approval_escalated(leave_request: LeaveRequest, new_approver_id: int, reason: str) -> LeaveNotification:
    return LeaveNotification(
        event=NotificationEvent.APPROVAL_ESCALATED,
        recipient_ids=[new_approver_id],
        title="Approval Escalated To You",
        message=(
            f"{leave_request.employee.name}'s {_type_label(leave_request)} request for "
            f"{_dates_label(leave_request)} was escalated to you ({reason}). "
            f"Request #{leave_request.request_number}"
        ),
        leave_request_id=leave_request.id,
        link=_link(leave_request),
    )


def document_ready(leave_request: LeaveRequest) -> LeaveNotification:
    return LeaveNotification(
        event=NotificationEvent.DOCUMENT_READY,
        recipient_ids=[leave_request.employee_id],
        title="Document Ready",
        message=f"Your leave document is ready for request #{leave_request.request_number}",
        leave_request_id=leave_request.id,
        link=f"{_link(leave_request)}/document",
    )


def dispatch(db: Session, notifier: Notifier, notifications: Iterable[LeaveNotification]) -> List[str]:
    """
    Send notifications after the primary commit.

    Each notification is committed on its own; a failure is rolled back,
    logged, and returned as a warning string.
    """
    warnings = []
    for notification in notifications:
        if not notification.recipient_ids:
            continue
        try:
            notifier.send(db, notification)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.warning(
                "notification failed: event=%s leave_request_id=%s error=%s",
                notification.event.value, notification.leave_request_id, exc,
            )
            warnings.append(f"Notification {notification.event.value} could not be sent")
    return warnings
