"""
Shared test helpers
"""
from datetime import date, timedelta

from app.core.security import create_access_token

# Leave dates live in a future year so approved leave has not started yet
LEAVE_YEAR = date.today().year + 2


def first_monday(year: int, month: int) -> date:
    """First Monday of the month in ``year``."""
    d = date(year, month, 1)
    return d + timedelta(days=(7 - d.weekday()) % 7)


def auth_headers(employee) -> dict:
    token = create_access_token({"sub": str(employee.id)})
    return {"Authorization": f"Bearer {token}"}


class RecordingNotifier:
    """Collects notifications instead of writing rows"""

    def __init__(self):
        self.sent = []

    def send(self, db, notification):
        self.sent.append(notification)

    def events(self):
        return [n.event.value for n in self.sent]


class FailingNotifier:
    def send(self, db, notification):
        raise RuntimeError("notification backend down")
