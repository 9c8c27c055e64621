import math
from datetime import UTC, datetime


def utcnow_naive():
    """Return current UTC timestamp as naive datetime for DB timestamp columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def days_remaining(expiry_date, now):
    """Whole days left until ``expiry_date``, rounded up; negative once overdue."""
    return math.ceil((expiry_date - now).total_seconds() / 86400)
