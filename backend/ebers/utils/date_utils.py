"""Date helpers shared by entities, services and serializers."""

from datetime import date, datetime, timezone
from typing import Optional

from ebers.core.config import APP_TZ


def utcnow() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def local_today() -> date:
    """Today's date in the clinic's timezone."""
    return datetime.now(APP_TZ).date()


def calculate_age(birth_date: Optional[date], today: Optional[date] = None) -> int:
    """
    Age in whole years on ``today``.

    The year difference is reduced by one when the birthday has not happened
    yet this year. A missing birth date yields 0.
    """
    if birth_date is None:
        return 0
    today = today or local_today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return max(age, 0)


def isoformat_or_none(value) -> Optional[str]:
    return value.isoformat() if value is not None else None
