"""
UTC time helpers.

Timestamps are stored as naive UTC datetimes so they compare cleanly on every
backend, including SQLite which drops tzinfo.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Tuple


def utcnow() -> datetime:
    """Current UTC time without tzinfo"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def week_bounds(moment: datetime = None) -> Tuple[datetime, datetime]:
    """Monday 00:00 and the following Monday 00:00 around ``moment``"""
    moment = moment or utcnow()
    start = datetime(moment.year, moment.month, moment.day) - timedelta(days=moment.weekday())
    return start, start + timedelta(days=7)
