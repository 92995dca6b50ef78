from datetime import UTC, datetime

import pytz

from turfbook.core.config import settings


def local_now() -> datetime:
    """Current venue wall-clock time as a naive datetime (seconds dropped)."""
    tz = pytz.timezone(settings.timezone)
    now = datetime.now(UTC).astimezone(tz)
    return now.replace(tzinfo=None, second=0, microsecond=0)


def utc_now_naive() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE audit columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def get_now() -> datetime:
    """FastAPI dependency; tests override it to pin the clock."""
    return local_now()
