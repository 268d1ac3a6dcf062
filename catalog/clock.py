from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the form the store round-trips."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_clock() -> Clock:
    return utc_now
