# FILE: messboard/services/expiry.py
"""
Expiry policy: pure functions over millisecond timestamps
"""
from messboard.models.records import TimeRemaining

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE

DEFAULT_TTL_MS = 5 * MS_PER_HOUR
EXPIRED_LABEL = "Expired"


def compute_expiration(created_at: int, ttl: int) -> int:
    """Expiration instant for a record created at created_at"""
    return created_at + ttl


def is_active(now: int, expires_at: int) -> bool:
    """A record is active strictly before its expiration instant"""
    return now < expires_at


def remaining(now: int, expires_at: int) -> TimeRemaining:
    """
    Remaining-time label for display.

    Expired (now >= expires_at) -> "Expired", urgent.
    One hour or more left -> "{h}h {m}m left", urgent only when hours < 1,
    which never holds on this branch.
    Under an hour -> "{m}m left", urgent.
    """
    time_left = expires_at - now
    if time_left <= 0:
        return TimeRemaining(text=EXPIRED_LABEL, urgent=True)

    hours = time_left // MS_PER_HOUR
    minutes = (time_left % MS_PER_HOUR) // MS_PER_MINUTE

    if hours > 0:
        return TimeRemaining(text=f"{hours}h {minutes}m left", urgent=hours < 1)
    return TimeRemaining(text=f"{minutes}m left", urgent=True)
