"""
Time Budget Calculator

Pure functions computing the remaining time of a module attempt from its
stored timestamps. The same computation backs the server-side gate on
answer submission and completion as well as the countdown payload handed
to clients, so both always agree on the expiry boundary.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

import math
from datetime import datetime, timedelta
from typing import NamedTuple, Optional


class TimeBudget(NamedTuple):
    """
    Result of a time budget computation.

    Attributes:
        remaining_seconds: Whole seconds left, ``None`` for untimed modules
        is_expired: Whether the budget has been used up
        deadline_utc: Moment the budget runs out, ``None`` for untimed modules
    """

    remaining_seconds: Optional[int]
    is_expired: bool
    deadline_utc: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "remaining_seconds": self.remaining_seconds,
            "is_expired": self.is_expired,
            "deadline_utc": self.deadline_utc.isoformat() if self.deadline_utc else None,
        }


UNTIMED = TimeBudget(remaining_seconds=None, is_expired=False, deadline_utc=None)


def deadline(started_at_utc: datetime, duration_in_minutes: Optional[int]) -> Optional[datetime]:
    """Return the moment the budget runs out, or ``None`` when untimed."""
    if duration_in_minutes is None:
        return None
    return started_at_utc + timedelta(minutes=duration_in_minutes)


def compute_remaining(
    started_at_utc: datetime,
    duration_in_minutes: Optional[int],
    now_utc: datetime,
) -> TimeBudget:
    """
    Compute remaining time and expiry of a module attempt.

    ``remaining = max(0, duration * 60 - elapsed)`` and the attempt is
    expired exactly when nothing remains. Fractional seconds are rounded up
    so the reported number only reaches zero together with expiry. A clock
    running behind ``started_at_utc`` counts as zero elapsed time.

    Args:
        started_at_utc: Stored start of the attempt
        duration_in_minutes: Stored budget, ``None`` for untimed modules
        now_utc: Reference time, always taken from the server clock

    Returns:
        TimeBudget with remaining seconds, expiry flag and deadline

    Example:
        >>> compute_remaining(start, 10, start + timedelta(minutes=9))
        TimeBudget(remaining_seconds=60, is_expired=False, deadline_utc=...)
    """
    if duration_in_minutes is None:
        return UNTIMED

    elapsed = max(0.0, (now_utc - started_at_utc).total_seconds())
    remaining = max(0.0, duration_in_minutes * 60 - elapsed)
    remaining_seconds = math.ceil(remaining)

    return TimeBudget(
        remaining_seconds=remaining_seconds,
        is_expired=remaining_seconds == 0,
        deadline_utc=deadline(started_at_utc, duration_in_minutes),
    )
