"""
Read-time visibility of capsule contents.

Status only gates editing; whether content can be seen is always derived here
and never persisted:

    visible = capsule.is_public or now >= capsule.unsealing_date

These helpers never raise. A missing or unreadable unsealing date is treated
as already visible, since this is a display concern and privacy is enforced
by the capsule service and the routers.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..models import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

READY_LABEL = "Ready to unlock"


@dataclass(frozen=True)
class Visibility:
    is_content_visible: bool
    time_remaining: Optional[timedelta]

    @property
    def time_remaining_label(self) -> Optional[str]:
        if self.time_remaining is None:
            return None
        return format_time_remaining(self.time_remaining)


def is_content_visible(capsule, now: Optional[datetime] = None) -> bool:
    return evaluate(capsule, now).is_content_visible


def evaluate(capsule, now: Optional[datetime] = None) -> Visibility:
    now = to_naive_utc(now) or utcnow()
    if getattr(capsule, "is_public", False):
        return Visibility(True, None)

    unsealing = to_naive_utc(getattr(capsule, "unsealing_date", None))
    if unsealing is None:
        logger.warning("Capsule %s has no usable unsealing date; showing contents",
                       getattr(capsule, "id", "?"))
        return Visibility(True, None)

    if now >= unsealing:
        return Visibility(True, None)
    return Visibility(False, unsealing - now)


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit if n == 1 else unit + 's'} remaining"


def format_time_remaining(duration: Optional[timedelta]) -> str:
    if duration is None or duration <= timedelta(0):
        return READY_LABEL
    days = duration // timedelta(days=1)
    if days > 365:
        return _plural(days // 365, "year")
    if days > 30:
        return _plural(days // 30, "month")
    if days > 0:
        return _plural(days, "day")
    return _plural(duration // timedelta(hours=1), "hour")


def unlock_progress(capsule, now: Optional[datetime] = None) -> int:
    """Elapsed share (0-100) of the span from creation to the unsealing date."""
    now = to_naive_utc(now) or utcnow()
    unsealing = to_naive_utc(getattr(capsule, "unsealing_date", None))
    created = to_naive_utc(getattr(capsule, "created_at", None))
    if unsealing is None or now >= unsealing:
        return 100
    if created is None or unsealing <= created:
        return 0
    share = (now - created) / (unsealing - created)
    return min(100, max(0, int(share * 100)))
