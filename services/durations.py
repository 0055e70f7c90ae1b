"""Parsing and formatting of human-friendly restriction durations."""

import datetime
import re
from typing import Optional

# "30m", "2h", "7d", "1d12h", "24h30m", "1d6h30m"
_DURATION_RE = re.compile(r"(?:(\d+)d)?(?:(\d+)h)?(?:(\d+)m)?$", re.IGNORECASE)


def parse_duration(text: str) -> Optional[datetime.timedelta]:
    """Return the duration described by ``text`` or ``None`` when invalid or zero."""
    text = text.strip().lower()
    if not text:
        return None
    if text.isdigit():
        text = f"{text}m"
    match = _DURATION_RE.match(text)
    if match is None:
        return None
    days = int(match.group(1) or 0)
    hours = int(match.group(2) or 0)
    minutes = int(match.group(3) or 0)
    if days == 0 and hours == 0 and minutes == 0:
        return None
    return datetime.timedelta(days=days, hours=hours, minutes=minutes)


def format_duration(seconds: float) -> str:
    total_seconds = int(seconds)
    if total_seconds <= 0:
        return "0m"
    days, remainder = divmod(total_seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60
    if remainder % 60 and not (days or hours or minutes):
        minutes = 1
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    return " ".join(parts) if parts else "0m"
