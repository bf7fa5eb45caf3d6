import math
import re
from typing import Any

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_duration(value: Any) -> int:
    """Best-effort seconds from the stored free-form text; malformed values count as 0"""
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def format_duration(total_seconds: int) -> str:
    hours, remainder = divmod(max(int(total_seconds), 0), 3600)
    minutes, seconds = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def total_course_seconds(sections: list) -> int:
    return sum(
        parse_duration(sub.get("time_duration"))
        for section in sections
        for sub in section.get("subsections", [])
    )
