import math
from typing import Optional


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def percent(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(round_half_up(part / total * 100))


def format_time(seconds: Optional[int]) -> str:
    """MM:SS; minutes are not wrapped into hours."""
    seconds = max(0, int(seconds or 0))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"
