"""
ETA estimation, duration rendering and median smoothing.
"""

import math
import threading
from typing import Dict, List, Optional, Sequence

from models import EtaClassification, EtaStatus, ProgressState

MINUTES_PER_HOUR = 60.0
MINUTES_PER_DAY = 24.0 * MINUTES_PER_HOUR

NOT_AVAILABLE = "N/A"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_duration(total_minutes: float) -> str:
    """
    Render minutes as "{d}d {h}h {m}m", omitting leading zero units.

    Hours are dropped when zero inside a day count ("1d 0m"); minutes are
    always shown.
    """
    total_hours = total_minutes / MINUTES_PER_HOUR
    days = int(math.floor(total_hours / 24.0))
    hours = int(math.floor(total_hours % 24.0))
    minutes = _round_half_up(total_minutes % MINUTES_PER_HOUR)

    if days > 0:
        if hours > 0:
            return f"{days}d {hours}h {minutes}m"
        return f"{days}d {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def estimate(
    state: ProgressState, sampling_interval_minutes: float
) -> EtaClassification:
    """
    Classify the remaining time for an instance.

    Args:
        state: Latest progress state; step_delta must have been measured
            over sampling_interval_minutes
        sampling_interval_minutes: Minutes between the two samples

    Returns:
        CALCULATING on first observation, STALLED on zero progress,
        COMPLETE when no steps remain, otherwise ESTIMATED with minutes
    """
    delta = state.step_delta
    if delta is None:
        return EtaClassification(EtaStatus.CALCULATING)
    if delta == 0:
        return EtaClassification(EtaStatus.STALLED)

    remaining = max(0, state.latest.total_steps - state.latest.step)
    if remaining == 0:
        return EtaClassification(EtaStatus.COMPLETE)

    minutes_per_step = sampling_interval_minutes / delta
    return EtaClassification(EtaStatus.ESTIMATED, remaining * minutes_per_step)


def display_eta(eta: Optional[EtaClassification]) -> str:
    """Display text for a classification; None reads as not available."""
    if eta is None:
        return NOT_AVAILABLE
    if eta.status is EtaStatus.ESTIMATED:
        return format_duration(eta.minutes)
    return eta.status.value


_SENTINELS = {status.value for status in EtaStatus if status is not EtaStatus.ESTIMATED}
_UNIT_MINUTES = {"d": MINUTES_PER_DAY, "h": MINUTES_PER_HOUR, "m": 1.0}


def parse_to_minutes(text: str) -> Optional[float]:
    """
    Turn a rendered duration ("2d 5h 30m", "45m") back into minutes.

    Lenient: tokens without a d/h/m suffix or with a non-numeric value are
    skipped. Sentinel strings and zero totals give None.
    """
    if text in _SENTINELS:
        return None

    total = 0.0
    for part in text.split():
        factor = _UNIT_MINUTES.get(part[-1:])
        if factor is None:
            continue
        try:
            total += float(part[:-1]) * factor
        except ValueError:
            continue

    return total if total > 0 else None


def median_minutes(values: Sequence[float]) -> Optional[float]:
    """Median of the values; mean of the middle pair for even counts."""
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2.0
    return ordered[mid]


class EtaHistory:
    """Append-only ETA history per instance, in minutes."""

    def __init__(self):
        self._values: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def record(self, key: str, minutes: float) -> None:
        with self._lock:
            self._values.setdefault(key, []).append(minutes)

    def values(self, key: str) -> List[float]:
        with self._lock:
            return list(self._values.get(key, ()))

    def median_minutes(self, key: str) -> Optional[float]:
        return median_minutes(self.values(key))

    def median(self, key: str) -> Optional[str]:
        """Smoothed ETA for an instance, or None without history."""
        value = self.median_minutes(key)
        if value is None:
            return None
        return format_duration(value)

    def reset(self) -> None:
        with self._lock:
            self._values.clear()
