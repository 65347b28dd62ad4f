"""
Progress sample parsing and per-instance progress tracking.
"""

import logging
import threading
import time
from typing import Dict, List, Optional

from errors import InvalidCategoryError, ParseError
from models import ProgressSample, ProgressState

logger = logging.getLogger(__name__)

# Total solver steps per wind-speed category (last token of the case name).
CATEGORY_TOTAL_STEPS: Dict[str, int] = {
    "2ms": 24_000,
    "7ms": 18_000,
    "12ms": 18_000,
    "17ms": 18_000,
}

# Progress lines look like "TimeStep    1234: Time   56.78".
STEP_LABEL = "TimeStep"
TIME_LABEL = ": Time"


def total_steps_for(category_label: str) -> int:
    """
    Resolve the total step count for a category label.

    Args:
        category_label: Case name or bare category token (e.g. 'zen00az180_OS_2ms')

    Returns:
        Total number of steps for the case

    Raises:
        InvalidCategoryError: If the last underscore token is not a known category
    """
    token = category_label.rsplit("_", 1)[-1]
    try:
        return CATEGORY_TOTAL_STEPS[token]
    except KeyError:
        raise InvalidCategoryError(token) from None


def parse_sample(category_label: str, line: str) -> ProgressSample:
    """
    Parse a raw progress line into a ProgressSample.

    The category is validated before any field is read, so an unknown
    category always wins over a malformed line.

    Args:
        category_label: Case name carrying the category suffix
        line: Last TimeStep line from the solver output

    Returns:
        Parsed sample

    Raises:
        InvalidCategoryError: If the category suffix is unknown
        ParseError: If the colon is missing or a field is not numeric
    """
    total_steps = total_steps_for(category_label)

    idx = line.find(":")
    if idx < 0:
        raise ParseError(f"No ':' in progress line: {line!r}")

    step_text = line[:idx][len(STEP_LABEL):].strip()
    time_text = line[idx:][len(TIME_LABEL):].strip()

    if not step_text.isdecimal():
        raise ParseError(f"Invalid step value {step_text!r} in {line!r}")
    try:
        elapsed = float(time_text)
    except ValueError:
        raise ParseError(f"Invalid time value {time_text!r} in {line!r}") from None

    return ProgressSample(step=int(step_text), elapsed=elapsed, total_steps=total_steps)


class ProgressTracker:
    """Owned store of the latest progress state per instance.

    The map lives as long as the tracker and is never pruned; instances
    that disappear simply leave a stale entry behind.
    """

    def __init__(self):
        self._states: Dict[str, ProgressState] = {}
        self._lock = threading.Lock()

    def advance(
        self, key: str, sample: ProgressSample, observed_at: Optional[float] = None
    ) -> ProgressState:
        """
        Record a new sample for an instance and compute its step delta.

        The delta is None on the first observation and never negative
        afterwards, even if the reported step goes backwards. The span is
        measured from the previous sample's timestamp, so a missed or late
        cycle widens it along with the delta.

        Args:
            key: Instance display name
            sample: Newly parsed sample
            observed_at: Monotonic time of the sample in seconds (default: now)
        """
        if observed_at is None:
            observed_at = time.monotonic()

        with self._lock:
            previous = self._states.get(key)
            if previous is None:
                state = ProgressState(latest=sample, observed_at=observed_at)
            else:
                delta = max(0, sample.step - previous.latest.step)
                span = (observed_at - previous.observed_at) / 60.0
                state = ProgressState(
                    latest=sample,
                    step_delta=delta,
                    observed_at=observed_at,
                    span_minutes=span,
                )
            self._states[key] = state

        logger.debug(
            f"{key}: step={sample.step} total={sample.total_steps} "
            f"delta={state.step_delta} span={state.span_minutes}"
        )
        return state

    def get(self, key: str) -> Optional[ProgressState]:
        with self._lock:
            return self._states.get(key)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._states)

    def reset(self) -> None:
        with self._lock:
            self._states.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
