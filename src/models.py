"""
Data models for the Simulation Fleet Monitor.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class InstanceIdentity:
    """Reference to a compute instance running a simulation case."""

    instance_id: str
    name: str  # display name, also the case directory on the host
    address: Optional[str]  # None when the instance has no reachable IP
    machine_type: str = ""
    zone: str = ""

    @property
    def category_label(self) -> str:
        """Last underscore-delimited token of the display name."""
        return self.name.rsplit("_", 1)[-1]


@dataclass(frozen=True)
class ProgressSample:
    """One parsed progress line."""

    step: int
    elapsed: float
    total_steps: int


@dataclass
class ProgressState:
    """Latest sample for an instance and the step delta since the previous one.

    observed_at is a monotonic timestamp in seconds. span_minutes is the
    time between the previous sample and this one, the window step_delta
    was measured over.
    """

    latest: ProgressSample
    step_delta: Optional[int] = None
    observed_at: Optional[float] = None
    span_minutes: Optional[float] = None


class EtaStatus(Enum):
    """Classification of a single ETA estimate."""

    CALCULATING = "Calculating..."
    STALLED = "Stalled"
    COMPLETE = "Complete"
    ESTIMATED = "estimated"


@dataclass(frozen=True)
class EtaClassification:
    """Result of an ETA estimate; minutes is set only when ESTIMATED."""

    status: EtaStatus
    minutes: Optional[float] = None


@dataclass
class ProbeOutput:
    """Raw field values collected from one instance."""

    progress_line: str
    csv_count: Optional[int]
    free_disk: str
    current_process: str


@dataclass
class CycleResult:
    """Outcome of one instance in one monitoring cycle."""

    identity: InstanceIdentity
    sample: Optional[ProgressSample] = None
    step_delta: Optional[int] = None
    eta: Optional[EtaClassification] = None
    csv_count: Optional[int] = None
    free_disk: Optional[str] = None
    current_process: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
