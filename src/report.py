"""
Cycle report formatting for the Simulation Fleet Monitor.
"""

import logging
import sys
from datetime import datetime
from typing import List, Optional

from eta import NOT_AVAILABLE, EtaHistory, display_eta
from models import CycleResult, EtaStatus, ProgressSample

logger = logging.getLogger(__name__)

REPORT_WIDTH = 125
FAILED = "Failed"
SUCCESS = "Success"
PROCESS_STATES = ("zcsvs", "finalize", "s3 sync", "none")


def truncate(text: str, width: int = 18, keep: int = 15) -> str:
    """Shorten text longer than width to keep chars plus '...'."""
    if len(text) > width:
        return f"{text[:keep]}..."
    return text


def format_timestep(sample: Optional[ProgressSample], step_delta: Optional[int]) -> str:
    """'(+delta)   time' once a delta exists, else '(step)   time'."""
    if sample is None:
        return FAILED
    if step_delta is not None:
        return f"(+{step_delta}){sample.elapsed:8.2f}"
    return f"({sample.step}){sample.elapsed:8.2f}"


def format_eta(result: CycleResult, history: EtaHistory) -> str:
    """Stalled, Complete and Calculating... win over the smoothed median."""
    if result.ok and result.eta is not None and result.eta.status is not EtaStatus.ESTIMATED:
        return display_eta(result.eta)
    return history.median(result.identity.name) or NOT_AVAILABLE


def format_row(result: CycleResult, history: EtaHistory) -> str:
    median = format_eta(result, history)

    if result.error is not None:
        columns = (FAILED, FAILED, FAILED, FAILED, truncate(result.error))
    else:
        columns = (
            format_timestep(result.sample, result.step_delta),
            str(result.csv_count) if result.csv_count is not None else FAILED,
            result.free_disk if result.free_disk is not None else FAILED,
            result.current_process if result.current_process is not None else FAILED,
            SUCCESS,
        )

    timestep, csv_count, disk, process, status = columns
    return (
        f"{truncate(result.identity.name):<20} {median:>15} {timestep:>15} "
        f"{csv_count:>12} {disk:>15} {process:<15} {status:<20}"
    )


def format_report(
    results: List[CycleResult],
    history: EtaHistory,
    now: Optional[datetime] = None,
) -> List[str]:
    """
    Build the summary table for one cycle.

    Rows are sorted by display name; error rows show the error in place
    of every data column.
    """
    now = now or datetime.now()
    lines = [
        "=" * REPORT_WIDTH,
        f"SUMMARY REPORT @ {now.strftime('%Y-%m-%d %H:%M:%S')}",
        "=" * REPORT_WIDTH,
        f"{'Instance Name':<20} {'Median ETA':^15} {'TimeStep':^15} {'CSV Count':^12} "
        f"{'Free Disk':^15} {'Current Process':<15} {'Connection Status':<20}",
        "-" * REPORT_WIDTH,
    ]

    for result in sorted(results, key=lambda r: r.identity.name):
        lines.append(format_row(result, history))

    lines.append("-" * REPORT_WIDTH)

    successful = sum(1 for r in results if r.ok)
    counts = {
        state: sum(1 for r in results if r.ok and r.current_process == state)
        for state in PROCESS_STATES
    }
    lines.append(
        f"Summary: {len(results)} total instances | {successful} successful connections | "
        f"{counts['zcsvs']} zcsvs | {counts['finalize']} finalize | "
        f"{counts['s3 sync']} s3 sync | {counts['none']} idle"
    )
    lines.append("=" * REPORT_WIDTH)
    return lines


def clear_terminal() -> None:
    """Clear the screen and home the cursor."""
    sys.stdout.write("\x1b[2J\x1b[1;1H")
    sys.stdout.flush()


def print_report(results: List[CycleResult], history: EtaHistory) -> None:
    for line in format_report(results, history):
        logger.info(line)
