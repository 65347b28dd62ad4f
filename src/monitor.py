"""
Fleet monitoring cycle for simulation instances.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from errors import MonitorError, NoAddressError, TaskError
from eta import EtaHistory, estimate
from models import CycleResult, EtaStatus, InstanceIdentity, ProbeOutput, ProgressSample
from progress import ProgressTracker, parse_sample
from report import clear_terminal, print_report

logger = logging.getLogger(__name__)

DEFAULT_SAMPLING_INTERVAL_MINUTES = 6.0


def describe_error(exc: Exception) -> str:
    """One-line error text shown in place of an instance's data."""
    if isinstance(exc, NoAddressError):
        return str(exc)
    if isinstance(exc, TaskError):
        return f"Task error: {exc}"
    return f"Processing error: {exc}"


class FleetMonitor:
    """Probes a fleet of simulation instances and tracks their ETAs."""

    def __init__(
        self,
        inventory,
        prober,
        zones: List[str],
        machine_type: Optional[str] = None,
        sampling_interval_minutes: float = DEFAULT_SAMPLING_INTERVAL_MINUTES,
        max_parallel: Optional[int] = None,
        task_timeout: Optional[float] = None,
        tracker: Optional[ProgressTracker] = None,
        history: Optional[EtaHistory] = None,
        clear_screen: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the fleet monitor.

        Args:
            inventory: Client exposing list_instances(zone, machine_type)
            prober: Object exposing probe(InstanceIdentity) -> ProbeOutput
            zones: Zones to scan for instances
            machine_type: Only monitor instances of this machine type
            sampling_interval_minutes: Minutes between cycle starts. ETAs divide
                by the time actually elapsed between samples, which equals
                this interval when no cycle is missed or late
            max_parallel: Cap on concurrent probes (None = one per instance)
            task_timeout: Seconds to wait for all probes of a cycle
                (None = wait for every probe). A probe that misses the
                deadline keeps its thread until the prober's own command
                timeout ends it
            tracker: Progress store shared across cycles
            history: ETA history shared across cycles
            clear_screen: Clear the terminal before each report
            clock: Monotonic time source in seconds, stamped on each sample
        """
        self.inventory = inventory
        self.prober = prober
        self.zones = zones
        self.machine_type = machine_type
        self.sampling_interval_minutes = sampling_interval_minutes
        self.max_parallel = max_parallel
        self.task_timeout = task_timeout
        self.tracker = tracker if tracker is not None else ProgressTracker()
        self.history = history if history is not None else EtaHistory()
        self.clear_screen = clear_screen
        self.clock = clock

    def discover(self) -> List[InstanceIdentity]:
        """
        Scan all zones for running instances.

        Returns:
            List of discovered instances; zones that fail are skipped
        """
        found: List[InstanceIdentity] = []
        for zone in self.zones:
            logger.debug(f"Scanning instances in zone: {zone}")
            try:
                insts = self.inventory.list_instances(zone, self.machine_type)
                logger.debug(f"Found {len(insts)} instance(s) in {zone}")
                found.extend(insts)
            except Exception as e:
                logger.error(f"Failed to list instances in {zone}: {e}")
        return found

    def find_instance(self, name: str) -> Optional[InstanceIdentity]:
        """Return the running instance with this display name, if any."""
        for inst in self.discover():
            if inst.name == name:
                return inst
        return None

    def _probe_instance(
        self, inst: InstanceIdentity
    ) -> Tuple[ProgressSample, ProbeOutput]:
        """Probe one instance and parse its progress line (worker thread)."""
        output = self.prober.probe(inst)
        sample = parse_sample(inst.name, output.progress_line)
        return sample, output

    def _merge(
        self,
        inst: InstanceIdentity,
        sample: ProgressSample,
        output: ProbeOutput,
        observed_at: float,
    ) -> CycleResult:
        """Fold a successful probe into the tracker and ETA history."""
        state = self.tracker.advance(inst.name, sample, observed_at)
        eta = estimate(state, state.span_minutes or self.sampling_interval_minutes)
        if eta.status is EtaStatus.ESTIMATED:
            self.history.record(inst.name, eta.minutes)

        return CycleResult(
            identity=inst,
            sample=sample,
            step_delta=state.step_delta,
            eta=eta,
            csv_count=output.csv_count,
            free_disk=output.free_disk,
            current_process=output.current_process,
        )

    def _collect(
        self,
        inst: InstanceIdentity,
        future: Future,
        deadline: Optional[float],
        observed_at: float,
    ) -> CycleResult:
        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            sample, output = future.result(timeout=timeout)
        except MonitorError as e:
            logger.warning(f"{inst.name}: {e}")
            return CycleResult(identity=inst, error=describe_error(e))
        except FutureTimeoutError:
            future.cancel()
            err = TaskError(f"probe did not finish within {self.task_timeout}s")
            logger.warning(f"{inst.name}: {err}")
            return CycleResult(identity=inst, error=describe_error(err))
        except Exception as e:
            logger.exception(f"{inst.name}: probe task failed")
            return CycleResult(identity=inst, error=describe_error(TaskError(str(e))))

        return self._merge(inst, sample, output, observed_at)

    def run_cycle(self, instances: List[InstanceIdentity]) -> List[CycleResult]:
        """
        Probe every instance concurrently and build this cycle's results.

        Every instance in the input appears exactly once in the output, in
        input order, carrying either its probe data or one error string.
        Progress and history writes happen here, after each task is joined.
        """
        if not instances:
            return []

        observed_at = self.clock()
        workers = min(self.max_parallel or len(instances), len(instances))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="probe")
        try:
            futures = [
                (inst, executor.submit(self._probe_instance, inst)) for inst in instances
            ]
            deadline = (
                time.monotonic() + self.task_timeout if self.task_timeout else None
            )
            results = [
                self._collect(inst, fut, deadline, observed_at) for inst, fut in futures
            ]
        finally:
            # Timed-out probes run on until the prober's command timeout.
            executor.shutdown(wait=False, cancel_futures=True)

        failed = sum(1 for r in results if not r.ok)
        logger.debug(f"Cycle complete: {len(results)} instance(s), {failed} failed")
        return results

    def run(
        self,
        max_cycles: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> int:
        """
        Run monitoring cycles until stopped.

        Cycles start every sampling interval. A stop request is honoured
        between cycles; a cycle in flight always completes.

        Args:
            max_cycles: Stop after this many cycles (None = until stopped)
            stop_event: Set to request a stop

        Returns:
            Number of completed cycles
        """
        stop_event = stop_event or threading.Event()
        interval_s = self.sampling_interval_minutes * 60.0

        logger.info("=" * 70)
        logger.info("Simulation Fleet Monitor")
        logger.info("=" * 70)
        logger.info(f"Zones: {', '.join(self.zones)}")
        logger.info(f"Machine type: {self.machine_type or 'any'}")
        logger.info(f"Refresh interval: {self.sampling_interval_minutes:g} minutes")
        logger.info(f"Max parallel: {self.max_parallel or 'unlimited'}")
        logger.info(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 70)

        cycles = 0
        while not stop_event.is_set():
            started = time.monotonic()

            instances = self.discover()
            if instances:
                logger.info(f"Probing {len(instances)} instance(s)...")
                results = self.run_cycle(instances)
                if self.clear_screen:
                    clear_terminal()
                print_report(results, self.history)
            else:
                logger.info("No matching instances found")

            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            wait_s = max(0.0, interval_s - (time.monotonic() - started))
            logger.info(f"Next update in {wait_s / 60.0:.1f} minutes...")
            stop_event.wait(wait_s)

        return cycles
