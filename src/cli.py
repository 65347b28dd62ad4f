"""Console entry point for the Simulation Fleet Monitor CLI."""

from __future__ import annotations

import argparse
import logging
from typing import List

from clients import ComputeRestClient
from config import KEYPAIR_ENV_VAR, MonitorConfig
from errors import MonitorError
from log_utils import setup_logging
from monitor import FleetMonitor
from probe import LAUNCHABLE_PROCESSES, SshProber

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description=(
            "Simulation Fleet Monitor\n\n"
            "Polls running simulation instances over SSH and reports progress,\n"
            "median ETA, output counts and disk space on a fixed interval."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  # Monitor every c4-highcpu-192 instance in two zones\n"
            "  sim-fleet-monitor --project my-project --zones southamerica-east1-a "
            "southamerica-east1-b --machine-type c4-highcpu-192\n\n"
            "  # Single cycle, no screen clearing\n"
            "  sim-fleet-monitor --project my-project --zones southamerica-east1-a "
            "--max-cycles 1 --no-clear\n\n"
            "  # Start finalize on one case in a detached tmux session\n"
            "  sim-fleet-monitor --project my-project --zones southamerica-east1-a "
            "--launch finalize --instance zen00az180_OS_2ms"
        ),
    )

    required = parser.add_argument_group("required arguments")
    required.add_argument(
        "--project", required=True, metavar="PROJECT_ID", help="GCP project ID"
    )
    required.add_argument(
        "--zones",
        required=True,
        nargs="+",
        metavar="ZONE",
        help="One or more zones to scan for instances",
    )

    mode = parser.add_argument_group("operation mode")
    mode.add_argument(
        "--launch",
        choices=LAUNCHABLE_PROCESSES,
        metavar="PROCESS",
        help=(
            "Launch mode: start zcsvs or finalize for --instance in a detached "
            "tmux session instead of monitoring"
        ),
    )
    mode.add_argument(
        "--instance",
        metavar="NAME",
        help="Case name of the instance to launch on (launch mode only)",
    )

    targets = parser.add_argument_group("targets and access")
    targets.add_argument(
        "--machine-type",
        metavar="TYPE",
        help="Only monitor instances of this machine type",
    )
    targets.add_argument(
        "--key-file",
        metavar="PATH",
        help=f"SSH private key (default: ${KEYPAIR_ENV_VAR})",
    )
    targets.add_argument("--username", default="ubuntu", help="SSH user (default: ubuntu)")
    targets.add_argument(
        "--internal-ip",
        action="store_true",
        help="Connect via internal IP instead of external NAT IP",
    )

    timing = parser.add_argument_group("timing and concurrency")
    timing.add_argument(
        "--interval",
        type=float,
        default=6.0,
        metavar="MINUTES",
        help="Minutes between cycles; also the ETA rate window (default: 6)",
    )
    timing.add_argument(
        "--max-parallel",
        type=int,
        metavar="N",
        help="Cap on concurrent probes (default: one per instance)",
    )
    timing.add_argument(
        "--task-timeout",
        type=float,
        metavar="SECONDS",
        help=(
            "Report probes still running after this long as failed (default: wait). "
            "Their SSH sessions are only torn down by --command-timeout, which "
            "also bounds how long Ctrl+C waits to exit"
        ),
    )
    timing.add_argument(
        "--connect-timeout",
        type=float,
        default=10.0,
        metavar="SECONDS",
        help="SSH connect timeout (default: 10)",
    )
    timing.add_argument(
        "--command-timeout",
        type=float,
        default=60.0,
        metavar="SECONDS",
        help="Per-command SSH channel timeout (default: 60)",
    )
    timing.add_argument(
        "--max-cycles",
        type=int,
        metavar="N",
        help="Stop after N cycles (default: run until interrupted)",
    )

    output = parser.add_argument_group("logging and output")
    output.add_argument(
        "--no-clear", action="store_true", help="Do not clear the screen between reports"
    )
    output.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def launch(
    monitor: FleetMonitor, prober: SshProber, instance_name: str, process: str
) -> int:
    """Start a case script on one named instance; returns the exit status."""
    inst = monitor.find_instance(instance_name)
    if inst is None:
        logger.error(
            f"No running instance named {instance_name!r} in {', '.join(monitor.zones)}"
        )
        return 1

    logger.info(f"Starting {process} on {inst.name} ({inst.address})...")
    try:
        prober.launch_process(inst, process)
    except MonitorError as e:
        logger.error(f"{inst.name}: {e}")
        return 1
    logger.info(f"{process} started; attach with: tmux attach -t {process}")
    return 0


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    log_file = "fleet-launch.log" if args.launch else "fleet-monitor.log"
    setup_logging(verbose=args.verbose, log_file=log_file)

    config = MonitorConfig.from_args(args)
    try:
        config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    prober = SshProber(
        key_file=config.key_file,
        username=config.username,
        connect_timeout=config.connect_timeout,
        command_timeout=config.command_timeout,
    )
    monitor = FleetMonitor(
        inventory=ComputeRestClient(
            project_id=config.project_id, use_internal_ip=config.use_internal_ip
        ),
        prober=prober,
        zones=config.zones,
        machine_type=config.machine_type,
        sampling_interval_minutes=config.interval_minutes,
        max_parallel=config.max_parallel,
        task_timeout=config.task_timeout,
        clear_screen=config.clear_screen,
    )

    if config.launch_process:
        return launch(monitor, prober, config.instance_name, config.launch_process)

    try:
        monitor.run(max_cycles=config.max_cycles)
    except KeyboardInterrupt:
        logger.info("Monitoring stopped by user")
    return 0
