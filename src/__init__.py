"""
Simulation Fleet Monitor.
"""

from clients import ComputeRestClient
from config import MonitorConfig
from eta import EtaHistory, estimate, format_duration, parse_to_minutes
from log_utils import setup_logging
from models import CycleResult, EtaClassification, EtaStatus, InstanceIdentity
from monitor import FleetMonitor
from probe import SshProber, collect_probe, launch_process
from progress import ProgressTracker, parse_sample

__all__ = [
    "ComputeRestClient",
    "MonitorConfig",
    "EtaHistory",
    "estimate",
    "format_duration",
    "parse_to_minutes",
    "setup_logging",
    "CycleResult",
    "EtaClassification",
    "EtaStatus",
    "InstanceIdentity",
    "FleetMonitor",
    "SshProber",
    "collect_probe",
    "launch_process",
    "ProgressTracker",
    "parse_sample",
]
