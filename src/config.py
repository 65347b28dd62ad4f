"""
Configuration management for the Simulation Fleet Monitor.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

KEYPAIR_ENV_VAR = "FLEET_MONITOR_KEYPAIR"


@dataclass
class MonitorConfig:
    """Configuration for fleet monitoring."""

    project_id: str
    zones: List[str]
    key_file: Optional[str] = None
    machine_type: Optional[str] = None
    username: str = "ubuntu"
    interval_minutes: float = 6.0
    max_parallel: Optional[int] = None
    task_timeout: Optional[float] = None
    connect_timeout: float = 10.0
    use_internal_ip: bool = False
    command_timeout: float = 60.0
    launch_process: Optional[str] = None
    instance_name: Optional[str] = None
    max_cycles: Optional[int] = None
    clear_screen: bool = True
    verbose: bool = False

    @classmethod
    def from_args(cls, args) -> "MonitorConfig":
        """
        Create configuration from command-line arguments.

        The key file falls back to the FLEET_MONITOR_KEYPAIR environment
        variable when --key-file is not given.

        Args:
            args: Parsed argparse arguments

        Returns:
            MonitorConfig instance
        """
        return cls(
            project_id=args.project,
            zones=args.zones,
            key_file=args.key_file or os.environ.get(KEYPAIR_ENV_VAR),
            machine_type=args.machine_type,
            username=args.username,
            interval_minutes=args.interval,
            max_parallel=args.max_parallel,
            task_timeout=args.task_timeout,
            connect_timeout=args.connect_timeout,
            use_internal_ip=args.internal_ip,
            command_timeout=args.command_timeout,
            launch_process=args.launch,
            instance_name=args.instance,
            max_cycles=args.max_cycles,
            clear_screen=not args.no_clear,
            verbose=args.verbose,
        )

    def validate(self) -> None:
        """
        Check settings that must hold before the first cycle.

        Raises:
            ValueError: If the key file is missing or a numeric setting is invalid
        """
        if not self.key_file:
            raise ValueError(
                f"No SSH key file given; use --key-file or set {KEYPAIR_ENV_VAR}"
            )
        if not os.path.isfile(os.path.expanduser(self.key_file)):
            raise ValueError(f"SSH key file not found: {self.key_file}")
        if self.interval_minutes <= 0:
            raise ValueError("Refresh interval must be positive")
        if self.max_parallel is not None and self.max_parallel < 1:
            raise ValueError("Max parallel must be at least 1")
        if self.task_timeout is not None and self.task_timeout <= 0:
            raise ValueError("Task timeout must be positive")
        if self.command_timeout <= 0:
            raise ValueError("Command timeout must be positive")
        if self.launch_process and not self.instance_name:
            raise ValueError("--launch needs --instance to name the target case")
