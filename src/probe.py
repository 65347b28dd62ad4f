"""
Remote probing of simulation hosts over SSH.

collect_probe() runs the fixed command set through any execute callable,
so it can be exercised without a network. launch_process() starts a case
script in a detached tmux session through the same seam. SshProber supplies
that callable from a paramiko session.
"""

import logging
from typing import Callable, Optional, Tuple

import paramiko

from errors import (
    AuthenticationError,
    CommandError,
    LaunchError,
    NoAddressError,
    TransportError,
)
from models import InstanceIdentity, ProbeOutput

logger = logging.getLogger(__name__)

# (stdout, exit_code, stderr)
CommandOutput = Tuple[str, int, str]
Executor = Callable[[str], CommandOutput]

PROGRESS_COMMAND = "grep TimeStep {case}/solve.out | tail -n1"
CSV_COUNT_COMMAND = "ls {case}/*.csv | wc -l"
FREE_DISK_COMMAND = "df -h / | tail -n1 | awk '{print $4}'"

# Checked in order; the first match wins.
PROCESS_CHECKS = (
    ("s3 sync", "ps aux | grep '[s]3 sync' | grep -v grep"),
    ("finalize", "ps aux | grep '[f]inalize' | grep -v grep"),
    ("zcsvs", "ps aux | grep '[z]csvs' | grep -v grep"),
)
NO_PROCESS = "none"

# Case scripts that can be started in a detached tmux session named after them.
LAUNCHABLE_PROCESSES = ("zcsvs", "finalize")
LAUNCH_COMMAND = 'tmux new-session -d -s {process} "cd {case} && sh {process}"'


def run_command(execute: Executor, command: str) -> str:
    """
    Execute one command and return its trimmed stdout.

    Raises:
        CommandError: If the command exits non-zero with non-empty stderr
    """
    stdout, exit_code, stderr = execute(command)
    if exit_code != 0 and stderr.strip():
        raise CommandError(command, exit_code, stderr)
    return stdout.strip()


def collect_probe(execute: Executor, case_name: str) -> ProbeOutput:
    """
    Collect progress, CSV count, free disk and active process for a case.

    Args:
        execute: Callable running a shell command on the target host
        case_name: Case directory name on the host (instance display name)

    Returns:
        Raw probe fields
    """
    progress_line = run_command(execute, PROGRESS_COMMAND.format(case=case_name))

    csv_text = run_command(execute, CSV_COUNT_COMMAND.format(case=case_name))
    try:
        csv_count: Optional[int] = int(csv_text)
    except ValueError:
        logger.warning(f"{case_name}: unexpected CSV count output {csv_text!r}")
        csv_count = None

    free_disk = run_command(execute, FREE_DISK_COMMAND)

    current_process = NO_PROCESS
    for label, command in PROCESS_CHECKS:
        if run_command(execute, command):
            current_process = label
            break

    return ProbeOutput(
        progress_line=progress_line,
        csv_count=csv_count,
        free_disk=free_disk,
        current_process=current_process,
    )


def launch_process(execute: Executor, case_name: str, process_name: str) -> None:
    """
    Start a case script in a detached tmux session on the host.

    Args:
        execute: Callable running a shell command on the target host
        case_name: Case directory name on the host
        process_name: One of LAUNCHABLE_PROCESSES

    Raises:
        ValueError: If process_name is not launchable
        LaunchError: If tmux exits non-zero (e.g. the session already exists)
    """
    if process_name not in LAUNCHABLE_PROCESSES:
        raise ValueError(
            f"Unknown process {process_name!r}; expected one of "
            f"{', '.join(LAUNCHABLE_PROCESSES)}"
        )

    command = LAUNCH_COMMAND.format(process=process_name, case=case_name)
    _, exit_code, stderr = execute(command)
    if exit_code != 0:
        raise LaunchError(stderr.strip() or f"tmux exited with code {exit_code}")
    logger.info(f"{case_name}: started {process_name} in tmux session {process_name!r}")


class SshProber:
    """Probes instances over SSH with public-key authentication."""

    def __init__(
        self,
        key_file: str,
        username: str = "ubuntu",
        port: int = 22,
        connect_timeout: float = 10.0,
        command_timeout: float = 60.0,
    ):
        """
        Initialize the SSH prober.

        Args:
            key_file: Path to the private key
            username: Remote login user
            port: SSH port
            connect_timeout: TCP connect and handshake timeout (seconds)
            command_timeout: Per-command channel timeout (seconds)
        """
        self.key_file = key_file
        self.username = username
        self.port = port
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout

    def _connect(self, address: str) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=address,
                port=self.port,
                username=self.username,
                key_filename=self.key_file,
                timeout=self.connect_timeout,
                banner_timeout=self.connect_timeout,
                auth_timeout=self.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except paramiko.AuthenticationException as e:
            client.close()
            raise AuthenticationError(f"SSH authentication failed: {e}") from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise TransportError(f"SSH connection error: {e}") from e
        return client

    def _executor(self, client: paramiko.SSHClient) -> Executor:
        def execute(command: str) -> CommandOutput:
            logger.debug(f"exec: {command}")
            try:
                _, stdout, stderr = client.exec_command(
                    command, timeout=self.command_timeout
                )
                out = stdout.read().decode(errors="replace")
                err = stderr.read().decode(errors="replace")
                exit_code = stdout.channel.recv_exit_status()
            except (paramiko.SSHException, OSError) as e:
                raise TransportError(f"SSH channel error: {e}") from e
            return out, exit_code, err

        return execute

    def probe(self, instance: InstanceIdentity) -> ProbeOutput:
        """
        Connect to an instance and collect its probe fields.

        Raises:
            NoAddressError: If the instance has no address
            AuthenticationError: If the key is rejected
            TransportError: On connection or channel failure
            CommandError: If a remote command fails
        """
        if not instance.address:
            raise NoAddressError()

        client = self._connect(instance.address)
        try:
            return collect_probe(self._executor(client), instance.name)
        finally:
            client.close()

    def launch_process(self, instance: InstanceIdentity, process_name: str) -> None:
        """
        Start zcsvs or finalize for an instance's case in a tmux session.

        Raises:
            NoAddressError: If the instance has no address
            AuthenticationError: If the key is rejected
            TransportError: On connection or channel failure
            LaunchError: If tmux could not start the session
        """
        if not instance.address:
            raise NoAddressError()

        client = self._connect(instance.address)
        try:
            launch_process(self._executor(client), instance.name, process_name)
        finally:
            client.close()
