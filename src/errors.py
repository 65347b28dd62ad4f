"""
Per-instance error types for the Simulation Fleet Monitor.

Every error raised while probing a single instance derives from
MonitorError. The monitor catches these at the cycle boundary and turns
them into that instance's CycleResult error, so none of them is fatal
to a cycle or to the process.
"""


class MonitorError(Exception):
    """Base class for per-instance monitoring failures."""


class NoAddressError(MonitorError):
    """Instance has no reachable network address."""

    def __init__(self, message: str = "No reachable address"):
        super().__init__(message)


class TransportError(MonitorError):
    """Connection or handshake failure."""


class AuthenticationError(MonitorError):
    """Credentials rejected by the remote host."""


class CommandError(MonitorError):
    """A remote command exited non-zero with diagnostic output."""

    def __init__(self, command: str, exit_code: int, stderr: str):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            f"Command failed with exit code {exit_code}: {stderr.strip()}"
        )


class ParseError(MonitorError):
    """Progress line could not be turned into a sample."""


class InvalidCategoryError(ParseError):
    """Category label does not map to a known total step count."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(
            f"Invalid category: {label!r}. Valid categories are 2ms, 7ms, 12ms or 17ms"
        )


class TaskError(MonitorError):
    """The concurrent unit of work itself failed or timed out."""


class LaunchError(MonitorError):
    """A detached tmux session for a case process could not be started."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Tmux session launch failed: {reason}")
