"""
Logging utilities for the Simulation Fleet Monitor.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
# Probe workers log from threads named probe_N.
FILE_FORMAT = "%(asctime)s - %(threadName)s - %(levelname)s - %(name)s - %(message)s"
REPORT_LOGGER = "report"
QUIET_LOGGERS = ("paramiko", "urllib3", "google.auth")


class ConsoleFormatter(logging.Formatter):
    """Writes report table lines bare so the columns line up on screen."""

    def format(self, record: logging.LogRecord) -> str:
        if record.name == REPORT_LOGGER and record.levelno == logging.INFO:
            return record.getMessage()
        return super().format(record)


def setup_logging(
    verbose: bool = False, log_file: str = "fleet-monitor.log"
) -> logging.Logger:
    """
    Set up logging configuration.

    The console shows the report table without prefixes; the log file keeps
    full records, including which probe thread wrote them.

    Args:
        verbose: Enable verbose (DEBUG) logging
        log_file: Path to log file

    Returns:
        Logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ConsoleFormatter(LOG_FORMAT))
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    logging.basicConfig(level=level, handlers=[console, file_handler], force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logging.getLogger(__name__)
