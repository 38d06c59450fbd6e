"""
Run ID Utility for Re-index Auditing

Tags every log line and metric push of a comparison run with a run ID so
that interleaved runs against several archives can be told apart.
"""

import contextvars
import logging
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

_run_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'run_id',
    default=None
)


def generate_run_id() -> str:
    """
    Generate a new run ID using UUID4.

    Returns:
        String representation of a UUID4
    """
    return str(uuid.uuid4())


def get_run_id() -> Optional[str]:
    """Current run ID, or None outside a run."""
    return _run_id.get()


def set_run_id(run_id: str) -> None:
    """
    Set the run ID in the current context.

    Args:
        run_id: Run ID to set

    Raises:
        ValueError: If run_id is empty or not a string
    """
    if not run_id or not isinstance(run_id, str):
        raise ValueError("Run ID must be a non-empty string")

    _run_id.set(run_id)
    logger.debug(f"Set run ID: {run_id}")


def clear_run_id() -> None:
    _run_id.set(None)


class ScanRunContext:
    """
    Context manager scoping a run ID to one archive comparison.

    The previous run ID, if any, is restored on exit.
    """

    def __init__(self, archive: str, run_id: Optional[str] = None):
        """
        Initialize the run context.

        Args:
            archive: Archive being compared
            run_id: Optional run ID; a new one is generated if not provided
        """
        self.archive = archive
        self.run_id = run_id
        self.previous_id = None

    def __enter__(self) -> str:
        self.previous_id = get_run_id()

        if not self.run_id:
            self.run_id = generate_run_id()
        set_run_id(self.run_id)

        logger.debug(f"Entered run {self.run_id} for archive {self.archive}")
        return self.run_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_id:
            set_run_id(self.previous_id)
        else:
            clear_run_id()
        logger.debug(f"Left run {self.run_id} for archive {self.archive}")


def run_id_filter(record: logging.LogRecord) -> bool:
    """
    Logging filter adding the run ID to log records.

    Returns:
        True (always allow record)
    """
    record.run_id = get_run_id() or "N/A"
    return True


def setup_run_logging(target) -> None:
    """
    Attach the run ID filter to a logger or handler.

    Args:
        target: logging.Logger or logging.Handler to configure
    """
    target.addFilter(run_id_filter)
