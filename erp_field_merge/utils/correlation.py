"""
Correlation ID Utility for ERP Field Merge

Tags every log record emitted during a batch run or a single operation
analysis with a run-scoped correlation ID, so interleaved output from
different operations can be told apart.
"""

import uuid
import contextvars
from typing import Optional, Union
import logging

logger = logging.getLogger(__name__)

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id',
    default=None
)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        String form of a UUID4
    """
    correlation_id = str(uuid.uuid4())
    logger.debug(f"Generated correlation ID: {correlation_id}")
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """Current correlation ID, or None outside any run."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """
    Set the correlation ID for the current context.

    Args:
        correlation_id: Correlation ID to set

    Raises:
        ValueError: If correlation_id is empty or not a string
    """
    if not correlation_id or not isinstance(correlation_id, str):
        raise ValueError("Correlation ID must be a non-empty string")

    _correlation_id.set(correlation_id)


def get_or_create_correlation_id() -> str:
    """Return the current correlation ID, creating one if unset."""
    correlation_id = get_correlation_id()

    if not correlation_id:
        correlation_id = generate_correlation_id()
        set_correlation_id(correlation_id)

    return correlation_id


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationContext:
    """
    Context manager scoping a correlation ID to a batch run or an operation.

    The previous ID (if any) is restored on exit.
    """

    def __init__(self, correlation_id: Optional[str] = None):
        """
        Initialize correlation context.

        Args:
            correlation_id: ID to use; a new one is generated if omitted
        """
        self.correlation_id = correlation_id
        self.previous_id = None

    def __enter__(self) -> str:
        self.previous_id = get_correlation_id()

        if not self.correlation_id:
            self.correlation_id = generate_correlation_id()
        set_correlation_id(self.correlation_id)

        logger.debug(f"Entered correlation context: {self.correlation_id}")
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_id:
            set_correlation_id(self.previous_id)
        else:
            clear_correlation_id()
        logger.debug(f"Left correlation context: {self.correlation_id}")


def correlation_id_filter(record):
    """
    Logging filter adding ``correlation_id`` to every record.

    Args:
        record: Log record to augment

    Returns:
        True (records are never dropped)
    """
    record.correlation_id = get_correlation_id() or "N/A"
    return True


def setup_correlation_logging(target: Union[logging.Logger, logging.Handler]) -> None:
    """
    Attach the correlation filter to a logger or handler.

    Filters on a logger do not see records propagated from child loggers;
    attach to handlers to cover a whole package.

    Args:
        target: Logger or handler to configure
    """
    target.addFilter(correlation_id_filter)
