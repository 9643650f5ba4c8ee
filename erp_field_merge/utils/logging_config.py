"""
Logging Configuration for ERP Field Merge

Console logging for humans plus optional JSON-lines logging for log
shippers. Both handlers carry the current correlation ID.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from erp_field_merge.utils.correlation import setup_correlation_logging

PACKAGE_LOGGER = "erp_field_merge"

CONSOLE_FORMAT = '[%(asctime)s] %(levelname)s [%(correlation_id)s] %(name)s - %(message)s'
CONSOLE_DATEFMT = '%Y-%m-%d %H:%M:%S'

# Record attributes copied into JSON output when present
EXTRA_FIELDS = {
    'operation': 'operation',
    'duration': 'duration_seconds',
    'risk': 'risk',
    'recommendation': 'recommendation',
}


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter with correlation ID support."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'correlation_id': getattr(record, 'correlation_id', 'N/A'),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for attribute, key in EXTRA_FIELDS.items():
            if hasattr(record, attribute):
                log_data[key] = getattr(record, attribute)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def configure_logging(
    level: int = logging.INFO,
    json_logging: Optional[bool] = None
) -> logging.Logger:
    """
    Configure the package logger.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        level: Log level for the package logger
        json_logging: Add a JSON handler (defaults to JSON_LOGGING env var)

    Returns:
        The configured package logger
    """
    if json_logging is None:
        json_logging = os.getenv('JSON_LOGGING', 'false').lower() == 'true'

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
    setup_correlation_logging(console_handler)
    package_logger.addHandler(console_handler)

    if json_logging:
        json_handler = logging.StreamHandler()
        json_handler.setFormatter(StructuredJSONFormatter())
        setup_correlation_logging(json_handler)
        package_logger.addHandler(json_handler)

    package_logger.propagate = not json_logging

    return package_logger
