"""
Settings for ERP Field Merge

Paths, batch sizing, logging and metrics options. Values come from
constructor arguments, environment variables, or a YAML file.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_API_METHODS_PATH = "/opt/apiserv/erp_api_docs/api_methods"
DEFAULT_WORKBOOK_ROOT = "/opt/apiserv/erp_api_docs/GP40"
DEFAULT_OUTPUT_DIR = "./output"
DEFAULT_BATCH_SIZE = 50
MAX_BATCH_SIZE = 500

# Setting name → environment variable
ENV_VARS = {
    "api_methods_path": "ERP_API_METHODS_PATH",
    "workbook_root": "ERP_WORKBOOK_ROOT",
    "output_dir": "DEFAULT_OUTPUT_DIR",
    "batch_size": "DEFAULT_BATCH_SIZE",
    "max_batch_size": "MAX_BATCH_SIZE",
    "json_logging": "JSON_LOGGING",
    "metrics_namespace": "METRICS_NAMESPACE",
    "pushgateway_url": "PUSHGATEWAY_URL",
}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "y")


def _parse_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Setting '{name}' must be an integer, got {value!r}") from e


@dataclass
class MergeSettings:
    """
    Runtime settings.

    Attributes:
        api_methods_path: Directory of per-operation field catalogs
        workbook_root: Root of the <module>/<operation>/ workbook tree
        output_dir: Directory for merged catalogs and analyses
        batch_size: Operations per batch
        max_batch_size: Upper bound accepted for batch_size
        json_logging: Emit JSON-lines logs in addition to console logs
        metrics_namespace: Prefix of Prometheus metric names
        pushgateway_url: Pushgateway to push batch metrics to, optional
    """

    api_methods_path: str = DEFAULT_API_METHODS_PATH
    workbook_root: str = DEFAULT_WORKBOOK_ROOT
    output_dir: str = DEFAULT_OUTPUT_DIR
    batch_size: int = DEFAULT_BATCH_SIZE
    max_batch_size: int = MAX_BATCH_SIZE
    json_logging: bool = False
    metrics_namespace: str = "erp_field_merge"
    pushgateway_url: Optional[str] = None

    def validate(self) -> "MergeSettings":
        """
        Check batch sizing.

        Raises:
            ValueError: If batch_size is not in 1..max_batch_size
        """
        if self.max_batch_size <= 0:
            raise ValueError(f"max_batch_size must be positive, got {self.max_batch_size}")

        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

        if self.batch_size > self.max_batch_size:
            raise ValueError(
                f"batch_size {self.batch_size} exceeds max_batch_size {self.max_batch_size}"
            )

        return self

    def batches(self, operation_codes: Sequence[str]) -> Iterator[List[str]]:
        """Split operation codes into chunks of batch_size."""
        codes = list(operation_codes)
        for i in range(0, len(codes), self.batch_size):
            yield codes[i:i + self.batch_size]

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "MergeSettings":
        """
        Build settings from a mapping of setting name → raw value.

        Unknown keys are ignored with a warning.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}

        for name, value in values.items():
            if name not in known:
                logger.warning(f"Ignoring unknown setting: {name}")
                continue
            if value is None:
                continue

            if name in ("batch_size", "max_batch_size"):
                kwargs[name] = _parse_int(name, value)
            elif name == "json_logging":
                kwargs[name] = _parse_bool(value)
            else:
                kwargs[name] = str(value)

        return cls(**kwargs).validate()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MergeSettings":
        """
        Build settings from environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Validated MergeSettings
        """
        environ = os.environ if environ is None else environ
        values = {
            name: environ[var]
            for name, var in ENV_VARS.items()
            if environ.get(var)
        }
        return cls.from_mapping(values)

    @classmethod
    def from_yaml(
        cls,
        path: Union[str, Path],
        environ: Optional[Mapping[str, str]] = None
    ) -> "MergeSettings":
        """
        Build settings from a YAML mapping, with environment variables as
        fallback for keys the file does not set.

        Args:
            path: YAML file path
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Validated MergeSettings

        Raises:
            ValueError: If the file does not hold a mapping
        """
        with open(path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}

        if not isinstance(document, dict):
            raise ValueError(f"Settings file {path} must contain a mapping")

        environ = os.environ if environ is None else environ
        values = {
            name: environ[var]
            for name, var in ENV_VARS.items()
            if environ.get(var)
        }
        values.update({k: v for k, v in document.items() if v is not None})

        logger.info(f"Loaded settings from {path}")
        return cls.from_mapping(values)
