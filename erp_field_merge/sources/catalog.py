"""
Database Catalog Source for ERP Field Merge

Reads the existing per-operation field catalog (``field-data.json``) that was
previously generated from the OAPMB annotation table, and converts raw
records of arbitrary shape into DatabaseField values.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from erp_field_merge.models import DatabaseField, RawRecord
from erp_field_merge.sources.base import CatalogProvider, SourceReadError

logger = logging.getLogger(__name__)

CATALOG_FILE_NAME = "field-data.json"

_LENGTH_PATTERN = re.compile(r"欄位長度[:：]\s*(\d+)")


def _first_value(record: RawRecord, *keys: str) -> Any:
    """Return the first non-empty value among alternative column names."""
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_length(value: Any) -> Optional[int]:
    """Coerce a raw length value into a positive int, if possible."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    try:
        length = int(str(value).strip())
    except ValueError:
        return None
    return length if length > 0 else None


def extract_length(raw_info: Optional[str]) -> Optional[int]:
    """
    Extract a field length from an OAPMB info string.

    Args:
        raw_info: Text such as "欄位長度:20"

    Returns:
        Length as int, or None if no length is embedded
    """
    if not raw_info:
        return None
    match = _LENGTH_PATTERN.search(str(raw_info))
    return int(match.group(1)) if match else None


def database_field_from_record(record: RawRecord) -> Optional[DatabaseField]:
    """
    Convert one catalog entry into a DatabaseField.

    Both snake_case and camelCase column names are accepted.

    Args:
        record: Mapping of column name → scalar value

    Returns:
        DatabaseField, or None if the record has no API name
    """
    api_name = _as_text(_first_value(record, "api_name", "apiName"))
    if not api_name:
        return None

    return DatabaseField(
        api_name=api_name,
        db_column=_as_text(_first_value(record, "db_column", "dbColumn")),
        data_type=_as_text(_first_value(record, "data_type", "dataType")),
        max_length=_as_length(_first_value(record, "max_length", "maxLength")),
        description=_as_text(record.get("description")),
    )


def database_field_from_oapm_record(record: RawRecord) -> Optional[DatabaseField]:
    """
    Convert a raw OAPMB annotation row into a DatabaseField.

    Columns used: MB001 (table), MB002 (column), MB004 (API name, falls back
    to MB002), MB017 (data type), MB018 (description), MB028 (length info).

    Args:
        record: Mapping of OAPMB column name → scalar value

    Returns:
        DatabaseField, or None if neither MB004 nor MB002 is set
    """
    column = _as_text(record.get("MB002"))
    api_name = _as_text(record.get("MB004")) or column
    if not api_name:
        return None

    table = _as_text(record.get("MB001"))
    db_column = f"{table}.{column}" if table and column else column

    return DatabaseField(
        api_name=api_name,
        db_column=db_column,
        data_type=_as_text(record.get("MB017")),
        max_length=extract_length(_as_text(record.get("MB028"))),
        description=_as_text(record.get("MB018")),
    )


def database_fields_from_records(records: Iterable[RawRecord]) -> List[DatabaseField]:
    """Convert catalog entries, dropping those without an API name."""
    fields = []

    for i, record in enumerate(records):
        if not isinstance(record, dict):
            logger.debug(f"Skipping non-mapping catalog entry at index {i}")
            continue

        db_field = database_field_from_record(record)
        if db_field is None:
            logger.debug(f"Skipping catalog entry at index {i} without API name")
            continue

        fields.append(db_field)

    return fields


class JsonCatalogProvider(CatalogProvider):
    """
    Catalog provider backed by ``<api_methods_path>/<operation>/field-data.json``.
    """

    def __init__(self, api_methods_path: Union[str, Path]):
        """
        Initialize the provider.

        Args:
            api_methods_path: Directory holding one sub-directory per operation
        """
        self.api_methods_path = Path(api_methods_path)
        logger.debug(f"Catalog directory: {self.api_methods_path}")

    def catalog_path(self, operation_code: str) -> Path:
        return self.api_methods_path / operation_code / CATALOG_FILE_NAME

    def catalog_exists(self, operation_code: str) -> bool:
        return self.catalog_path(operation_code).is_file()

    def load_catalog(self, operation_code: str) -> Optional[Dict[str, Any]]:
        """
        Load the raw catalog document.

        Args:
            operation_code: Operation code

        Returns:
            Parsed JSON document, or None if the file does not exist

        Raises:
            SourceReadError: If the file cannot be read or is not valid JSON
        """
        path = self.catalog_path(operation_code)

        if not path.exists():
            logger.debug(f"No catalog found for {operation_code}")
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read catalog for {operation_code}: {e}")
            raise SourceReadError(f"Cannot read {path}: {e}") from e

        if not isinstance(document, dict):
            raise SourceReadError(f"Catalog {path} is not a JSON object")

        return document

    def get_existing_field_catalog(self, operation_code: str) -> Optional[List[DatabaseField]]:
        document = self.load_catalog(operation_code)
        if document is None:
            return None

        raw_fields = document.get("fields") or []
        if not isinstance(raw_fields, list):
            raise SourceReadError(
                f"Catalog for {operation_code} has a non-list 'fields' entry"
            )

        fields = database_fields_from_records(raw_fields)
        logger.info(f"Loaded {len(fields)} catalog fields for {operation_code}")
        return fields
