"""
Field Aligner for ERP Field Merge Reconciliation

Aligns database and spreadsheet field collections by case-insensitive
API name. Identifies fields only in the database catalog, fields only in
the workbooks, and fields present in both.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Tuple, TypeVar

from erp_field_merge.models import (
    DatabaseField,
    SpreadsheetField,
    normalize_identity,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", DatabaseField, SpreadsheetField)


@dataclass(frozen=True)
class AlignmentResult:
    """
    Partition of field identities across the two sources.

    Attributes:
        only_db: Identity → field present only in the database catalog
        only_excel: Identity → field present only in the workbooks
        both: (database, spreadsheet) pairs sharing an identity
    """

    only_db: Dict[str, DatabaseField] = field(default_factory=dict)
    only_excel: Dict[str, SpreadsheetField] = field(default_factory=dict)
    both: List[Tuple[DatabaseField, SpreadsheetField]] = field(default_factory=list)

    def identities(self) -> List[str]:
        """Return every aligned identity in sorted order."""
        keys = set(self.only_db) | set(self.only_excel)
        keys.update(db_field.identity for db_field, _ in self.both)
        return sorted(keys)

    def summary(self) -> Dict[str, int]:
        return {
            "only_db_count": len(self.only_db),
            "only_excel_count": len(self.only_excel),
            "both_count": len(self.both),
        }


class FieldAligner:
    """
    Aligns two identity-keyed field maps.

    Identities are lower-cased and trimmed API names. Traversal is sorted by
    identity so downstream reports are reproducible.
    """

    def __init__(self):
        """Initialize the field aligner."""
        logger.debug("Initialized FieldAligner")

    def build_index(self, fields: Iterable[F]) -> Dict[str, F]:
        """
        Build an identity index over a field list.

        Fields whose API name is blank are dropped. Duplicate identities are
        resolved last-write-wins; callers are expected to hand in fields
        already deduplicated in construction order.

        Args:
            fields: Database or spreadsheet fields

        Returns:
            Dictionary mapping identity → field
        """
        index: Dict[str, F] = {}

        for i, source_field in enumerate(fields):
            key = normalize_identity(source_field.api_name)
            if not key:
                logger.debug(f"Dropping field at index {i} with empty identity")
                continue

            if key in index:
                logger.debug(f"Duplicate identity '{key}' at index {i}, keeping last")

            index[key] = source_field

        return index

    def find_only_in_db(
        self,
        db_fields: Mapping[str, DatabaseField],
        excel_fields: Mapping[str, SpreadsheetField]
    ) -> Dict[str, DatabaseField]:
        """Fields present in the database catalog but not in any workbook."""
        missing_keys = sorted(set(db_fields.keys()) - set(excel_fields.keys()))
        return {key: db_fields[key] for key in missing_keys}

    def find_only_in_excel(
        self,
        db_fields: Mapping[str, DatabaseField],
        excel_fields: Mapping[str, SpreadsheetField]
    ) -> Dict[str, SpreadsheetField]:
        """Fields present in the workbooks but not in the database catalog."""
        extra_keys = sorted(set(excel_fields.keys()) - set(db_fields.keys()))
        return {key: excel_fields[key] for key in extra_keys}

    def find_common(
        self,
        db_fields: Mapping[str, DatabaseField],
        excel_fields: Mapping[str, SpreadsheetField]
    ) -> List[Tuple[DatabaseField, SpreadsheetField]]:
        """Pairs of fields sharing an identity, sorted by identity."""
        common_keys = sorted(set(db_fields.keys()) & set(excel_fields.keys()))
        return [(db_fields[key], excel_fields[key]) for key in common_keys]

    def align(
        self,
        db_fields: Mapping[str, DatabaseField],
        excel_fields: Mapping[str, SpreadsheetField]
    ) -> AlignmentResult:
        """
        Partition identities into only-database, only-spreadsheet and both.

        Args:
            db_fields: Identity → database field
            excel_fields: Identity → spreadsheet field

        Returns:
            AlignmentResult covering every identity exactly once
        """
        result = AlignmentResult(
            only_db=self.find_only_in_db(db_fields, excel_fields),
            only_excel=self.find_only_in_excel(db_fields, excel_fields),
            both=self.find_common(db_fields, excel_fields),
        )

        logger.info(
            f"Alignment summary: {len(result.only_db)} database-only, "
            f"{len(result.only_excel)} spreadsheet-only, {len(result.both)} in both"
        )

        return result

    def align_fields(
        self,
        db_fields: Iterable[DatabaseField],
        excel_fields: Iterable[SpreadsheetField]
    ) -> AlignmentResult:
        """Index both field lists and align them in one call."""
        return self.align(self.build_index(db_fields), self.build_index(excel_fields))
