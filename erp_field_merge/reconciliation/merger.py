"""
Field Merger for ERP Field Merge Reconciliation

Merges aligned database/spreadsheet field pairs with a fixed per-attribute
resolution policy and records attribute-level conflicts.

Resolution policy for fields present in both sources:
- db_column: spreadsheet first, database fallback
- data_type: database first, spreadsheet fallback
- max_length: database first, spreadsheet fallback
- required: spreadsheet always (never a conflict)
- description: spreadsheet first, database fallback
- validation/example/remark: spreadsheet only
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence

from erp_field_merge.reconciliation.aligner import AlignmentResult, FieldAligner
from erp_field_merge.models import (
    DatabaseField,
    FieldConflict,
    MergedField,
    MergeResult,
    Provenance,
    SpreadsheetField,
    Workbook,
)

logger = logging.getLogger(__name__)

# Attributes compared for conflicts, in emission order
CONFLICT_ATTRIBUTES = ("db_column", "data_type", "description")


class FieldMerger:
    """
    Merges field pairs and detects conflicts between sources.

    A conflict is recorded only when both sources supply a non-empty value
    and the values differ. A value present on one side only is a fill-in.
    """

    def __init__(self, aligner: Optional[FieldAligner] = None):
        """
        Initialize the field merger.

        Args:
            aligner: Aligner used by merge_fields (a new one if omitted)
        """
        self.aligner = aligner or FieldAligner()
        logger.debug("Initialized FieldMerger")

    def merge_one(
        self,
        db_field: Optional[DatabaseField] = None,
        excel_field: Optional[SpreadsheetField] = None
    ) -> MergedField:
        """
        Merge one aligned identity.

        Args:
            db_field: Field from the database catalog, if any
            excel_field: Field from the workbooks, if any

        Returns:
            MergedField with provenance and conflicts

        Raises:
            ValueError: If neither field is given
        """
        if db_field is None and excel_field is None:
            raise ValueError("merge_one requires at least one of db_field or excel_field")

        if excel_field is None:
            return MergedField(
                api_name=db_field.api_name,
                db_column=db_field.db_column,
                data_type=db_field.data_type,
                max_length=db_field.max_length,
                required=False,
                description=db_field.description or "",
                provenance=Provenance.DATABASE_ONLY,
            )

        if db_field is None:
            return MergedField(
                api_name=excel_field.api_name,
                db_column=excel_field.db_column,
                data_type=excel_field.data_type,
                max_length=excel_field.max_length,
                required=excel_field.required,
                description=excel_field.description,
                validation=excel_field.validation,
                example=excel_field.example,
                remark=excel_field.remark,
                provenance=Provenance.SPREADSHEET_ONLY,
            )

        conflicts = self.detect_conflicts(db_field, excel_field)
        if conflicts:
            logger.debug(
                f"Field {excel_field.api_name} has {len(conflicts)} conflict(s): "
                f"{[c.attribute for c in conflicts]}"
            )

        return MergedField(
            api_name=excel_field.api_name or db_field.api_name,
            db_column=excel_field.db_column or db_field.db_column,
            data_type=db_field.data_type or excel_field.data_type,
            max_length=(
                db_field.max_length if db_field.max_length is not None
                else excel_field.max_length
            ),
            required=excel_field.required,
            description=excel_field.description or db_field.description,
            validation=excel_field.validation,
            example=excel_field.example,
            remark=excel_field.remark,
            provenance=Provenance.MERGED,
            conflicts=tuple(conflicts),
        )

    def detect_conflicts(
        self,
        db_field: DatabaseField,
        excel_field: SpreadsheetField
    ) -> List[FieldConflict]:
        """
        Compare the raw values of the conflict-checked attributes.

        Values are compared as-is: no case folding and no whitespace
        normalization.

        Args:
            db_field: Field from the database catalog
            excel_field: Field from the workbooks

        Returns:
            List of conflicts in attribute order
        """
        conflicts = []

        for attribute in CONFLICT_ATTRIBUTES:
            db_value = getattr(db_field, attribute)
            excel_value = getattr(excel_field, attribute)

            if self._values_conflict(db_value, excel_value):
                conflicts.append(FieldConflict(
                    attribute=attribute,
                    db_value=db_value,
                    excel_value=excel_value
                ))

        return conflicts

    def merge_alignment(self, alignment: AlignmentResult) -> List[MergedField]:
        """
        Merge every identity of an alignment, sorted by identity.

        Args:
            alignment: Result of FieldAligner.align

        Returns:
            Merged fields in identity order
        """
        by_identity = {}

        for key, db_field in alignment.only_db.items():
            by_identity[key] = self.merge_one(db_field=db_field)

        for key, excel_field in alignment.only_excel.items():
            by_identity[key] = self.merge_one(excel_field=excel_field)

        for db_field, excel_field in alignment.both:
            by_identity[db_field.identity] = self.merge_one(db_field, excel_field)

        return [by_identity[key] for key in sorted(by_identity)]

    def merge_fields(
        self,
        operation_code: str,
        db_fields: Iterable[DatabaseField],
        workbooks: Sequence[Workbook]
    ) -> MergeResult:
        """
        Merge an operation's database catalog with all of its workbooks.

        Workbook fields are flattened in workbook order before indexing, so a
        later workbook overrides an earlier one for the same identity.

        Args:
            operation_code: Operation being merged
            db_fields: Existing database catalog fields
            workbooks: Workbooks describing the operation

        Returns:
            MergeResult with merged fields and counts
        """
        excel_fields: List[SpreadsheetField] = []
        for workbook in workbooks:
            excel_fields.extend(workbook.fields)

        alignment = self.aligner.align_fields(db_fields, excel_fields)
        merged = self.merge_alignment(alignment)

        result = MergeResult(operation_code=operation_code, fields=tuple(merged))

        logger.info(
            f"Merged {operation_code}: {result.total_fields} fields, "
            f"{result.new_fields} new, {result.updated_fields} updated, "
            f"{result.conflicts} with conflicts"
        )

        return result

    def _values_conflict(self, db_value: Any, excel_value: Any) -> bool:
        """Both values present and unequal."""
        if not db_value or not excel_value:
            return False
        return db_value != excel_value
