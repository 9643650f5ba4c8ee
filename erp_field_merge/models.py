"""
Data Model for ERP Field Merge Reconciliation

Immutable records shared by the aligner, merger, classifier and batch
coordinator. Every output record can be flattened with ``to_dict()`` into
plain mappings, lists and scalars for serialization.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


# Raw database rows have a column set this system does not control
RawScalar = Union[str, int, float, bool, None]
RawRecord = Mapping[str, RawScalar]


def normalize_identity(api_name: Optional[str]) -> str:
    """
    Normalize an API name into the alignment key.

    Args:
        api_name: Field API name as authored in either source

    Returns:
        Lower-cased, trimmed identity ("" when the name is blank)
    """
    if api_name is None:
        return ""
    return str(api_name).strip().lower()


class Provenance(Enum):
    """Which source(s) contributed to a merged field."""
    DATABASE_ONLY = "database-only"
    SPREADSHEET_ONLY = "spreadsheet-only"
    MERGED = "merged"


class Severity(Enum):
    """Severity of a conflict kind."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConflictKind(Enum):
    """Taxonomy of attribute-level disagreements."""
    DATA_TYPE = "data-type"
    REQUIRED_STATUS = "required-status"
    COLUMN_MAPPING = "column-mapping"
    DESCRIPTION = "description"
    OTHER = "other"

    @property
    def severity(self) -> Severity:
        return _KIND_SEVERITY[self]

    @classmethod
    def from_attribute(cls, attribute: str) -> "ConflictKind":
        """Map a merged-field attribute name onto its conflict kind."""
        return _ATTRIBUTE_KINDS.get(attribute, cls.OTHER)


_KIND_SEVERITY = {
    ConflictKind.DATA_TYPE: Severity.HIGH,
    ConflictKind.COLUMN_MAPPING: Severity.HIGH,
    ConflictKind.REQUIRED_STATUS: Severity.MEDIUM,
    ConflictKind.OTHER: Severity.MEDIUM,
    ConflictKind.DESCRIPTION: Severity.LOW,
}

_ATTRIBUTE_KINDS = {
    "db_column": ConflictKind.COLUMN_MAPPING,
    "data_type": ConflictKind.DATA_TYPE,
    "description": ConflictKind.DESCRIPTION,
    "required": ConflictKind.REQUIRED_STATUS,
}


class RiskLevel(Enum):
    """Overall merge risk of one operation."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Recommendation(Enum):
    """Recommended action for one operation."""
    AUTO_MERGE = "auto-merge"
    MANUAL_REVIEW = "manual-review"
    SKIP = "skip"


@dataclass(frozen=True)
class DatabaseField:
    """
    Field annotation taken from the existing database catalog.

    The database source carries no requiredness signal.
    """

    api_name: str
    db_column: str = ""
    data_type: str = ""
    max_length: Optional[int] = None
    description: str = ""

    source = "database"

    @property
    def identity(self) -> str:
        return normalize_identity(self.api_name)


@dataclass(frozen=True)
class SpreadsheetField:
    """Field row extracted from an API workbook."""

    api_name: str
    db_column: str = ""
    data_type: str = ""
    required: bool = False
    description: str = ""
    validation: Optional[str] = None
    example: Optional[str] = None
    remark: Optional[str] = None
    max_length: Optional[int] = None

    source = "spreadsheet"

    @property
    def identity(self) -> str:
        return normalize_identity(self.api_name)


SourceField = Union[DatabaseField, SpreadsheetField]


@dataclass(frozen=True)
class ServiceInfo:
    """API service header found at the top of an API sheet."""

    service_name: str = ""
    description_zh_tw: str = ""
    description_zh_cn: str = ""
    description_en: str = ""
    version: str = "1.0"
    call_mode: str = ""
    page_mode: str = ""


@dataclass(frozen=True)
class Workbook:
    """One spreadsheet workbook describing an operation."""

    operation_code: str
    api_name: str
    module: str = ""
    method_type: str = ""
    fields: Tuple[SpreadsheetField, ...] = ()
    header_fields: Tuple[SpreadsheetField, ...] = ()
    detail_fields: Tuple[SpreadsheetField, ...] = ()
    service_info: Optional[ServiceInfo] = None


@dataclass(frozen=True)
class FieldConflict:
    """Disagreement between the two sources on one attribute."""

    attribute: str
    db_value: Any
    excel_value: Any

    @property
    def kind(self) -> ConflictKind:
        return ConflictKind.from_attribute(self.attribute)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attribute": self.attribute,
            "db_value": self.db_value,
            "excel_value": self.excel_value,
        }


@dataclass(frozen=True)
class MergedField:
    """Field record produced by the merger, with provenance and conflicts."""

    api_name: str
    db_column: str
    data_type: str
    required: bool
    description: str
    provenance: Provenance
    max_length: Optional[int] = None
    validation: Optional[str] = None
    example: Optional[str] = None
    remark: Optional[str] = None
    conflicts: Tuple[FieldConflict, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "api_name": self.api_name,
            "db_column": self.db_column,
            "data_type": self.data_type,
            "max_length": self.max_length,
            "required": self.required,
            "description": self.description,
            "validation": self.validation,
            "example": self.example,
            "remark": self.remark,
            "provenance": self.provenance.value,
        }
        if self.conflicts:
            result["conflicts"] = [c.to_dict() for c in self.conflicts]
        return result


@dataclass(frozen=True)
class MergeResult:
    """Merged field catalog for one operation."""

    operation_code: str
    fields: Tuple[MergedField, ...]

    @property
    def total_fields(self) -> int:
        return len(self.fields)

    @property
    def new_fields(self) -> int:
        return sum(1 for f in self.fields if f.provenance is Provenance.SPREADSHEET_ONLY)

    @property
    def updated_fields(self) -> int:
        return sum(1 for f in self.fields if f.provenance is Provenance.MERGED)

    @property
    def conflicts(self) -> int:
        """Number of fields carrying at least one conflict."""
        return len(self.conflicted_fields())

    def conflicted_fields(self) -> List[MergedField]:
        return [f for f in self.fields if f.has_conflicts]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_code": self.operation_code,
            "total_fields": self.total_fields,
            "new_fields": self.new_fields,
            "updated_fields": self.updated_fields,
            "conflicts": self.conflicts,
            "fields": [f.to_dict() for f in self.fields],
        }


@dataclass(frozen=True)
class ConflictGroup:
    """Conflicts of one kind aggregated over an operation."""

    kind: ConflictKind
    count: int
    examples: Tuple[str, ...] = ()

    @property
    def severity(self) -> Severity:
        return self.kind.severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "count": self.count,
            "severity": self.severity.value,
            "examples": list(self.examples),
        }


@dataclass(frozen=True)
class OperationAnalysis:
    """Risk assessment and recommendation for one operation."""

    operation_code: str
    has_excel: bool
    has_database: bool
    excel_file_count: int
    field_count: int
    conflict_count: int
    conflict_groups: Tuple[ConflictGroup, ...]
    can_auto_merge: bool
    risk: RiskLevel
    recommendation: Recommendation
    skip_reason: Optional[str] = None
    analyzed_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
        compare=False
    )

    @property
    def skipped(self) -> bool:
        return self.recommendation is Recommendation.SKIP

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_code": self.operation_code,
            "has_excel": self.has_excel,
            "has_database": self.has_database,
            "excel_file_count": self.excel_file_count,
            "field_count": self.field_count,
            "conflict_count": self.conflict_count,
            "conflict_groups": [g.to_dict() for g in self.conflict_groups],
            "can_auto_merge": self.can_auto_merge,
            "risk": self.risk.value,
            "recommendation": self.recommendation.value,
            "skip_reason": self.skip_reason,
            "analyzed_at": self.analyzed_at.isoformat(),
        }


@dataclass(frozen=True)
class BatchAnalysisResult:
    """Per-operation analyses plus batch tallies."""

    total_operations: int
    operations: Tuple[OperationAnalysis, ...]
    by_module: Dict[str, int]
    by_risk: Dict[str, int]
    by_recommendation: Dict[str, int]

    @property
    def analyzed(self) -> int:
        return len(self.operations)

    @property
    def can_auto_merge(self) -> int:
        return self.by_recommendation.get(Recommendation.AUTO_MERGE.value, 0)

    @property
    def need_manual_review(self) -> int:
        return self.by_recommendation.get(Recommendation.MANUAL_REVIEW.value, 0)

    @property
    def skipped(self) -> int:
        return self.by_recommendation.get(Recommendation.SKIP.value, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_operations": self.total_operations,
            "analyzed": self.analyzed,
            "can_auto_merge": self.can_auto_merge,
            "need_manual_review": self.need_manual_review,
            "skipped": self.skipped,
            "operations": [op.to_dict() for op in self.operations],
            "summary": {
                "by_module": dict(self.by_module),
                "by_risk": dict(self.by_risk),
                "by_recommendation": dict(self.by_recommendation),
            },
        }
