"""
Risk Classifier for ERP Field Merge Reconciliation

Groups the conflicts of a merged field set by kind, derives an overall
merge risk and a recommended action for the operation.
"""

import logging
from typing import Dict, List, Optional, Sequence

from erp_field_merge.models import (
    ConflictGroup,
    ConflictKind,
    MergedField,
    MergeResult,
    OperationAnalysis,
    Recommendation,
    RiskLevel,
    Severity,
)

logger = logging.getLogger(__name__)

MAX_EXAMPLES_PER_KIND = 3
HIGH_RISK_CONFLICT_THRESHOLD = 10

SKIP_MISSING_SPREADSHEET = "missing spreadsheet source"
SKIP_MISSING_DATABASE = "missing database source"
SKIP_ANALYSIS_ERROR = "analysis error"


class RiskClassifier:
    """
    Classifies merge risk for one operation.

    Risk rules, applied in order:
    - no conflicts → low
    - any high-severity kind → high
    - more than 10 conflicts → high
    - only low-severity kinds (description drift) → low
    - otherwise (including more than 3 kinds) → medium
    """

    def __init__(self):
        """Initialize the risk classifier."""
        logger.debug("Initialized RiskClassifier")

    def group_conflicts(self, fields: Sequence[MergedField]) -> List[ConflictGroup]:
        """
        Group conflicts by kind in first-seen order.

        Args:
            fields: Merged fields of one operation

        Returns:
            One ConflictGroup per kind present, with up to 3 examples each
        """
        counts: Dict[ConflictKind, int] = {}
        examples: Dict[ConflictKind, List[str]] = {}

        for merged in fields:
            for conflict in merged.conflicts:
                kind = conflict.kind

                if kind not in counts:
                    counts[kind] = 0
                    examples[kind] = []

                counts[kind] += 1

                if len(examples[kind]) < MAX_EXAMPLES_PER_KIND:
                    examples[kind].append(
                        f"{merged.api_name}: {conflict.db_value} → {conflict.excel_value}"
                    )

        return [
            ConflictGroup(kind=kind, count=count, examples=tuple(examples[kind]))
            for kind, count in counts.items()
        ]

    def assess_risk(self, groups: Sequence[ConflictGroup]) -> RiskLevel:
        """
        Derive the overall risk level from conflict groups.

        Args:
            groups: Conflict groups of one operation

        Returns:
            RiskLevel
        """
        if not groups:
            return RiskLevel.LOW

        if any(group.severity is Severity.HIGH for group in groups):
            return RiskLevel.HIGH

        total_conflicts = sum(group.count for group in groups)
        if total_conflicts > HIGH_RISK_CONFLICT_THRESHOLD:
            return RiskLevel.HIGH

        if all(group.severity is Severity.LOW for group in groups):
            return RiskLevel.LOW

        return RiskLevel.MEDIUM

    def recommend(
        self,
        risk: RiskLevel,
        groups: Sequence[ConflictGroup]
    ) -> Recommendation:
        """
        Derive the recommended action.

        Args:
            risk: Assessed risk level
            groups: Conflict groups of one operation

        Returns:
            Recommendation
        """
        if risk is RiskLevel.LOW and not groups:
            return Recommendation.AUTO_MERGE

        # Textual drift only is safe to accept automatically
        if (
            risk is RiskLevel.LOW
            and len(groups) == 1
            and groups[0].kind is ConflictKind.DESCRIPTION
        ):
            return Recommendation.AUTO_MERGE

        return Recommendation.MANUAL_REVIEW

    def classify(
        self,
        operation_code: str,
        merge_result: MergeResult,
        has_excel: bool = True,
        has_database: bool = True,
        excel_file_count: int = 0
    ) -> OperationAnalysis:
        """
        Build the analysis of one merged operation.

        Args:
            operation_code: Operation analysed
            merge_result: Output of FieldMerger.merge_fields
            has_excel: Whether any workbook was found
            has_database: Whether a database catalog was found
            excel_file_count: Number of workbooks read

        Returns:
            OperationAnalysis
        """
        groups = self.group_conflicts(merge_result.fields)
        risk = self.assess_risk(groups)
        recommendation = self.recommend(risk, groups)

        logger.info(
            f"Classified {operation_code}: {len(groups)} conflict kind(s), "
            f"risk={risk.value}, recommendation={recommendation.value}",
            extra={
                "operation": operation_code,
                "risk": risk.value,
                "recommendation": recommendation.value,
            }
        )

        return OperationAnalysis(
            operation_code=operation_code,
            has_excel=has_excel,
            has_database=has_database,
            excel_file_count=excel_file_count,
            field_count=merge_result.total_fields,
            conflict_count=merge_result.conflicts,
            conflict_groups=tuple(groups),
            can_auto_merge=merge_result.conflicts == 0,
            risk=risk,
            recommendation=recommendation,
        )

    def skipped(
        self,
        operation_code: str,
        reason: str,
        has_excel: bool = False,
        has_database: bool = False,
        excel_file_count: int = 0
    ) -> OperationAnalysis:
        """
        Build a skip result. No merge or conflict analysis is attempted.

        Args:
            operation_code: Operation skipped
            reason: Skip reason
            has_excel: Whether any workbook was found
            has_database: Whether a database catalog was found
            excel_file_count: Number of workbooks read

        Returns:
            OperationAnalysis with recommendation=skip and risk=high
        """
        logger.warning(f"Skipping {operation_code}: {reason}")

        return OperationAnalysis(
            operation_code=operation_code,
            has_excel=has_excel,
            has_database=has_database,
            excel_file_count=excel_file_count,
            field_count=0,
            conflict_count=0,
            conflict_groups=(),
            can_auto_merge=False,
            risk=RiskLevel.HIGH,
            recommendation=Recommendation.SKIP,
            skip_reason=reason,
        )

    def missing_source_reason(self, has_excel: bool, has_database: bool) -> Optional[str]:
        """Reason to skip for an absent source, or None when both exist."""
        if not has_excel:
            return SKIP_MISSING_SPREADSHEET
        if not has_database:
            return SKIP_MISSING_DATABASE
        return None
