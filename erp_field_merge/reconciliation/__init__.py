"""
Reconciliation Module for ERP Field Merge

This module reconciles field metadata for ERP API operations between the
existing database catalog and the API workbooks.

Main components:
- aligner: Identity alignment of the two field collections
- merger: Per-attribute merge policy and conflict detection
- classifier: Conflict grouping, risk level and recommendation
- batch: Batch analysis over many operation codes

Usage:
    from erp_field_merge.reconciliation import FieldMerger, RiskClassifier, BatchCoordinator

    # Merge one operation
    merger = FieldMerger()
    result = merger.merge_fields("ACPI02", db_fields, workbooks)

    # Classify its risk
    classifier = RiskClassifier()
    analysis = classifier.classify("ACPI02", result, excel_file_count=len(workbooks))

    # Analyse a batch
    coordinator = BatchCoordinator(catalog_provider, workbook_provider)
    batch = coordinator.analyze_batch(["ACPI02", "ACPI03"])
"""

from erp_field_merge.reconciliation.aligner import AlignmentResult, FieldAligner
from erp_field_merge.reconciliation.merger import FieldMerger
from erp_field_merge.reconciliation.classifier import RiskClassifier
from erp_field_merge.reconciliation.batch import BatchCoordinator, module_prefix, summarize

__all__ = [
    "AlignmentResult",
    "FieldAligner",
    "FieldMerger",
    "RiskClassifier",
    "BatchCoordinator",
    "module_prefix",
    "summarize",
]
