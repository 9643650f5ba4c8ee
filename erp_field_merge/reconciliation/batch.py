"""
Batch Coordinator for ERP Field Merge Reconciliation

Runs alignment, merge and risk classification over many operation codes.
Every operation is analysed independently; a failure on one operation is
converted into a skip result and never aborts the batch.
"""

import logging
import re
import time
from typing import Dict, Iterable, List, Optional, Sequence

from erp_field_merge.config import MergeSettings
from erp_field_merge.output.catalog_writer import CatalogWriter
from erp_field_merge.reconciliation.classifier import (
    SKIP_ANALYSIS_ERROR,
    SKIP_MISSING_SPREADSHEET,
    RiskClassifier,
)
from erp_field_merge.reconciliation.merger import FieldMerger
from erp_field_merge.models import (
    BatchAnalysisResult,
    MergeResult,
    OperationAnalysis,
    Recommendation,
    RiskLevel,
)
from erp_field_merge.sources.base import CatalogProvider, WorkbookProvider
from erp_field_merge.sources.catalog import JsonCatalogProvider
from erp_field_merge.sources.workbook import CommonSheetCache, GridWorkbookProvider, SheetLoader
from erp_field_merge.utils.correlation import CorrelationContext
from erp_field_merge.utils.metrics_collector import MetricsCollector, setup_merge_metrics

logger = logging.getLogger(__name__)

_MODULE_PATTERN = re.compile(r"^([A-Za-z]+)")

UNKNOWN_MODULE = "OTHER"


def module_prefix(operation_code: str) -> str:
    """
    Module of an operation: the leading run of letters (ACPI02 → ACPI).

    Args:
        operation_code: Operation code

    Returns:
        Module prefix, or "OTHER" when the code has no leading letters
    """
    match = _MODULE_PATTERN.match(operation_code.strip())
    return match.group(1) if match else UNKNOWN_MODULE


def summarize(
    analyses: Sequence[OperationAnalysis],
    total_operations: Optional[int] = None
) -> BatchAnalysisResult:
    """
    Fold per-operation analyses into batch tallies.

    Args:
        analyses: Operation analyses in input order
        total_operations: Number of requested operations (defaults to len(analyses))

    Returns:
        BatchAnalysisResult
    """
    by_module: Dict[str, int] = {}
    by_risk = {risk.value: 0 for risk in RiskLevel}
    by_recommendation = {rec.value: 0 for rec in Recommendation}

    for analysis in analyses:
        module = module_prefix(analysis.operation_code)
        by_module[module] = by_module.get(module, 0) + 1
        by_risk[analysis.risk.value] += 1
        by_recommendation[analysis.recommendation.value] += 1

    return BatchAnalysisResult(
        total_operations=len(analyses) if total_operations is None else total_operations,
        operations=tuple(analyses),
        by_module=by_module,
        by_risk=by_risk,
        by_recommendation=by_recommendation,
    )


class BatchCoordinator:
    """
    Analyses the merge feasibility of operations.

    Reads both sources per operation, merges them, classifies the risk and
    aggregates results over a batch.
    """

    def __init__(
        self,
        catalog_provider: CatalogProvider,
        workbook_provider: WorkbookProvider,
        merger: Optional[FieldMerger] = None,
        classifier: Optional[RiskClassifier] = None,
        metrics: Optional[MetricsCollector] = None,
        writer: Optional[CatalogWriter] = None,
        settings: Optional[MergeSettings] = None
    ):
        """
        Initialize the batch coordinator.

        Args:
            catalog_provider: Source of existing database catalogs
            workbook_provider: Source of spreadsheet workbooks
            merger: Field merger (a new one if omitted)
            classifier: Risk classifier (a new one if omitted)
            metrics: Collector prepared with setup_merge_metrics, optional
            writer: Writer persisting analyses in run(), optional
            settings: Batch sizing and pushgateway options used by run()
        """
        self.catalog_provider = catalog_provider
        self.workbook_provider = workbook_provider
        self.merger = merger or FieldMerger()
        self.classifier = classifier or RiskClassifier()
        self.metrics = metrics
        self.writer = writer
        self.settings = settings or MergeSettings()

        logger.info("BatchCoordinator initialized")

    @classmethod
    def from_settings(
        cls,
        settings: MergeSettings,
        sheet_loader: SheetLoader,
        cache: Optional[CommonSheetCache] = None
    ) -> "BatchCoordinator":
        """
        Build a coordinator over the file-backed sources named in settings.

        Args:
            settings: Validated settings
            sheet_loader: Callable loading (sheet name, rows) pairs from a workbook file
            cache: Common-sheet cache for this run (a new one if omitted)

        Returns:
            BatchCoordinator with catalog and workbook providers, merge
            metrics under settings.metrics_namespace and a catalog writer
            rooted at settings.output_dir
        """
        return cls(
            catalog_provider=JsonCatalogProvider(settings.api_methods_path),
            workbook_provider=GridWorkbookProvider(settings.workbook_root, sheet_loader, cache=cache),
            metrics=setup_merge_metrics(MetricsCollector(namespace=settings.metrics_namespace)),
            writer=CatalogWriter(settings.output_dir),
            settings=settings,
        )

    def run(self, operation_codes: Iterable[str]) -> BatchAnalysisResult:
        """
        Analyse operations in chunks of settings.batch_size.

        Each analysis and the combined batch result are saved when a writer
        is configured; metrics are pushed when a pushgateway is configured.

        Args:
            operation_codes: Operation codes to analyse

        Returns:
            BatchAnalysisResult over every requested code
        """
        codes = list(operation_codes)
        analyses: List[OperationAnalysis] = []

        for i, chunk in enumerate(self.settings.batches(codes), start=1):
            logger.info(f"Running batch {i} ({len(chunk)} operations)")
            analyses.extend(self.analyze_batch(chunk).operations)

        result = summarize(analyses, total_operations=len(codes))

        if self.writer is not None:
            for analysis in analyses:
                self.writer.write_analysis(analysis)
            self.writer.write_batch(result)

        if self.metrics is not None and self.settings.pushgateway_url:
            self.metrics.push_to_gateway(
                self.settings.pushgateway_url,
                job_name=f"{self.settings.metrics_namespace}_batch"
            )

        return result

    def merge_operation(self, operation_code: str) -> Optional[MergeResult]:
        """
        Merge one operation without classifying it.

        Args:
            operation_code: Operation code

        Returns:
            MergeResult, or None when either source is absent
        """
        workbooks = self.workbook_provider.get_workbook_fields(operation_code)
        if not workbooks:
            return None

        db_fields = self.catalog_provider.get_existing_field_catalog(operation_code)
        if db_fields is None:
            return None

        return self.merger.merge_fields(operation_code, db_fields, workbooks)

    def analyze_operation(self, operation_code: str) -> OperationAnalysis:
        """
        Analyse one operation.

        Provider or merge errors are caught here and turned into a skip
        result carrying the error message.

        Args:
            operation_code: Operation code

        Returns:
            OperationAnalysis
        """
        with CorrelationContext():
            logger.info(f"Analyzing {operation_code}...", extra={"operation": operation_code})
            start_time = time.time()

            try:
                analysis = self._analyze(operation_code)
            except Exception as e:
                logger.error(
                    f"Error analyzing {operation_code}: {e}",
                    exc_info=True,
                    extra={"operation": operation_code}
                )
                self._increment("operation_analysis_errors_total")
                analysis = self.classifier.skipped(
                    operation_code,
                    reason=f"{SKIP_ANALYSIS_ERROR}: {e}",
                )

            duration = time.time() - start_time
            logger.info(
                f"Analyzed {operation_code} in {duration:.3f}s: {analysis.recommendation.value}",
                extra={"operation": operation_code, "duration": duration}
            )
            self._record_analysis(analysis, duration)

            return analysis

    def analyze_batch(self, operation_codes: Iterable[str]) -> BatchAnalysisResult:
        """
        Analyse operations sequentially in input order.

        Args:
            operation_codes: Operation codes to analyse

        Returns:
            BatchAnalysisResult with one analysis per requested code
        """
        codes = list(operation_codes)
        results: List[OperationAnalysis] = []

        with CorrelationContext() as batch_id:
            logger.info(f"Starting batch analysis of {len(codes)} operations (batch {batch_id})")

            if self.metrics is not None:
                self.metrics.observe_histogram("batch_size", len(codes))

            for operation_code in codes:
                results.append(self.analyze_operation(operation_code))

                progress = round(len(results) / len(codes) * 100)
                logger.info(f"Progress: {len(results)}/{len(codes)} ({progress}%)")

            result = summarize(results, total_operations=len(codes))

            logger.info(
                f"Batch complete: {result.can_auto_merge} auto-merge, "
                f"{result.need_manual_review} manual-review, {result.skipped} skipped"
            )

        return result

    def _analyze(self, operation_code: str) -> OperationAnalysis:
        workbooks = self.workbook_provider.get_workbook_fields(operation_code)
        has_excel = len(workbooks) > 0

        # A missing spreadsheet source wins; the catalog is not read
        if not has_excel:
            return self.classifier.skipped(
                operation_code,
                reason=SKIP_MISSING_SPREADSHEET,
                has_excel=False,
                has_database=bool(self.catalog_provider.catalog_exists(operation_code)),
            )

        db_fields = self.catalog_provider.get_existing_field_catalog(operation_code)
        has_database = db_fields is not None

        reason = self.classifier.missing_source_reason(has_excel, has_database)
        if reason is not None:
            return self.classifier.skipped(
                operation_code,
                reason=reason,
                has_excel=has_excel,
                has_database=has_database,
                excel_file_count=len(workbooks),
            )

        merge_result = self.merger.merge_fields(operation_code, db_fields, workbooks)
        self._record_merge(merge_result)

        return self.classifier.classify(
            operation_code,
            merge_result,
            has_excel=has_excel,
            has_database=has_database,
            excel_file_count=len(workbooks),
        )

    def _increment(self, name: str, labels: Optional[Dict[str, str]] = None, value: float = 1.0) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter(name, value=value, labels=labels)

    def _record_merge(self, merge_result: MergeResult) -> None:
        if self.metrics is None:
            return

        for merged in merge_result.fields:
            self._increment("fields_merged_total", {"provenance": merged.provenance.value})
            for conflict in merged.conflicts:
                self._increment("conflicts_detected_total", {"kind": conflict.kind.value})

    def _record_analysis(self, analysis: OperationAnalysis, duration: float) -> None:
        if self.metrics is None:
            return

        self._increment(
            "operations_analyzed_total",
            {"recommendation": analysis.recommendation.value, "risk": analysis.risk.value}
        )
        self.metrics.observe_histogram("analysis_duration_seconds", duration)
