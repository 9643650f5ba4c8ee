"""
Catalog Writer for ERP Field Merge

Persists merged field catalogs, conflict lists and analyses as JSON
documents, one directory per operation.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from erp_field_merge.models import (
    BatchAnalysisResult,
    MergeResult,
    OperationAnalysis,
)

logger = logging.getLogger(__name__)

MERGED_FIELDS_FILE = "merged-fields.json"
MERGE_CONFLICTS_FILE = "merge-conflicts.json"
MERGE_ANALYSIS_FILE = "merge-analysis.json"
BATCH_ANALYSIS_FILE = "batch-analysis.json"


class CatalogWriter:
    """Writes merge outputs under an output directory."""

    def __init__(self, output_dir: Union[str, Path]):
        """
        Initialize the writer.

        Args:
            output_dir: Root directory for outputs (created if missing)
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Output directory: {self.output_dir}")

    def operation_dir(self, operation_code: str) -> Path:
        path = self.output_dir / operation_code
        path.mkdir(parents=True, exist_ok=True)
        return path

    def write_merge_result(self, result: MergeResult) -> Dict[str, Path]:
        """
        Save a merged catalog, and its conflict list when it has conflicts.

        Args:
            result: Merge result of one operation

        Returns:
            Mapping of document kind → written path
        """
        out_dir = self.operation_dir(result.operation_code)
        written = {}

        document = result.to_dict()
        document["generated_at"] = datetime.now(timezone.utc).isoformat()
        written["merged_fields"] = self._write_json(out_dir / MERGED_FIELDS_FILE, document)

        conflicts_path = out_dir / MERGE_CONFLICTS_FILE
        conflicted = result.conflicted_fields()
        if conflicted:
            conflicts = [
                {
                    "api_name": f.api_name,
                    "conflicts": [c.to_dict() for c in f.conflicts],
                }
                for f in conflicted
            ]
            written["merge_conflicts"] = self._write_json(conflicts_path, conflicts)
        elif conflicts_path.exists():
            # Stale list from an earlier run
            conflicts_path.unlink()

        logger.info(f"Saved merge result for {result.operation_code} to {out_dir}")
        return written

    def write_analysis(self, analysis: OperationAnalysis) -> Path:
        out_dir = self.operation_dir(analysis.operation_code)
        return self._write_json(out_dir / MERGE_ANALYSIS_FILE, analysis.to_dict())

    def write_batch(self, result: BatchAnalysisResult) -> Path:
        """Save a batch analysis at the output root."""
        document = result.to_dict()
        document["generated_at"] = datetime.now(timezone.utc).isoformat()
        path = self._write_json(self.output_dir / BATCH_ANALYSIS_FILE, document)
        logger.info(
            f"Saved batch analysis of {result.total_operations} operations to {path}"
        )
        return path

    def load_merge_result(self, operation_code: str) -> Optional[Dict[str, Any]]:
        """Load a previously saved merged catalog document, or None."""
        path = self.output_dir / operation_code / MERGED_FIELDS_FILE

        if not path.exists():
            logger.debug(f"No merged catalog saved for {operation_code}")
            return None

        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_json(self, path: Path, document: Any) -> Path:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        logger.debug(f"Wrote {path}")
        return path
