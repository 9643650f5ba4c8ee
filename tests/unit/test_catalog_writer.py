"""
Unit tests for output catalog_writer module.
"""

import json

import pytest

from erp_field_merge.models import (
    FieldConflict,
    MergedField,
    MergeResult,
    Provenance,
)
from erp_field_merge.reconciliation.batch import summarize
from erp_field_merge.reconciliation.classifier import RiskClassifier


def make_result(with_conflict):
    conflicts = (FieldConflict("description", "Voucher number", "單據號碼"),) if with_conflict else ()
    return MergeResult(
        operation_code="ACPI02",
        fields=(
            MergedField(
                api_name="voucher_no",
                db_column="ACPTA.TA001",
                data_type="VARCHAR",
                required=True,
                description="單據號碼",
                provenance=Provenance.MERGED,
                conflicts=conflicts,
            ),
        )
    )


class TestCatalogWriter:
    """Test writing merge outputs."""

    @pytest.fixture
    def writer(self, tmp_path):
        """Create a CatalogWriter under a temp directory."""
        from erp_field_merge.output.catalog_writer import CatalogWriter
        return CatalogWriter(tmp_path / "output")

    def test_creates_output_dir(self, writer):
        """Test that the output directory is created."""
        assert writer.output_dir.is_dir()

    def test_write_merge_result(self, writer):
        """Test writing merged fields and conflicts."""
        written = writer.write_merge_result(make_result(with_conflict=True))

        merged = json.loads(written["merged_fields"].read_text(encoding="utf-8"))
        conflicts = json.loads(written["merge_conflicts"].read_text(encoding="utf-8"))

        assert merged["operation_code"] == "ACPI02"
        assert merged["fields"][0]["description"] == "單據號碼"
        assert "generated_at" in merged
        assert conflicts == [{
            "api_name": "voucher_no",
            "conflicts": [{
                "attribute": "description",
                "db_value": "Voucher number",
                "excel_value": "單據號碼",
            }],
        }]

    def test_output_is_not_ascii_escaped(self, writer):
        """Test that Chinese text is written as-is."""
        written = writer.write_merge_result(make_result(with_conflict=False))

        assert "單據號碼" in written["merged_fields"].read_text(encoding="utf-8")

    def test_stale_conflicts_removed(self, writer):
        """Test that a clean rerun removes an old conflict list."""
        first = writer.write_merge_result(make_result(with_conflict=True))
        conflicts_path = first["merge_conflicts"]

        second = writer.write_merge_result(make_result(with_conflict=False))

        assert "merge_conflicts" not in second
        assert not conflicts_path.exists()

    def test_load_merge_result(self, writer):
        """Test reading back a saved catalog."""
        assert writer.load_merge_result("ACPI02") is None

        writer.write_merge_result(make_result(with_conflict=False))

        assert writer.load_merge_result("ACPI02")["total_fields"] == 1

    def test_write_analysis(self, writer):
        """Test writing an operation analysis."""
        analysis = RiskClassifier().classify("ACPI02", make_result(with_conflict=True))

        path = writer.write_analysis(analysis)

        document = json.loads(path.read_text(encoding="utf-8"))
        assert path.name == "merge-analysis.json"
        assert document["recommendation"] == "auto-merge"

    def test_write_batch(self, writer):
        """Test writing a batch analysis."""
        classifier = RiskClassifier()
        result = summarize([
            classifier.classify("ACPI02", make_result(with_conflict=False)),
            classifier.skipped("INVI01", reason="missing spreadsheet source"),
        ])

        path = writer.write_batch(result)

        document = json.loads(path.read_text(encoding="utf-8"))
        assert path == writer.output_dir / "batch-analysis.json"
        assert document["total_operations"] == 2
        assert document["summary"]["by_recommendation"] == {
            "auto-merge": 1, "manual-review": 0, "skip": 1
        }
