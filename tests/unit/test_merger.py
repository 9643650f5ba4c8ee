"""
Unit tests for reconciliation merger module.

Tests the per-attribute resolution policy and conflict detection.
"""

import pytest

from erp_field_merge.models import (
    ConflictKind,
    DatabaseField,
    Provenance,
    SpreadsheetField,
)


class TestFieldMerger:
    """Test field merge functionality."""

    @pytest.fixture
    def merger(self):
        """Create a FieldMerger instance."""
        from erp_field_merge.reconciliation.merger import FieldMerger
        return FieldMerger()

    def test_merge_both_sources(self, merger):
        """Test merging a field present in both sources."""
        db_field = DatabaseField(
            api_name="voucher_no",
            db_column="ACPTA.TA001",
            data_type="VARCHAR",
            max_length=20,
            description="Voucher number"
        )
        excel_field = SpreadsheetField(
            api_name="voucher_no",
            db_column="ACPTA.TA001",
            data_type="VARCHAR",
            required=True,
            description="單據號碼"
        )

        merged = merger.merge_one(db_field, excel_field)

        assert merged.provenance is Provenance.MERGED
        assert merged.db_column == "ACPTA.TA001"
        assert merged.data_type == "VARCHAR"
        assert merged.max_length == 20
        assert merged.required is True
        assert merged.description == "單據號碼"
        assert len(merged.conflicts) == 1
        assert merged.conflicts[0].attribute == "description"
        assert merged.conflicts[0].kind is ConflictKind.DESCRIPTION
        assert merged.conflicts[0].db_value == "Voucher number"
        assert merged.conflicts[0].excel_value == "單據號碼"

    def test_data_type_prefers_database(self, merger):
        """Test that the database data type wins and the mismatch is recorded."""
        merged = merger.merge_one(
            DatabaseField(api_name="qty", data_type="INT"),
            SpreadsheetField(api_name="qty", data_type="int")
        )

        assert merged.data_type == "INT"
        assert [c.kind for c in merged.conflicts] == [ConflictKind.DATA_TYPE]

    def test_description_whitespace_is_conflict(self, merger):
        """Test that descriptions differing only by trailing whitespace conflict."""
        merged = merger.merge_one(
            DatabaseField(api_name="voucher_no", description="Voucher no"),
            SpreadsheetField(api_name="voucher_no", description="Voucher no ")
        )

        assert merged.description == "Voucher no "
        assert [c.kind for c in merged.conflicts] == [ConflictKind.DESCRIPTION]
        assert merged.conflicts[0].db_value == "Voucher no"
        assert merged.conflicts[0].excel_value == "Voucher no "

    def test_db_column_prefers_spreadsheet(self, merger):
        """Test that the spreadsheet column mapping wins."""
        merged = merger.merge_one(
            DatabaseField(api_name="qty", db_column="ACPTB.TB007"),
            SpreadsheetField(api_name="qty", db_column="ACPTB.TB008")
        )

        assert merged.db_column == "ACPTB.TB008"
        assert [c.kind for c in merged.conflicts] == [ConflictKind.COLUMN_MAPPING]

    def test_one_sided_value_is_fill_in(self, merger):
        """Test that a value present on one side only is not a conflict."""
        merged = merger.merge_one(
            DatabaseField(api_name="qty", db_column="ACPTB.TB007", data_type="", description=""),
            SpreadsheetField(api_name="qty", db_column="", data_type="DECIMAL", description="Quantity")
        )

        assert merged.conflicts == ()
        assert merged.db_column == "ACPTB.TB007"
        assert merged.data_type == "DECIMAL"
        assert merged.description == "Quantity"

    def test_max_length_falls_back_to_spreadsheet(self, merger):
        """Test max_length uses the spreadsheet only when the database has none."""
        merged = merger.merge_one(
            DatabaseField(api_name="code"),
            SpreadsheetField(api_name="code", max_length=10)
        )

        assert merged.max_length == 10

    def test_required_follows_spreadsheet(self, merger):
        """Test requiredness always comes from the spreadsheet."""
        merged = merger.merge_one(
            DatabaseField(api_name="code"),
            SpreadsheetField(api_name="code", required=False)
        )

        assert merged.required is False
        assert merged.conflicts == ()

    def test_database_only_field(self, merger):
        """Test a field known only to the database catalog."""
        merged = merger.merge_one(
            db_field=DatabaseField(api_name="legacy", db_column="T.C", data_type="CHAR")
        )

        assert merged.provenance is Provenance.DATABASE_ONLY
        assert merged.required is False
        assert merged.validation is None
        assert merged.conflicts == ()

    def test_spreadsheet_only_field(self, merger):
        """Test a field known only to the workbooks is kept verbatim."""
        excel_field = SpreadsheetField(
            api_name="supplier_code",
            db_column="ACPTA.TA004",
            data_type="VARCHAR",
            required=True,
            description="Supplier",
            example="S001",
            remark="欄位代號:ACPTA.TA004"
        )

        merged = merger.merge_one(excel_field=excel_field)

        assert merged.provenance is Provenance.SPREADSHEET_ONLY
        assert merged.api_name == "supplier_code"
        assert merged.required is True
        assert merged.example == "S001"
        assert merged.remark == "欄位代號:ACPTA.TA004"

    def test_merge_one_requires_a_field(self, merger):
        """Test that merging nothing is rejected."""
        with pytest.raises(ValueError, match="at least one"):
            merger.merge_one()

    def test_conflicts_are_reported_in_attribute_order(self, merger):
        """Test multi-attribute conflicts are listed column, type, description."""
        merged = merger.merge_one(
            DatabaseField(api_name="amt", db_column="A.B", data_type="INT", description="x"),
            SpreadsheetField(api_name="amt", db_column="A.C", data_type="NUMERIC", description="y")
        )

        assert [c.attribute for c in merged.conflicts] == ["db_column", "data_type", "description"]

    def test_merge_fields_counts(self, merger, sample_db_fields, sample_excel_fields, workbook_factory):
        """Test the counts of a merged operation."""
        result = merger.merge_fields(
            "ACPI02",
            sample_db_fields,
            [workbook_factory("ACPI02", sample_excel_fields)]
        )

        assert result.operation_code == "ACPI02"
        assert result.total_fields == 4
        assert result.new_fields == 1
        assert result.updated_fields == 2
        assert result.conflicts == 1
        assert [f.api_name for f in result.fields] == [
            "legacy_flag", "supplier_code", "voucher_date", "Voucher_No"
        ]

    def test_merge_fields_later_workbook_overrides(self, merger, workbook_factory):
        """Test that a later workbook overrides an earlier one for the same identity."""
        first = workbook_factory("ACPI02", [SpreadsheetField(api_name="qty", description="old")])
        second = workbook_factory("ACPI02", [SpreadsheetField(api_name="QTY", description="new")])

        result = merger.merge_fields("ACPI02", [], [first, second])

        assert result.total_fields == 1
        assert result.fields[0].description == "new"

    def test_merge_fields_with_empty_database(self, merger, sample_excel_fields, workbook_factory):
        """Test that an empty catalog makes every field spreadsheet-only."""
        result = merger.merge_fields(
            "ACPI02", [], [workbook_factory("ACPI02", sample_excel_fields)]
        )

        assert result.new_fields == 3
        assert result.updated_fields == 0
        assert result.conflicts == 0

    def test_merge_result_to_dict(self, merger, sample_db_fields, sample_excel_fields, workbook_factory):
        """Test that only conflicted fields serialize a conflicts entry."""
        result = merger.merge_fields(
            "ACPI02", sample_db_fields, [workbook_factory("ACPI02", sample_excel_fields)]
        )

        document = result.to_dict()

        by_name = {f["api_name"]: f for f in document["fields"]}
        assert "conflicts" in by_name["Voucher_No"]
        assert "conflicts" not in by_name["voucher_date"]
        assert by_name["legacy_flag"]["provenance"] == "database-only"
        assert document["conflicts"] == 1
