"""
Pytest configuration and shared fixtures for unit tests.

Provides sample catalogs, workbooks and in-memory source providers.
"""

import pytest

from erp_field_merge.models import DatabaseField, SpreadsheetField, Workbook
from erp_field_merge.sources.base import CatalogProvider, WorkbookProvider
from erp_field_merge.utils.correlation import clear_correlation_id


class InMemoryCatalogProvider(CatalogProvider):
    """Catalog provider over a dict of operation → fields."""

    def __init__(self, catalogs):
        self.catalogs = catalogs

    def get_existing_field_catalog(self, operation_code):
        return self.catalogs.get(operation_code)


class InMemoryWorkbookProvider(WorkbookProvider):
    """Workbook provider over a dict of operation → workbooks."""

    def __init__(self, workbooks):
        self.workbooks = workbooks

    def get_workbook_fields(self, operation_code):
        return list(self.workbooks.get(operation_code, []))


def make_workbook(operation_code, fields, api_name=None):
    return Workbook(
        operation_code=operation_code,
        api_name=api_name or f"wf.oapi.{operation_code.lower()}.create",
        module="ACP",
        method_type="create",
        fields=tuple(fields),
    )


@pytest.fixture(autouse=True)
def reset_correlation_id():
    """Each test starts outside any correlation context."""
    clear_correlation_id()
    yield
    clear_correlation_id()


@pytest.fixture
def sample_db_fields():
    """Existing catalog of a payable voucher operation."""
    return [
        DatabaseField(
            api_name="voucher_no",
            db_column="ACPTA.TA001",
            data_type="VARCHAR",
            max_length=20,
            description="Voucher number"
        ),
        DatabaseField(
            api_name="voucher_date",
            db_column="ACPTA.TA003",
            data_type="DATE",
            description="Voucher date"
        ),
        DatabaseField(
            api_name="legacy_flag",
            db_column="ACPTA.TA099",
            data_type="CHAR",
            description="Retired flag"
        ),
    ]


@pytest.fixture
def sample_excel_fields():
    """Workbook fields of the same operation."""
    return [
        SpreadsheetField(
            api_name="Voucher_No",
            db_column="ACPTA.TA001",
            data_type="VARCHAR",
            required=True,
            description="單據號碼",
            example="AP20240001"
        ),
        SpreadsheetField(
            api_name="voucher_date",
            db_column="",
            data_type="DATE",
            required=True,
            description="Voucher date"
        ),
        SpreadsheetField(
            api_name="supplier_code",
            db_column="ACPTA.TA004",
            data_type="VARCHAR",
            required=False,
            description="Supplier code"
        ),
    ]


@pytest.fixture
def in_memory_providers():
    """Factory building (catalog provider, workbook provider) pairs."""
    def _build(catalogs, workbooks):
        return InMemoryCatalogProvider(catalogs), InMemoryWorkbookProvider(workbooks)
    return _build


@pytest.fixture
def workbook_factory():
    """Build a single-sheet Workbook from spreadsheet fields."""
    return make_workbook
