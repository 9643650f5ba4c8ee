"""
Source Providers for ERP Field Merge

- base: provider contracts and exceptions
- catalog: existing field catalog (Source A) from field-data.json
- workbook: spreadsheet fields (Source B) from loaded sheet grids
"""

from erp_field_merge.sources.base import (
    CatalogProvider,
    SourceError,
    SourceNotFoundError,
    SourceReadError,
    WorkbookProvider,
)
from erp_field_merge.sources.catalog import JsonCatalogProvider
from erp_field_merge.sources.workbook import CommonSheetCache, GridWorkbookProvider, WorkbookFieldExtractor

__all__ = [
    "CatalogProvider",
    "WorkbookProvider",
    "SourceError",
    "SourceReadError",
    "SourceNotFoundError",
    "JsonCatalogProvider",
    "GridWorkbookProvider",
    "WorkbookFieldExtractor",
    "CommonSheetCache",
]
