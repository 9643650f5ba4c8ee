"""
Source Provider Contracts for ERP Field Merge

Defines the two input contracts consumed by the batch coordinator and the
exceptions raised by provider implementations.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from erp_field_merge.models import DatabaseField, Workbook


class SourceError(Exception):
    """Base exception for source provider failures."""
    pass


class SourceReadError(SourceError):
    """Raised when a source cannot be read or parsed."""
    pass


class SourceNotFoundError(SourceError):
    """Raised when a configured source root does not exist."""
    pass


class CatalogProvider(ABC):
    """Source A: the existing field catalog derived from the database."""

    @abstractmethod
    def get_existing_field_catalog(self, operation_code: str) -> Optional[List[DatabaseField]]:
        """
        Return the catalog fields of an operation.

        Args:
            operation_code: Operation code (e.g. ACPI02)

        Returns:
            List of fields, or None when no catalog exists for the operation

        Raises:
            SourceError: If the catalog exists but cannot be read
        """

    def catalog_exists(self, operation_code: str) -> bool:
        """
        Whether a catalog exists for the operation, without parsing it.

        Providers that can check existence cheaply should override this;
        the default reads the catalog.
        """
        return self.get_existing_field_catalog(operation_code) is not None


class WorkbookProvider(ABC):
    """Source B: spreadsheet workbooks describing the API surface."""

    @abstractmethod
    def get_workbook_fields(self, operation_code: str) -> List[Workbook]:
        """
        Return the workbooks of an operation.

        Args:
            operation_code: Operation code (e.g. ACPI02)

        Returns:
            Workbooks found for the operation (empty when none)

        Raises:
            SourceError: If workbooks exist but cannot be read
        """
