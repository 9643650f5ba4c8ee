"""JSON persistence of merge results and analyses."""

from erp_field_merge.output.catalog_writer import CatalogWriter

__all__ = ["CatalogWriter"]
