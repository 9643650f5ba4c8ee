"""
ERP Field Merge

Reconciles ERP API field metadata from the existing database catalog and
the API workbooks, and recommends auto-merge, manual review or skip per
operation.
"""

__version__ = "1.0.0"
