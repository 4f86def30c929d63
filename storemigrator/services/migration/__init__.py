"""Spreadsheet-to-store migration pipelines."""

from storemigrator.services.migration.assembler import RowAssembler, assemble_products
from storemigrator.services.migration.metafields import MetafieldSchemaReconciler
from storemigrator.services.migration.parsers import SpreadsheetError, load_sheet_rows
from storemigrator.services.migration.products import migrate_products
from storemigrator.services.migration.report import MigrationResult, ReportBuilder, ReportRow
from storemigrator.services.migration.sync import ProductSyncEngine

__all__ = [
    "MetafieldSchemaReconciler",
    "MigrationResult",
    "ProductSyncEngine",
    "ReportBuilder",
    "ReportRow",
    "RowAssembler",
    "SpreadsheetError",
    "assemble_products",
    "load_sheet_rows",
    "migrate_products",
]
