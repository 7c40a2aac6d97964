"""Ingestion services (database writes): bank statements and supplier catalogs."""

from backoffice_ingestion.services.catalog_import_service import (
    CatalogImportService,
    ImportOutcome,
    map_catalog_row,
)
from backoffice_ingestion.services.statement_import_service import StatementImportService

__all__ = [
    "CatalogImportService",
    "ImportOutcome",
    "StatementImportService",
    "map_catalog_row",
]
