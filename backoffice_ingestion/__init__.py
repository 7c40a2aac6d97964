"""
backoffice_ingestion -- external file ingestion.

Parses bank statements (OFX) and supplier catalogs (JSON / XLSX) and loads
them into the live tables: bank import batches with fitId deduplication,
and products with per-row error reporting.

Architecture:
    Top-level package.  May import from kernel and modules; nothing in
    kernel/, engines/ or modules/ imports from ingestion.
"""
