"""Source adapters (file I/O only, no DB)."""

from backoffice_ingestion.adapters.base import SourceAdapter, SourceProbe
from backoffice_ingestion.adapters.json_adapter import JsonSourceAdapter
from backoffice_ingestion.adapters.ofx_adapter import parse_ofx
from backoffice_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter

__all__ = [
    "SourceAdapter",
    "SourceProbe",
    "JsonSourceAdapter",
    "XlsxSourceAdapter",
    "parse_ofx",
]
