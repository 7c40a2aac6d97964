"""
XLSX source adapter for supplier catalog spreadsheets.

Supports flexible layout:
  - sheet by index (0-based) or name
  - header row by index or auto-detect (scans the first rows for
    catalog-like column names)
  - skip_rows before header
  - normalizes cell values (strip, blank -> empty string)

Auto-detect looks for a row containing at least 2 of the known catalog
headings (nome, descricao, preco, codigo, categoria, ...).  Header names
are lowercased like the JSON adapter's keys.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Iterator

import openpyxl

from backoffice_ingestion.adapters.base import SourceProbe

_HEADER_KEYWORDS = frozenset({
    "nome", "name", "produto", "descricao", "description",
    "preco", "precovenda", "preco venda", "price", "baseprice", "custo", "cost",
    "codigo", "codigoxbz", "idproduto", "sku", "code",
    "categoria", "webtipo", "category", "ncm", "peso",
})


def _normalize_header_cell(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip().lower()


def _cell_value(row: Any, col_idx: int) -> Any:
    """Cell value from an openpyxl row (0-based column index)."""
    try:
        cell = row[col_idx]
    except (IndexError, TypeError):
        return ""
    value = cell.value if cell is not None else None
    if value is None:
        return ""
    if isinstance(value, float) and value == int(value):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    return str(value).strip()


def _header_score(row: Any, max_cols: int = 40) -> int:
    hits = set()
    for c in range(max_cols):
        text = _normalize_header_cell(_cell_value(row, c))
        if text in _HEADER_KEYWORDS:
            hits.add(text)
    return len(hits)


def _detect_header_row(rows: list, max_search: int = 15, min_keywords: int = 2) -> int:
    for i, row in enumerate(rows[:max_search]):
        if _header_score(row) >= min_keywords:
            return i
    return 0


def _column_count(row: Any) -> int:
    n = 0
    for c in range(60):
        if _cell_value(row, c) != "":
            n = c + 1
    return max(n, 1)


def _headers(header_row: Any) -> list[str]:
    headers: list[str] = []
    for c in range(_column_count(header_row)):
        key = _normalize_header_cell(_cell_value(header_row, c)) or f"column_{c + 1}"
        base, n = key, 0
        while key in headers:
            n += 1
            key = f"{base}_{n}"
        headers.append(key)
    return headers


class XlsxSourceAdapter:
    """
    Read .xlsx catalog files as one dict per product row.

    source_options:
      sheet: 0-based sheet index (int) or sheet name (str). Default: active sheet.
      skip_rows: rows to skip at the top of the sheet. Default: 0.
      header_row: 0-based header row index, used when auto_detect_header is false.
      auto_detect_header: scan the first 15 rows for a header (default true).
    """

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        wb = openpyxl.load_workbook(source_path, read_only=True, data_only=True)
        try:
            rows = self._rows(wb, options, max_row=100_000)
            if not rows:
                return
            hi = self._header_index(rows, options)
            headers = _headers(rows[hi])
            for row in rows[hi + 1:]:
                values = [_cell_value(row, c) for c in range(len(headers))]
                if any(v != "" for v in values):
                    yield dict(zip(headers, values))
        finally:
            wb.close()

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        wb = openpyxl.load_workbook(source_path, read_only=True, data_only=True)
        try:
            rows = self._rows(wb, options, max_row=500)
            if not rows:
                return SourceProbe(row_count=0, columns=(), sample_rows=())
            hi = self._header_index(rows, options)
            headers = _headers(rows[hi])
            sample = []
            for row in rows[hi + 1:hi + 6]:
                values = [_cell_value(row, c) for c in range(len(headers))]
                if any(v != "" for v in values):
                    sample.append(dict(zip(headers, values)))
            return SourceProbe(
                row_count=len(rows) - hi - 1,
                columns=tuple(headers),
                sample_rows=tuple(sample),
            )
        finally:
            wb.close()

    @staticmethod
    def _rows(wb: Any, options: dict[str, Any], max_row: int) -> list:
        sheet_ref = options.get("sheet")
        if sheet_ref is None:
            sheet = wb.active
        elif isinstance(sheet_ref, int):
            sheet = wb.worksheets[sheet_ref]
        else:
            sheet = wb[sheet_ref]
        skip_rows = int(options.get("skip_rows", 0))
        return list(sheet.iter_rows(min_row=1 + skip_rows, max_row=max_row))

    @staticmethod
    def _header_index(rows: list, options: dict[str, Any]) -> int:
        if not options.get("auto_detect_header", True):
            return int(options.get("header_row", 0))
        return _detect_header_row(rows)
