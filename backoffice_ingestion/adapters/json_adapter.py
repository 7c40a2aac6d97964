"""
JSON source adapter for supplier catalogs.

Handles a JSON array (file is [{...}, {...}, ...]) and JSON Lines (one
object per line).  Supplier feeds often wrap the product list, so
``json_path`` selects a nested array (e.g. "data.produtos").

Keys are lowercased so the catalog mapping matches "Nome", "nome" and
"NOME" alike.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

from backoffice_ingestion.adapters.base import SourceProbe


def _get_nested(data: Any, path: str) -> Any:
    """Follow dot-separated path into dict/list. Returns None if key missing."""
    if not path.strip():
        return data
    for key in path.split("."):
        key = key.strip()
        if not key:
            continue
        if isinstance(data, list):
            try:
                data = data[int(key)]
            except (ValueError, IndexError):
                return None
        elif isinstance(data, dict) and key in data:
            data = data[key]
        else:
            return None
    return data


def _all_keys(rows: list[dict[str, Any]]) -> tuple[str, ...]:
    seen: set[str] = set()
    for row in rows[:5]:
        seen.update(row.keys())
    return tuple(sorted(seen))


def normalize_row_keys(item: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``item`` with stripped, lowercased string keys."""
    return {str(k).strip().lower(): v for k, v in item.items() if isinstance(k, str)}


class JsonSourceAdapter:
    """Read JSON array or JSON Lines catalog files as one dict per product."""

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        encoding = options.get("encoding", "utf-8")
        if options.get("format", "array") == "jsonl":
            with source_path.open("r", encoding=encoding) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    item = json.loads(line)
                    if isinstance(item, dict):
                        yield normalize_row_keys(item)
            return

        for item in self._root(source_path, options):
            if isinstance(item, dict):
                yield normalize_row_keys(item)

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        encoding = options.get("encoding", "utf-8")
        if options.get("format", "array") == "jsonl":
            sample: list[dict[str, Any]] = []
            count = 0
            with source_path.open("r", encoding=encoding) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    count += 1
                    if len(sample) < 5:
                        try:
                            item = json.loads(line)
                        except json.JSONDecodeError:
                            continue
                        if isinstance(item, dict):
                            sample.append(normalize_row_keys(item))
            return SourceProbe(count, _all_keys(sample), tuple(sample), encoding)

        root = self._root(source_path, options)
        sample = [normalize_row_keys(r) for r in root[:5] if isinstance(r, dict)]
        return SourceProbe(len(root), _all_keys(sample), tuple(sample), encoding)

    @staticmethod
    def _root(source_path: Path, options: dict[str, Any]) -> list[Any]:
        with source_path.open("r", encoding=options.get("encoding", "utf-8")) as f:
            data = json.load(f)
        json_path = options.get("json_path")
        root = _get_nested(data, json_path) if json_path else data
        return root if isinstance(root, list) else []
