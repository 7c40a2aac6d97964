"""
Catalog import service: read supplier rows -> map -> upsert products.

Each row is written inside its own savepoint; a bad row is rolled back,
reported in ``ImportOutcome.errors`` and the import carries on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from backoffice_ingestion.adapters.base import SourceAdapter
from backoffice_ingestion.adapters.json_adapter import JsonSourceAdapter
from backoffice_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter
from backoffice_kernel.domain.money import normalize_separators, to_money_string
from backoffice_kernel.exceptions import BackofficeError
from backoffice_kernel.logging_config import get_logger
from backoffice_modules.catalog.service import CatalogService

logger = get_logger("ingestion.catalog_import_service")

UNNAMED_PRODUCT = "Unnamed product"
UNCATEGORIZED = "Uncategorized"

# Supplier (XBZ) column -> product field; first non-empty source wins.
CATALOG_FIELD_MAP: dict[str, tuple[str, ...]] = {
    "name": ("nome", "name"),
    "description": ("descricao", "description"),
    "category": ("webtipo", "categoria", "category"),
    "base_price": ("precovenda", "preco venda", "preco", "baseprice", "price"),
    "cost_price": ("custo", "cost", "costprice"),
    "external_id": ("idproduto",),
    "external_code": ("codigoxbz", "codigo", "sku", "code"),
    "composite_code": ("codigocomposto",),
    "friendly_code": ("codigoamigavel",),
    "site_link": ("sitelink",),
    "image_link": ("imagelink",),
    "primary_color": ("corwebprincipal",),
    "secondary_color": ("corwebsecundaria",),
    "weight": ("peso",),
    "height": ("altura",),
    "width": ("largura",),
    "depth": ("profundidade",),
    "available_quantity": ("quantidadedisponivel",),
    "stock_status": ("statusconfiabilidade",),
    "ncm": ("ncm",),
}

_DIMENSIONS = ("weight", "height", "width", "depth")


def _first(row: dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


def _price(value: Any) -> str:
    if isinstance(value, str):
        value = normalize_separators(value)
    return to_money_string(value)


def row_label(row: dict[str, Any]) -> str:
    return str(_first(row, CATALOG_FIELD_MAP["name"]) or UNNAMED_PRODUCT)


def map_catalog_row(row: dict[str, Any]) -> dict[str, Any]:
    """Product fields for one supplier row (keys already lowercased by the adapter)."""
    fields = {name: _first(row, keys) for name, keys in CATALOG_FIELD_MAP.items()}
    fields["name"] = str(fields["name"] or UNNAMED_PRODUCT)
    fields["category"] = str(fields["category"] or UNCATEGORIZED)
    fields["base_price"] = _price(fields["base_price"])
    if fields["cost_price"] is not None:
        fields["cost_price"] = _price(fields["cost_price"])
    for name in ("external_id", "external_code", "composite_code", "friendly_code", "ncm"):
        if fields[name] is not None:
            fields[name] = str(fields[name])
    for name in _DIMENSIONS:
        if fields[name] is not None:
            try:
                fields[name] = Decimal(normalize_separators(str(fields[name])))
            except InvalidOperation:
                raise ValueError(f"{name} is not a number: {fields[name]!r}") from None
    if fields["available_quantity"] is not None:
        fields["available_quantity"] = int(fields["available_quantity"])
    return {k: v for k, v in fields.items() if v is not None}


@dataclass
class ImportOutcome:
    imported: int = 0
    updated: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)


def _default_adapters() -> dict[str, SourceAdapter]:
    return {
        "json": JsonSourceAdapter(),
        "xlsx": XlsxSourceAdapter(),
    }


class CatalogImportService:
    """Loads supplier catalogs (JSON / XLSX) into ``products``."""

    def __init__(
        self,
        session: Session,
        adapters: dict[str, SourceAdapter] | None = None,
        catalog: CatalogService | None = None,
    ):
        self._session = session
        self._adapters = adapters if adapters is not None else _default_adapters()
        self._catalog = catalog or CatalogService(session)

    def import_file(
        self,
        path: Path,
        producer_id: UUID | None = None,
        options: dict[str, Any] | None = None,
    ) -> ImportOutcome:
        path = Path(path)
        source_format = path.suffix.lower().lstrip(".")
        adapter = self._adapters.get(source_format)
        if adapter is None:
            raise ValueError(f"Unsupported catalog format: {source_format!r}")
        return self.import_rows(adapter.read(path, options or {}), producer_id=producer_id)

    def import_rows(self, rows: Iterable[dict[str, Any]], producer_id: UUID | None = None) -> ImportOutcome:
        """Upsert every row by supplier code; failures are collected, never raised."""
        outcome = ImportOutcome()
        for row in rows:
            try:
                with self._session.begin_nested():
                    _, created = self._catalog.upsert_supplier_product(map_catalog_row(row), producer_id=producer_id)
            except (BackofficeError, ValueError, TypeError) as exc:
                outcome.errors.append({"item": row_label(row), "error": str(exc)})
                logger.warning("catalog_row_failed", extra={"item": row_label(row), "error": str(exc)})
                continue
            if created:
                outcome.imported += 1
            else:
                outcome.updated += 1
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            "catalog_import_completed",
            extra={"imported": outcome.imported, "updated": outcome.updated, "errors": len(outcome.errors)},
        )
        return outcome
