"""
Tests for CatalogImportService.

Verifies:
- Supplier columns map onto product fields with defaults
- Rows upsert by supplier code (imported vs updated)
- A bad row is reported and the rest of the file still loads
- JSON and XLSX sources
"""

import json
from decimal import Decimal

import openpyxl
import pytest
from sqlalchemy import select

from backoffice_ingestion.services.catalog_import_service import (
    CatalogImportService,
    map_catalog_row,
)
from backoffice_modules.catalog.orm import ProductModel

ROWS = [
    {"nome": "Caneca 300ml", "precovenda": "24,90", "custo": "12.50", "codigoxbz": "X1", "webtipo": "Canecas"},
    {"nome": "Squeeze", "precovenda": "18.00", "codigoxbz": "X2", "peso": "0,35"},
]


@pytest.fixture
def importer(session, catalog_service):
    return CatalogImportService(session, catalog=catalog_service)


class TestRowMapping:

    def test_defaults(self):
        fields = map_catalog_row({})
        assert fields["name"] == "Unnamed product"
        assert fields["category"] == "Uncategorized"
        assert fields["base_price"] == "0.00"

    def test_supplier_columns(self):
        fields = map_catalog_row(ROWS[1] | {"altura": "10.5", "quantidadedisponivel": 40})
        assert fields["external_code"] == "X2"
        assert fields["weight"] == Decimal("0.35")
        assert fields["height"] == Decimal("10.5")
        assert fields["available_quantity"] == 40

    def test_comma_decimal_prices(self):
        fields = map_catalog_row({"precovenda": "24,90", "custo": "1.234,50"})
        assert (fields["base_price"], fields["cost_price"]) == ("24.90", "1234.50")

    def test_bad_dimension(self):
        with pytest.raises(ValueError):
            map_catalog_row({"nome": "x", "peso": "heavy"})


class TestImportRows:

    def test_insert_then_update(self, importer, session, producer_a):
        first = importer.import_rows(ROWS, producer_id=producer_a.id)
        assert (first.imported, first.updated, first.errors) == (2, 0, [])

        second = importer.import_rows([ROWS[0] | {"precovenda": "26.00"}])
        assert (second.imported, second.updated) == (0, 1)
        product = session.scalar(select(ProductModel).where(ProductModel.external_code == "X1"))
        assert product.base_price == "26.00"
        assert product.producer_id == producer_a.id

    def test_bad_row_does_not_stop_import(self, importer, session):
        rows = [ROWS[0], {"nome": "Broken", "codigoxbz": "X9", "precovenda": "n/a"}, ROWS[1]]
        outcome = importer.import_rows(rows)
        assert outcome.imported == 2
        assert outcome.errors[0]["item"] == "Broken"
        assert session.scalar(select(ProductModel).where(ProductModel.external_code == "X9")) is None


class TestImportFile:

    def test_json_array(self, importer, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([{"Nome": "Caneca", "CodigoXbz": "J1", "PrecoVenda": 10}]), encoding="utf-8")
        assert importer.import_file(path).imported == 1

    def test_xlsx_with_banner_rows(self, importer, tmp_path, session):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Supplier catalog export"])
        ws.append([])
        ws.append(["Nome", "CodigoXbz", "PrecoVenda", "Custo"])
        ws.append(["Caneca", "S1", 24.9, 12.5])
        ws.append(["Garrafa", "S2", 30, 15])
        path = tmp_path / "catalog.xlsx"
        wb.save(path)

        outcome = importer.import_file(path)
        assert outcome.imported == 2
        product = session.scalar(select(ProductModel).where(ProductModel.external_code == "S1"))
        assert product.cost_price == "12.50"

    def test_unsupported_format(self, importer, tmp_path):
        path = tmp_path / "catalog.csv"
        path.write_text("nome\nx\n")
        with pytest.raises(ValueError):
            importer.import_file(path)
