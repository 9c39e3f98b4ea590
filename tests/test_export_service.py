"""Tests for product catalog exports."""
import io
import json
import xml.etree.ElementTree as ET
from datetime import date

import pytest
from openpyxl import load_workbook

from catalog.exceptions import ValidationError
from catalog.models.log import Log
from catalog.services.export_service import ExportService


@pytest.fixture
def exporter(db_session, context):
    return ExportService(db_session, context)


@pytest.fixture
def catalog(product_service, asset_service):
    lamp = product_service.create_product(
        "Lamp", "Desk <lamp> & shade", "40", "EUR",
        categories=["Lighting", "Office"], attributes={"Dimmable": True, "Watts": 60},
    )
    icon = asset_service.create_product_icon(lamp, "lamp.png", b"png")
    image = asset_service.create_product_image(lamp, "lamp.jpg", b"jpg")
    chair = product_service.create_product("Chair", "", "12.5", "USD")
    product_service.deactivate_product(chair.id)
    return {"lamp": lamp, "chair": chair, "icon": icon.icon_file, "image": image.image_file}


def test_export_records(exporter, catalog):
    records = exporter.export_records()

    assert [record["name"] for record in records] == ["Lamp", "Chair"]
    lamp, chair = records
    assert lamp["price"] == "40.00"
    assert sorted(lamp["categories"]) == ["Lighting", "Office"]
    assert sorted(lamp["attributes"]) == ["Dimmable: true", "Watts: 60"]
    assert lamp["icon"] == catalog["icon"]
    assert lamp["images"] == [catalog["image"]]
    assert len(lamp["added_time"]) == len("2024-01-01 00:00:00")
    assert chair["price"] == "12.50"
    assert chair["active"] is False
    assert chair["icon"] is None
    assert chair["images"] == []


def test_export_empty_catalog(exporter):
    assert json.loads(exporter.export("json")) == []


def test_export_json(exporter, catalog):
    data = json.loads(exporter.export("JSON").decode("utf-8"))

    assert data == exporter.export_records()
    assert data[0]["description"] == "Desk <lamp> & shade"


def test_export_xml(exporter, catalog):
    root = ET.fromstring(exporter.export("xml"))

    products = root.findall("product")
    assert [p.findtext("name") for p in products] == ["Lamp", "Chair"]
    assert products[0].findtext("description") == "Desk <lamp> & shade"
    assert products[0].findtext("active") == "true"
    assert sorted(c.text for c in products[0].find("categories")) == ["Lighting", "Office"]
    assert [i.text for i in products[0].find("images")] == [catalog["image"]]
    assert products[1].findtext("price") == "12.50"
    assert products[1].findtext("active") == "false"


def test_export_xlsx(exporter, catalog):
    workbook = load_workbook(io.BytesIO(exporter.export("xlsx")))
    sheet = workbook.active

    header = [cell.value for cell in sheet[1]]
    assert header == [
        "ID", "Name", "Description", "Price", "Currency",
        "Added Time", "Last Edit", "Active", "Categories", "Attributes",
    ]
    assert sheet["A1"].font.bold
    assert sheet.max_row == 3
    assert sheet["B2"].value == "Lamp"
    assert float(sheet["D2"].value) == 40.0
    assert sheet["H2"].value == "Yes"
    assert sheet["H3"].value == "No"
    assert sorted(sheet["I2"].value.split(", ")) == ["Lighting", "Office"]


def test_export_unknown_format(exporter):
    with pytest.raises(ValidationError):
        exporter.export("csv")


def test_export_is_logged(exporter, db_session):
    exporter.export("json")

    log = db_session.query(Log).filter(Log.name == "export-manager").one()
    assert log.message == "Products exported to json"


def test_file_name():
    assert ExportService.file_name("xlsx", date(2024, 12, 3)) == "products-2024-12-03.xlsx"


def test_export_endpoint(client):
    client.post("/api/v1/products/", json={"name": "Lamp", "description": "x", "price": "40"})

    response = client.get("/api/v1/products/export/json")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert response.headers["content-disposition"].startswith('attachment; filename="products-')
    assert [p["name"] for p in response.json()] == ["Lamp"]


def test_export_endpoint_unknown_format(client):
    assert client.get("/api/v1/products/export/csv").status_code == 400
