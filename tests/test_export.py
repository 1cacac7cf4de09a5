"""Tests for the JSON and CSV writers."""

import csv
import json

import pytest

from catalog_crawler.adapters.base import Product, ProductImage
from catalog_crawler.engines.base import CrawlState
from catalog_crawler.export.csv_exporter import CSVExporter
from catalog_crawler.export.json_exporter import JSONExporter


def sample_report():
    state = CrawlState()
    state.add_product(Product(
        url="https://shop.test/products/elderberry",
        sku="ELD-8",
        name="Elderberry Syrup",
        price=12.5,
        compare_price=15.0,
        description="Organic elderberry syrup, \"extra strength\".",
        short_description="Organic elderberry syrup.",
        brand="Now Foods",
        category="Immune Support",
        images=[ProductImage("https://shop.test/img/e1.jpg", "Front"), ProductImage("https://shop.test/img/e2.jpg")],
        in_stock=True,
        inventory_quantity=50,
        weight="8 fl oz",
        ingredients="elderberry, honey",
        health_categories=["Immune Support", "Respiratory Health"],
    ))
    state.add_product(Product(
        url="https://shop.test/products/sage",
        sku="SKU-SAGE",
        name="White Sage",
        in_stock=False,
        inventory_quantity=0,
    ))
    return state.to_report()


def test_json_round_trip(tmp_path):
    report = sample_report()
    path = tmp_path / "out" / "products.json"

    JSONExporter().export(report, str(path))

    assert JSONExporter.load(str(path)) == report.products
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["schemaVersion"] == 1
    assert data["totalProducts"] == 2
    assert data["brands"] == ["Now Foods"]
    assert "scrapedAt" in data
    first = data["products"][0]
    assert first["comparePrice"] == 15.0
    assert first["images"][0] == {"url": "https://shop.test/img/e1.jpg", "altText": "Front"}
    assert first["healthCategories"] == ["Immune Support", "Respiratory Health"]


def test_csv_columns_and_defaults(tmp_path):
    path = tmp_path / "products.csv"

    CSVExporter().export(sample_report(), str(path))

    text = path.read_text(encoding="utf-8")
    assert text.splitlines()[0] == (
        '"sku","name","brand","category","price","weight","inventory","short_description",'
        '"description","health_categories","images","active","featured"'
    )
    with open(path, encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))

    assert rows[0]["price"] == "12.50"
    assert rows[0]["description"] == 'Organic elderberry syrup, "extra strength".'
    assert rows[0]["health_categories"] == "Immune Support,Respiratory Health"
    assert rows[0]["images"] == "https://shop.test/img/e1.jpg,https://shop.test/img/e2.jpg"
    assert rows[1]["brand"] == "Unknown"
    assert rows[1]["category"] == "General"
    assert rows[1]["inventory"] == "0"
    assert rows[1]["price"] == "0.00"
    assert {r["active"] for r in rows} == {"true"}
    assert {r["featured"] for r in rows} == {"false"}


def test_load_rejects_newer_dataset(tmp_path):
    path = tmp_path / "future.json"
    path.write_text(json.dumps({"schemaVersion": 99, "products": []}), encoding="utf-8")
    with pytest.raises(ValueError):
        JSONExporter.load(str(path))
