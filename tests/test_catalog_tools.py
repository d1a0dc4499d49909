"""Tests for the catalog tools against a SQLite catalog."""

import shutil
import tempfile
import threading
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

import pytest
from react.arguments import SearchProductsArgs, PriceRangeArgs, ShowProductsArgs
from react.tools import (
    GetPriceRangeTool,
    MAX_PRODUCTS,
    SearchProductsTool,
    ShowProductsTool,
    build_default_tools,
)
from retrieval.catalog_provider import CatalogError, CatalogQuery, FilterOp
from retrieval.query_normalizer import QueryNormalizer
from retrieval.sqlite_catalog import SQLiteCatalog


SAMPLE_PRODUCTS = [
    {"id": "p1", "name": "Anker Nano 65W", "description": "GaN wall charger", "price": 450,
     "category": "accessory", "brand": "Anker", "specs": {"wattage": "65W"}},
    {"id": "p2", "name": "Samsung 25W Adapter", "description": "Super fast charger", "price": 350,
     "category": "accessory", "brand": "Samsung"},
    {"id": "p3", "name": "Apple 20W USB-C Power Adapter", "description": "Original charger", "price": 900,
     "category": "accessory", "brand": "Apple"},
    {"id": "p4", "name": "iPhone 15", "description": "128GB smartphone", "price": 45000,
     "category": "phone", "brand": "Apple"},
    {"id": "p5", "name": "Galaxy S24", "description": "256GB flagship", "price": 40000,
     "category": "phone", "brand": "Samsung"},
    {"id": "p6", "name": "MacBook Air M3", "description": "13 inch laptop", "price": 60000,
     "category": "laptop", "brand": "Apple"},
    {"id": "p7", "name": "ThinkPad E14", "description": "Business laptop", "price": 35000,
     "category": "laptop", "brand": "Lenovo"},
    {"id": "p8", "name": "WH-1000XM5", "description": "Noise cancelling headphones", "price": 15000,
     "category": "audio", "brand": "Sony"},
] + [
    {"id": f"c{i}", "name": f"USB-C Cable {i}m", "description": "Braided cable", "price": 100 + 20 * i,
     "category": "accessory", "brand": "Ugreen"}
    for i in range(6)
]


def _seeded_catalog(tmp_dir: str) -> SQLiteCatalog:
    catalog = SQLiteCatalog(db_path=str(Path(tmp_dir) / "catalog.db"))
    catalog.add_products(SAMPLE_PRODUCTS)
    return catalog


class TestSearchProductsTool:
    """Test search_products."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tmp_dir = tempfile.mkdtemp()
        self.catalog = _seeded_catalog(self.tmp_dir)
        self.tool = SearchProductsTool(self.catalog, QueryNormalizer())

    def teardown_method(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_arabic_query_with_price_cap(self):
        """Test an Arabic keyword is expanded and combined with max_price."""
        result = self.tool.execute(SearchProductsArgs(query="شاحن", max_price=500, sort="price_asc"))

        assert result.success is True
        assert [p.id for p in result.products] == ["p2", "p1"]
        assert all(p.price <= 500 for p in result.products)
        assert "error" not in result.result

    def test_results_capped_at_five(self):
        """Test no more than five products are returned."""
        result = self.tool.execute(SearchProductsArgs(query="كابل"))

        assert result.success is True
        assert len(result.products) == MAX_PRODUCTS
        assert len(result.result["products"]) == MAX_PRODUCTS

    def test_category_and_brand_filters(self):
        """Test category is exact and brand is a case-insensitive substring."""
        result = self.tool.execute(SearchProductsArgs(category="phone", brand="SAMS"))

        assert [p.id for p in result.products] == ["p5"]

    def test_price_bounds(self):
        """Test min and max price are both inclusive."""
        result = self.tool.execute(SearchProductsArgs(min_price=350, max_price=450, sort="price_desc"))

        assert [p.id for p in result.products] == ["p1", "p2"]

    def test_zero_results_is_not_an_error(self):
        """Test an empty match returns an empty list without an error key."""
        result = self.tool.execute(SearchProductsArgs(query="toaster"))

        assert result.success is True
        assert result.result == {"products": []}

    def test_keyword_matches_any_field(self):
        """Test keywords match description and specs as well as name."""
        by_description = self.tool.execute(SearchProductsArgs(query="braided"))
        by_specs = self.tool.execute(SearchProductsArgs(query="65w"))

        assert len(by_description.products) == MAX_PRODUCTS
        assert [p.id for p in by_specs.products] == ["p1"]

    def test_payload_shape(self):
        """Test returned rows carry only the summary columns with numeric prices."""
        result = self.tool.execute(SearchProductsArgs(query="iphone"))

        assert result.result["products"] == [{
            "id": "p4",
            "name": "iPhone 15",
            "price": 45000.0,
            "category": "phone",
            "brand": "Apple",
            "image_url": None,
        }]
        assert result.products[0].price == Decimal("45000.0")

    def test_catalog_failure_returns_error_payload(self):
        """Test catalog errors are reported to the model instead of raised."""
        catalog = Mock()
        catalog.select.side_effect = CatalogError("connection refused")
        tool = SearchProductsTool(catalog, QueryNormalizer())

        result = tool.execute(SearchProductsArgs(query="phone"))

        assert result.success is False
        assert result.result == {"products": [], "error": "connection refused"}

    def test_build_query_predicates(self):
        """Test each keyword is matched against every search field."""
        query = self.tool.build_query(SearchProductsArgs(query="شاحن انكر", category="accessory"))

        assert [(f.column, f.op, f.value) for f in query.filters] == [
            ("category", FilterOp.EQ, "accessory"),
        ]
        assert {(f.column, f.value) for f in query.any_of} == {
            (field, keyword)
            for keyword in ("charger", "anker")
            for field in ("name", "description", "brand", "specs")
        }
        assert query.limit == MAX_PRODUCTS


class TestGetPriceRangeTool:
    """Test get_price_range."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tmp_dir = tempfile.mkdtemp()
        self.catalog = _seeded_catalog(self.tmp_dir)
        self.tool = GetPriceRangeTool(self.catalog)

    def teardown_method(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_whole_store(self):
        """Test the store-wide range echoes category 'all'."""
        result = self.tool.execute(PriceRangeArgs())

        assert result.success is True
        assert result.result == {
            "min_price": 100.0,
            "max_price": 60000.0,
            "total_count": len(SAMPLE_PRODUCTS),
            "category": "all",
        }

    def test_single_category(self):
        """Test min, max and count share the category filter."""
        result = self.tool.execute(PriceRangeArgs(category="laptop"))

        assert result.result == {
            "min_price": 35000.0,
            "max_price": 60000.0,
            "total_count": 2,
            "category": "laptop",
        }

    def test_empty_catalog(self):
        """Test an empty catalog yields null prices and zero count."""
        catalog = Mock()
        catalog.select.return_value = []
        catalog.count.return_value = 0

        result = GetPriceRangeTool(catalog).execute(PriceRangeArgs(category="audio"))

        assert result.result == {
            "min_price": None, "max_price": None, "total_count": 0, "category": "audio",
        }

    def test_catalog_failure(self):
        """Test a failing read is reported in the payload."""
        catalog = Mock()
        catalog.select.return_value = [{"price": 10}]
        catalog.count.side_effect = CatalogError("timeout")

        result = GetPriceRangeTool(catalog).execute(PriceRangeArgs())

        assert result.success is False
        assert result.result["error"] == "timeout"
        assert result.result["category"] == "all"

    def test_worker_threads_released(self):
        """Test the concurrent reads leave no worker threads behind."""
        self.tool.execute(PriceRangeArgs())
        self.tool.execute(PriceRangeArgs(category="laptop"))

        assert not [t for t in threading.enumerate() if t.name.startswith("price-range")]


class TestShowProductsTool:
    """Test show_products."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tmp_dir = tempfile.mkdtemp()
        self.catalog = _seeded_catalog(self.tmp_dir)
        self.tool = ShowProductsTool(self.catalog)

    def teardown_method(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_fetch_by_ids(self):
        """Test the given ids are fetched."""
        result = self.tool.execute(ShowProductsArgs(ids=["p4", "p8"]))

        assert result.success is True
        assert sorted(p.id for p in result.products) == ["p4", "p8"]

    def test_empty_ids_skip_catalog(self):
        """Test an empty id list returns nothing without querying."""
        catalog = Mock()
        result = ShowProductsTool(catalog).execute(ShowProductsArgs(ids=[]))

        assert result.result == {"products": []}
        assert result.products == []
        catalog.select.assert_not_called()

    def test_unknown_ids(self):
        """Test ids not in the catalog are dropped."""
        result = self.tool.execute(ShowProductsArgs(ids=["missing"]))

        assert result.products == []

    def test_at_most_five(self):
        """Test more than five ids are cut to five."""
        ids = ["p1", "p2", "p3", "p4", "p5", "p6", "p7"]
        result = self.tool.execute(ShowProductsArgs(ids=ids))

        assert len(result.products) == MAX_PRODUCTS


class TestToolManifest:
    """Test the tool palette definitions."""

    def test_default_tools(self):
        """Test the three tools are exposed in order with optional fields not required."""
        tools = build_default_tools(Mock(), QueryNormalizer(synonyms={}))
        definitions = [t.get_definition() for t in tools]

        assert [d["function"]["name"] for d in definitions] == [
            "search_products", "get_price_range", "show_products",
        ]
        assert definitions[0]["function"]["parameters"]["required"] == []
        assert definitions[1]["function"]["parameters"]["required"] == []
        assert definitions[2]["function"]["parameters"]["required"] == ["ids"]

    @pytest.mark.parametrize("field", ["query", "category", "brand", "min_price", "max_price", "sort"])
    def test_search_fields_accept_null(self, field):
        """Test every optional search field allows an explicit null."""
        properties = SearchProductsTool.parameters["properties"]
        assert "null" in properties[field]["type"]
