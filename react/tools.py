"""Catalog tools exposed to the shopping assistant."""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from retrieval.catalog_provider import CatalogProvider, CatalogQuery, CatalogError, FilterOp
from retrieval.query_normalizer import QueryNormalizer
from schemas.products import ProductCategory, ProductSummary, PRODUCT_COLUMNS
from .arguments import (
    ToolArguments, SearchProductsArgs, PriceRangeArgs, ShowProductsArgs, parse_tool_arguments,
)

logger = logging.getLogger(__name__)

MAX_PRODUCTS = 5

# Fields matched against every search keyword
SEARCH_FIELDS = ["name", "description", "brand", "specs"]

CATEGORY_VALUES = [c.value for c in ProductCategory]


class ToolResult(BaseModel):
    """Result from tool execution."""
    tool_name: str
    success: bool
    result: Dict[str, Any]  # Payload sent back to the model
    products: Optional[List[ProductSummary]] = None
    error: Optional[str] = None


class Tool(ABC):
    """Abstract base class for tools."""
    name: str
    description: str
    parameters: Dict[str, Any]

    def parse_arguments(self, arguments: Optional[Dict[str, Any]]) -> ToolArguments:
        """Validate raw JSON arguments into this tool's argument model."""
        return parse_tool_arguments(self.name, arguments)

    @abstractmethod
    def execute(self, args: ToolArguments) -> ToolResult:
        """Execute the tool with validated arguments. Never raises for catalog failures."""
        pass

    def get_definition(self) -> Dict:
        """Get OpenAI-compatible tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters
            }
        }


def _products_payload(products: List[ProductSummary], error: Optional[str] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"products": [p.model_dump(mode="json") for p in products]}
    if error is not None:
        payload["error"] = error
    return payload


class SearchProductsTool(Tool):
    """Keyword and filter search over the catalog, capped at five rows."""

    name = "search_products"
    description = """Search byteStore products by free-text query and filters and return up to 5 products.
Use Arabic or English keywords. Omit any filter you do not need."""

    # Optional fields accept null as well as omission so strict providers never force a value
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": ["string", "null"],
                "description": "Free text keywords (product type, model, feature). Optional."
            },
            "category": {
                "type": ["string", "null"],
                "enum": CATEGORY_VALUES + [None],
                "description": "Product category. One of: laptop, phone, audio, accessory. Optional."
            },
            "brand": {
                "type": ["string", "null"],
                "description": "Brand name (e.g., Apple, Samsung). Optional."
            },
            "min_price": {
                "type": ["number", "null"],
                "description": "Minimum price in EGP. Optional."
            },
            "max_price": {
                "type": ["number", "null"],
                "description": "Maximum price in EGP. Optional."
            },
            "sort": {
                "type": ["string", "null"],
                "enum": ["price_asc", "price_desc", None],
                "description": "Sort by price. Optional."
            }
        },
        "required": []
    }

    def __init__(self, catalog: CatalogProvider, normalizer: QueryNormalizer):
        """
        Initialize search tool.

        Args:
            catalog: Product catalog
            normalizer: Search-term expander applied to free-text queries
        """
        self.catalog = catalog
        self.normalizer = normalizer

    def build_query(self, args: SearchProductsArgs) -> CatalogQuery:
        """Translate search arguments into a catalog query."""
        query = CatalogQuery(columns=PRODUCT_COLUMNS, limit=MAX_PRODUCTS)

        if args.category:
            query.where("category", FilterOp.EQ, args.category.value)
        if args.brand:
            brand = self.normalizer.sanitize(args.brand)
            if brand:
                query.where("brand", FilterOp.ILIKE, brand)
        if args.min_price is not None:
            query.where("price", FilterOp.GTE, args.min_price)
        if args.max_price is not None:
            query.where("price", FilterOp.LTE, args.max_price)

        if args.query:
            text = self.normalizer.expand(self.normalizer.sanitize(args.query))
            for keyword in text.split():
                for field in SEARCH_FIELDS:
                    query.where_any(field, FilterOp.ILIKE, keyword)

        if args.sort == "price_asc":
            query.order_by = "price"
        elif args.sort == "price_desc":
            query.order_by = "price"
            query.descending = True

        return query

    def execute(self, args: SearchProductsArgs) -> ToolResult:
        """Search for products."""
        try:
            rows = self.catalog.select(self.build_query(args))
            products = [ProductSummary.from_row(row) for row in rows[:MAX_PRODUCTS]]
        except (CatalogError, KeyError, ValueError) as e:
            logger.error(f"Search tool error: {e}")
            return ToolResult(
                tool_name=self.name,
                success=False,
                result=_products_payload([], error=str(e)),
                products=[],
                error=str(e)
            )

        return ToolResult(
            tool_name=self.name,
            success=True,
            result=_products_payload(products),
            products=products
        )


class GetPriceRangeTool(Tool):
    """Cheapest price, highest price and product count, optionally per category."""

    name = "get_price_range"
    description = """Get the minimum price, maximum price and number of products in the store,
optionally for one category. Use this for questions about the cheapest or most expensive
products, price ranges, or how many products exist."""

    parameters = {
        "type": "object",
        "properties": {
            "category": {
                "type": ["string", "null"],
                "enum": CATEGORY_VALUES + [None],
                "description": "Product category. Omit for the whole store."
            }
        },
        "required": []
    }

    def __init__(self, catalog: CatalogProvider):
        """
        Initialize price range tool.

        Args:
            catalog: Product catalog
        """
        self.catalog = catalog

    def _base_query(self, args: PriceRangeArgs) -> CatalogQuery:
        query = CatalogQuery(columns=["price"])
        if args.category:
            query.where("category", FilterOp.EQ, args.category.value)
        return query

    def _extreme_price(self, args: PriceRangeArgs, descending: bool) -> Optional[float]:
        query = self._base_query(args)
        query.order_by = "price"
        query.descending = descending
        query.limit = 1
        rows = self.catalog.select(query)
        return float(rows[0]["price"]) if rows else None

    def execute(self, args: PriceRangeArgs) -> ToolResult:
        """Compute price range for the store or one category."""
        category = args.category.value if args.category else "all"

        try:
            # Same predicate for all three reads
            with ThreadPoolExecutor(max_workers=3, thread_name_prefix="price-range") as pool:
                min_future = pool.submit(self._extreme_price, args, False)
                max_future = pool.submit(self._extreme_price, args, True)
                count_future = pool.submit(self.catalog.count, self._base_query(args))
                payload = {
                    "min_price": min_future.result(),
                    "max_price": max_future.result(),
                    "total_count": count_future.result(),
                    "category": category,
                }
        except (CatalogError, KeyError, ValueError) as e:
            logger.error(f"Price range tool error: {e}")
            return ToolResult(
                tool_name=self.name,
                success=False,
                result={
                    "min_price": None,
                    "max_price": None,
                    "total_count": 0,
                    "category": category,
                    "error": str(e),
                },
                error=str(e)
            )

        return ToolResult(tool_name=self.name, success=True, result=payload)


class ShowProductsTool(Tool):
    """Commit to displaying exactly the given products."""

    name = "show_products"
    description = """Show product cards to the shopper. Call this with the ids of the products you
recommend, chosen from search_products results, before writing your final answer.
Only the products passed here are displayed."""

    parameters = {
        "type": "object",
        "properties": {
            "ids": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Ids of the products to display (at most 5)."
            }
        },
        "required": ["ids"]
    }

    def __init__(self, catalog: CatalogProvider):
        self.catalog = catalog

    def execute(self, args: ShowProductsArgs) -> ToolResult:
        """Fetch products by id."""
        if not args.ids:
            return ToolResult(tool_name=self.name, success=True, result={"products": []}, products=[])

        query = CatalogQuery(columns=PRODUCT_COLUMNS, limit=MAX_PRODUCTS)
        query.where("id", FilterOp.IN, args.ids[:MAX_PRODUCTS])

        try:
            rows = self.catalog.select(query)
            products = [ProductSummary.from_row(row) for row in rows]
        except (CatalogError, KeyError, ValueError) as e:
            logger.error(f"Show products tool error: {e}")
            return ToolResult(
                tool_name=self.name,
                success=False,
                result=_products_payload([], error=str(e)),
                products=[],
                error=str(e)
            )

        return ToolResult(
            tool_name=self.name,
            success=True,
            result=_products_payload(products),
            products=products
        )


def build_default_tools(catalog: CatalogProvider, normalizer: QueryNormalizer) -> List[Tool]:
    """The fixed tool palette, in manifest order."""
    return [
        SearchProductsTool(catalog, normalizer),
        GetPriceRangeTool(catalog),
        ShowProductsTool(catalog),
    ]
