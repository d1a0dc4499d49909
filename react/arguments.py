"""Typed tool-call arguments.

Models send loosely typed JSON: numbers as strings, explicit nulls, unknown
enum values. Each tool gets one model here; parsing defaults anything invalid
or absent to None instead of failing the turn.
"""

import logging
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, field_validator

from schemas.products import ProductCategory

logger = logging.getLogger(__name__)

SORT_OPTIONS = ("price_asc", "price_desc")


def _optional_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _optional_category(value: Any) -> Optional[str]:
    text = _optional_text(value)
    if text is None:
        return None
    text = text.lower()
    return text if text in {c.value for c in ProductCategory} else None


def _optional_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", ""))
    except ValueError:
        return None


class SearchProductsArgs(BaseModel):
    """Arguments for search_products."""
    query: Optional[str] = None
    category: Optional[ProductCategory] = None
    brand: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    sort: Optional[str] = None

    @field_validator("query", "brand", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, value: Any) -> Optional[str]:
        return _optional_category(value)

    @field_validator("min_price", "max_price", mode="before")
    @classmethod
    def coerce_price(cls, value: Any) -> Optional[float]:
        return _optional_number(value)

    @field_validator("sort", mode="before")
    @classmethod
    def coerce_sort(cls, value: Any) -> Optional[str]:
        text = _optional_text(value)
        return text if text in SORT_OPTIONS else None


class PriceRangeArgs(BaseModel):
    """Arguments for get_price_range."""
    category: Optional[ProductCategory] = None

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, value: Any) -> Optional[str]:
        return _optional_category(value)


class ShowProductsArgs(BaseModel):
    """Arguments for show_products."""
    ids: List[str] = Field(default_factory=list)

    @field_validator("ids", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, (str, int)):
            value = [value]
        if not isinstance(value, list):
            return []
        ids = []
        for item in value:
            text = _optional_text(item)
            if text and text not in ids:
                ids.append(text)
        return ids


ToolArguments = Union[SearchProductsArgs, PriceRangeArgs, ShowProductsArgs]

ARGUMENT_MODELS = {
    "search_products": SearchProductsArgs,
    "get_price_range": PriceRangeArgs,
    "show_products": ShowProductsArgs,
}


def parse_tool_arguments(tool_name: str, arguments: Optional[Dict[str, Any]]) -> ToolArguments:
    """
    Validate raw arguments for a tool.

    Args:
        tool_name: One of the tools in ARGUMENT_MODELS
        arguments: Decoded JSON arguments (None treated as empty)

    Returns:
        The tool's argument model; unknown keys are ignored

    Raises:
        KeyError: If tool_name is not a known tool
    """
    model = ARGUMENT_MODELS[tool_name]
    if not isinstance(arguments, dict):
        arguments = {}
    known = {k: v for k, v in arguments.items() if k in model.model_fields}
    return model(**known)
