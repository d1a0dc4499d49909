"""Catalog collaborator interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class CatalogError(Exception):
    """A catalog query could not be executed."""


class FilterOp(str, Enum):
    """Supported filter primitives."""
    EQ = "eq"
    ILIKE = "ilike"  # Case-insensitive substring
    GTE = "gte"
    LTE = "lte"
    IN = "in"


class Filter(BaseModel):
    """A single column predicate."""
    column: str
    op: FilterOp
    value: Any


class CatalogQuery(BaseModel):
    """
    Storage-independent product query.

    Semantics: every entry in `filters` must hold (AND); if `any_of` is
    non-empty, at least one of its predicates must also hold (OR).
    """
    columns: List[str] = Field(default_factory=lambda: ["*"])
    filters: List[Filter] = Field(default_factory=list)
    any_of: List[Filter] = Field(default_factory=list)
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None

    def where(self, column: str, op: FilterOp, value: Any) -> "CatalogQuery":
        """Add an AND predicate and return self for chaining."""
        self.filters.append(Filter(column=column, op=op, value=value))
        return self

    def where_any(self, column: str, op: FilterOp, value: Any) -> "CatalogQuery":
        """Add an OR predicate and return self for chaining."""
        self.any_of.append(Filter(column=column, op=op, value=value))
        return self


class CatalogProvider(ABC):
    """Read-only product catalog."""

    @abstractmethod
    def select(self, query: CatalogQuery) -> List[Dict[str, Any]]:
        """
        Fetch rows matching a query.

        Raises:
            CatalogError: If the underlying store fails
        """
        pass

    @abstractmethod
    def count(self, query: CatalogQuery) -> int:
        """
        Count rows matching a query's predicates (columns/order/limit ignored).

        Raises:
            CatalogError: If the underlying store fails
        """
        pass
