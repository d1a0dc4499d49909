"""Catalog access and search-term normalization."""

from .catalog_provider import CatalogProvider, CatalogQuery, CatalogError, Filter, FilterOp
from .query_normalizer import QueryNormalizer
from .sqlite_catalog import SQLiteCatalog
from .supabase_catalog import SupabaseCatalog

__all__ = [
    "CatalogProvider",
    "CatalogQuery",
    "CatalogError",
    "Filter",
    "FilterOp",
    "QueryNormalizer",
    "SQLiteCatalog",
    "SupabaseCatalog",
]
