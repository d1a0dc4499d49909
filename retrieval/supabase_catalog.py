"""Catalog backed by the Supabase `products` table (PostgREST)."""

import logging
from typing import Any, Dict, List, Tuple

from utils.supabase_rest import SupabaseRestClient, SupabaseError
from .catalog_provider import CatalogProvider, CatalogQuery, CatalogError, Filter, FilterOp

logger = logging.getLogger(__name__)


def _format_value(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _filter_expression(f: Filter) -> str:
    """Render a predicate in PostgREST operator syntax, e.g. `ilike.*usb*`."""
    if f.op == FilterOp.ILIKE:
        return f"ilike.*{f.value}*"
    if f.op == FilterOp.IN:
        return "in.(" + ",".join(_format_value(v) for v in f.value) + ")"
    return f"{f.op.value}.{_format_value(f.value)}"


def build_params(query: CatalogQuery, for_count: bool = False) -> List[Tuple[str, str]]:
    """
    Translate a CatalogQuery into PostgREST query parameters.

    Returned as pairs because the same column may carry several filters
    (e.g. price=gte.100 and price=lte.500).
    """
    params: List[Tuple[str, str]] = [
        ("select", "id" if for_count else ",".join(query.columns))
    ]

    for f in query.filters:
        params.append((f.column, _filter_expression(f)))

    if query.any_of:
        alternatives = ",".join(f"{f.column}.{_filter_expression(f)}" for f in query.any_of)
        params.append(("or", f"({alternatives})"))

    if not for_count:
        if query.order_by:
            direction = "desc" if query.descending else "asc"
            params.append(("order", f"{query.order_by}.{direction}"))
        if query.limit is not None:
            params.append(("limit", str(query.limit)))

    return params


class SupabaseCatalog(CatalogProvider):
    """Products read through the Supabase REST API."""

    TABLE = "products"

    def __init__(self, client: SupabaseRestClient):
        self.client = client

    def select(self, query: CatalogQuery) -> List[Dict[str, Any]]:
        try:
            return self.client.select(self.TABLE, build_params(query))
        except SupabaseError as e:
            logger.error(f"Catalog select failed: {e}")
            raise CatalogError(str(e)) from e

    def count(self, query: CatalogQuery) -> int:
        try:
            return self.client.count(self.TABLE, build_params(query, for_count=True))
        except SupabaseError as e:
            logger.error(f"Catalog count failed: {e}")
            raise CatalogError(str(e)) from e
