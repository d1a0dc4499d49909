"""SQLite-backed product catalog for local runs and tests."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

from .catalog_provider import CatalogProvider, CatalogQuery, CatalogError, Filter, FilterOp

logger = logging.getLogger(__name__)

CATALOG_COLUMNS = {
    "id", "name", "description", "price", "category", "brand", "specs", "image_url",
}


class SQLiteCatalog(CatalogProvider):
    """Catalog stored in a local `products` table."""

    def __init__(self, db_path: str = "data/bytestore.db"):
        """
        Initialize SQLite catalog.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS products (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                price REAL NOT NULL CHECK(price >= 0),
                category TEXT NOT NULL CHECK(category IN ('laptop', 'phone', 'audio', 'accessory')),
                brand TEXT,
                specs TEXT,
                image_url TEXT
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_products_category ON products(category)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_products_price ON products(price)")
        conn.commit()
        conn.close()

    def add_products(self, products: Iterable[Dict[str, Any]]) -> int:
        """
        Insert or replace catalog rows.

        Args:
            products: Rows with id, name, price, category and optional
                description, brand, specs (str or dict) and image_url

        Returns:
            Number of rows written
        """
        rows = []
        for p in products:
            specs = p.get("specs")
            if specs is not None and not isinstance(specs, str):
                specs = json.dumps(specs, ensure_ascii=False)
            rows.append((
                str(p["id"]), p["name"], p.get("description"), float(p["price"]),
                p["category"], p.get("brand"), specs, p.get("image_url"),
            ))

        conn = self._get_connection()
        conn.executemany(
            """
            INSERT OR REPLACE INTO products
            (id, name, description, price, category, brand, specs, image_url)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows
        )
        conn.commit()
        conn.close()
        return len(rows)

    @staticmethod
    def _column(name: str) -> str:
        if name not in CATALOG_COLUMNS:
            raise CatalogError(f"Unknown catalog column: {name}")
        return name

    def _predicate(self, f: Filter) -> Tuple[str, List[Any]]:
        column = self._column(f.column)
        if f.op == FilterOp.EQ:
            return f"{column} = ?", [f.value]
        if f.op == FilterOp.ILIKE:
            return f"LOWER(COALESCE({column}, '')) LIKE ?", [f"%{str(f.value).lower()}%"]
        if f.op == FilterOp.GTE:
            return f"{column} >= ?", [f.value]
        if f.op == FilterOp.LTE:
            return f"{column} <= ?", [f.value]
        if f.op == FilterOp.IN:
            values = list(f.value)
            placeholders = ", ".join("?" for _ in values)
            return f"{column} IN ({placeholders})", values
        raise CatalogError(f"Unsupported filter operation: {f.op}")

    def _where(self, query: CatalogQuery) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []

        for f in query.filters:
            sql, values = self._predicate(f)
            clauses.append(sql)
            params.extend(values)

        if query.any_of:
            parts = []
            for f in query.any_of:
                sql, values = self._predicate(f)
                parts.append(sql)
                params.extend(values)
            clauses.append("(" + " OR ".join(parts) + ")")

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def select(self, query: CatalogQuery) -> List[Dict[str, Any]]:
        if query.columns == ["*"]:
            columns = "*"
        else:
            columns = ", ".join(self._column(c) for c in query.columns)

        where, params = self._where(query)
        sql = f"SELECT {columns} FROM products{where}"

        if query.order_by:
            direction = "DESC" if query.descending else "ASC"
            sql += f" ORDER BY {self._column(query.order_by)} {direction}"

        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(query.limit)

        try:
            conn = self._get_connection()
            try:
                rows = conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise CatalogError(str(e)) from e

        return [dict(row) for row in rows]

    def count(self, query: CatalogQuery) -> int:
        where, params = self._where(query)
        try:
            conn = self._get_connection()
            try:
                result = conn.execute(f"SELECT COUNT(*) FROM products{where}", params).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise CatalogError(str(e)) from e

        return result[0] if result else 0
