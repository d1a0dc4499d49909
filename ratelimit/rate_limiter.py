"""Per-identity request rate limiting with atomic window semantics."""

import logging
import math
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional
from pydantic import BaseModel

from utils.supabase_rest import SupabaseRestClient, SupabaseError

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 600
DEFAULT_MAX_COUNT = 20
LOCK_STRIPES = 64


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiterError(Exception):
    """The rate limiting backend could not answer."""


class RateLimitDecision(BaseModel):
    """Outcome of one admission check."""
    allowed: bool
    remaining: int
    reset_at: datetime

    def retry_after_seconds(self, now: Optional[datetime] = None) -> int:
        """Whole seconds until the window resets (at least 1)."""
        now = now or _utcnow()
        seconds = (self.reset_at - now).total_seconds()
        return max(1, math.ceil(seconds))


class RateLimitCounter(BaseModel):
    """Stored counter state for one identity."""
    identity: str
    window_start: datetime
    count: int
    updated_at: datetime


class RateLimiter(ABC):
    """Abstract admission gate."""

    @abstractmethod
    def check_and_increment(
        self,
        identity: str,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        max_count: int = DEFAULT_MAX_COUNT,
    ) -> RateLimitDecision:
        """
        Admit or reject one request for an identity.

        Args:
            identity: Verified caller identity
            window_seconds: Window length in seconds
            max_count: Requests admitted per window

        Returns:
            RateLimitDecision (the counter is only incremented when allowed)
        """
        pass


class SQLiteRateLimiter(RateLimiter):
    """
    SQLite-backed limiter.

    A striped per-identity lock serializes callers in this process; BEGIN IMMEDIATE
    serializes the read-modify-write against other processes sharing the file.
    """

    def __init__(
        self,
        db_path: str = "data/bytestore.db",
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize SQLite limiter.

        Args:
            db_path: Path to SQLite database file
            clock: Returns the current UTC time (injectable for tests)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.clock = clock
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS chat_rate_limits (
                user_id TEXT PRIMARY KEY,
                window_start TEXT NOT NULL,
                count INTEGER NOT NULL DEFAULT 0 CHECK(count >= 0),
                updated_at TEXT NOT NULL
            )
        """)
        conn.close()

    def _lock_for(self, identity: str) -> threading.Lock:
        # Fixed pool; identities sharing a stripe just queue behind each other
        return self._locks[hash(identity) % LOCK_STRIPES]

    def check_and_increment(
        self,
        identity: str,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        max_count: int = DEFAULT_MAX_COUNT,
    ) -> RateLimitDecision:
        window = timedelta(seconds=window_seconds)

        with self._lock_for(identity):
            try:
                conn = self._get_connection()
            except sqlite3.Error as e:
                raise RateLimiterError(f"Rate limit store unavailable: {e}") from e

            try:
                conn.execute("BEGIN IMMEDIATE")
                now = self.clock()

                conn.execute(
                    """
                    INSERT INTO chat_rate_limits (user_id, window_start, count, updated_at)
                    VALUES (?, ?, 0, ?)
                    ON CONFLICT(user_id) DO NOTHING
                    """,
                    (identity, now.isoformat(), now.isoformat())
                )
                row = conn.execute(
                    "SELECT window_start, count FROM chat_rate_limits WHERE user_id = ?",
                    (identity,)
                ).fetchone()

                window_start = datetime.fromisoformat(row["window_start"])
                count = row["count"]

                # Reset window if expired
                if now - window_start >= window:
                    window_start = now
                    count = 0

                reset_at = window_start + window

                if count >= max_count:
                    conn.execute("COMMIT")
                    return RateLimitDecision(allowed=False, remaining=0, reset_at=reset_at)

                count += 1
                conn.execute(
                    """
                    UPDATE chat_rate_limits
                       SET window_start = ?, count = ?, updated_at = ?
                     WHERE user_id = ?
                    """,
                    (window_start.isoformat(), count, now.isoformat(), identity)
                )
                conn.execute("COMMIT")

                return RateLimitDecision(
                    allowed=True,
                    remaining=max(0, max_count - count),
                    reset_at=reset_at,
                )
            except sqlite3.Error as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise RateLimiterError(f"Rate limit check failed: {e}") from e
            finally:
                conn.close()

    def get_counter(self, identity: str) -> Optional[RateLimitCounter]:
        """Read the stored counter for an identity, if any."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM chat_rate_limits WHERE user_id = ?",
            (identity,)
        ).fetchone()
        conn.close()

        if not row:
            return None

        return RateLimitCounter(
            identity=row["user_id"],
            window_start=datetime.fromisoformat(row["window_start"]),
            count=row["count"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def set_counter(self, identity: str, window_start: datetime, count: int):
        """Overwrite the stored counter for an identity (administrative use)."""
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO chat_rate_limits (user_id, window_start, count, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE
               SET window_start = excluded.window_start,
                   count = excluded.count,
                   updated_at = excluded.updated_at
            """,
            (identity, window_start.isoformat(), count, self.clock().isoformat())
        )
        conn.close()


class SupabaseRateLimiter(RateLimiter):
    """
    Limiter backed by the check_and_increment_chat_rate_limit Postgres function.

    The function locks the identity's row (SELECT ... FOR UPDATE), so atomicity
    holds across every service instance sharing the database.
    """

    RPC_NAME = "check_and_increment_chat_rate_limit"

    def __init__(self, client: SupabaseRestClient):
        self.client = client

    def check_and_increment(
        self,
        identity: str,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        max_count: int = DEFAULT_MAX_COUNT,
    ) -> RateLimitDecision:
        try:
            data = self.client.rpc(self.RPC_NAME, {
                "p_user_id": identity,
                "p_window_seconds": window_seconds,
                "p_max_count": max_count,
            })
        except (SupabaseError, ValueError) as e:
            logger.error(f"Rate limit RPC failed: {e}")
            raise RateLimiterError(str(e)) from e

        # Set-returning functions come back as a one-element list
        row = data[0] if isinstance(data, list) and data else data
        if not isinstance(row, dict) or "allowed" not in row:
            raise RateLimiterError(f"Unexpected rate limit payload: {data!r}")

        try:
            return RateLimitDecision(
                allowed=bool(row["allowed"]),
                remaining=int(row.get("remaining") or 0),
                reset_at=row.get("reset_at") or _utcnow() + timedelta(seconds=window_seconds),
            )
        except (TypeError, ValueError) as e:
            raise RateLimiterError(f"Unexpected rate limit payload: {data!r}") from e
