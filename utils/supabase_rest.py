"""Thin client for the Supabase REST (PostgREST) and RPC endpoints."""

import logging
from typing import Any, Dict, List, Optional
import requests

logger = logging.getLogger(__name__)


class SupabaseError(Exception):
    """A Supabase REST call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SupabaseRestClient:
    """
    Lightweight client for the Supabase REST API.

    Uses the service role key, so every call bypasses row level security.
    Errors are raised as SupabaseError; callers decide whether to contain them.
    """

    def __init__(self, url: str, service_key: str, timeout: float = 10.0):
        """
        Initialize REST client.

        Args:
            url: Project URL (e.g., https://xyz.supabase.co)
            service_key: Service role key
            timeout: Per-request timeout in seconds
        """
        if not url or not service_key:
            raise ValueError("Supabase URL and service role key are required")

        self.base_url = url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _request(
        self,
        method: str,
        path: str,
        params: Any = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise SupabaseError(f"Timeout after {self.timeout}s calling {path}")
        except requests.exceptions.RequestException as e:
            raise SupabaseError(f"Request to {path} failed: {e}")

        if response.status_code >= 400:
            raise SupabaseError(
                f"{method} {path} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: requests.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SupabaseError(f"Non-JSON response from {path}: {e}", status_code=response.status_code) from e

    def select(self, table: str, params: Any) -> List[Dict[str, Any]]:
        """
        Query a table.

        Args:
            table: Table name
            params: PostgREST query parameters (dict or list of pairs for repeated keys)

        Returns:
            List of rows
        """
        path = f"/rest/v1/{table}"
        return self._json(self._request("GET", path, params=params), path)

    def count(self, table: str, params: Any) -> int:
        """Count rows matching the given filters using PostgREST exact counts."""
        response = self._request(
            "GET",
            f"/rest/v1/{table}",
            params=params,
            headers={"Prefer": "count=exact", "Range-Unit": "items", "Range": "0-0"},
        )
        # Content-Range looks like "0-0/42" or "*/0"
        content_range = response.headers.get("Content-Range", "")
        total = content_range.rsplit("/", 1)[-1]
        if not total.isdigit():
            raise SupabaseError(f"Missing row count in Content-Range: {content_range!r}")
        return int(total)

    def insert(self, table: str, rows: Any) -> None:
        """Insert one row (dict) or many rows (list)."""
        self._request(
            "POST",
            f"/rest/v1/{table}",
            json_body=rows,
            headers={"Prefer": "return=minimal"},
        )

    def update(self, table: str, params: Any, values: Dict[str, Any]) -> None:
        """Update rows matching the given filters."""
        self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json_body=values,
            headers={"Prefer": "return=minimal"},
        )

    def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        """Call a Postgres function exposed over RPC."""
        path = f"/rest/v1/rpc/{function}"
        return self._json(self._request("POST", path, json_body=params), path)
