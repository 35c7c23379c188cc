"""
Supabase REST client - talks to PostgREST with httpx directly.

Async rewrite of the small query builder the service has always used, so
that dispatcher jobs for different users can await the datastore without
blocking each other. Filters are sent as query parameters and encoded by
httpx.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A datastore request failed (transport error or HTTP status >= 400)."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class SupabaseTable:
    """Simple table query builder."""

    def __init__(self, client: "SupabaseClient", table_name: str):
        self.client = client
        self.table_name = table_name
        self._select_columns = "*"
        self._filters: List[Tuple[str, str]] = []
        self._order_by: Optional[str] = None
        self._order_desc = False
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._operation = "select"
        self._payload: Any = None

    def select(self, columns: str = "*") -> "SupabaseTable":
        self._select_columns = columns
        return self

    def eq(self, column: str, value: Any) -> "SupabaseTable":
        self._filters.append((column, f"eq.{value}"))
        return self

    def in_(self, column: str, values: List[Any]) -> "SupabaseTable":
        values_str = ",".join(str(v) for v in values)
        self._filters.append((column, f"in.({values_str})"))
        return self

    def gte(self, column: str, value: Any) -> "SupabaseTable":
        self._filters.append((column, f"gte.{value}"))
        return self

    def lt(self, column: str, value: Any) -> "SupabaseTable":
        self._filters.append((column, f"lt.{value}"))
        return self

    def order(self, column: str, desc: bool = False) -> "SupabaseTable":
        self._order_by = column
        self._order_desc = desc
        return self

    def limit(self, count: int) -> "SupabaseTable":
        self._limit = count
        return self

    def range(self, start: int, end: int) -> "SupabaseTable":
        self._offset = start
        self._limit = end - start + 1
        return self

    def insert(self, data: Any) -> "SupabaseTable":
        self._operation = "insert"
        self._payload = data
        return self

    def update(self, data: Dict[str, Any]) -> "SupabaseTable":
        self._operation = "update"
        self._payload = data
        return self

    def build_params(self) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []
        if self._operation == "select":
            params.append(("select", self._select_columns))
        params.extend(self._filters)
        if self._operation == "select":
            if self._order_by:
                direction = "desc" if self._order_desc else "asc"
                params.append(("order", f"{self._order_by}.{direction}"))
            if self._limit is not None:
                params.append(("limit", str(self._limit)))
            if self._offset:
                params.append(("offset", str(self._offset)))
        return params

    async def execute(self) -> "SupabaseResponse":
        url = f"{self.client.rest_url}/{self.table_name}"
        params = self.build_params()

        if self._operation == "insert":
            response = await self.client.request("POST", url, params=params, json=self._payload)
        elif self._operation == "update":
            response = await self.client.request("PATCH", url, params=params, json=self._payload)
        else:
            response = await self.client.request("GET", url, params=params)
        return SupabaseResponse(response)


class SupabaseResponse:
    """Response wrapper; `data` is always a list."""

    def __init__(self, response: httpx.Response):
        self.status_code = response.status_code
        try:
            data = response.json() if response.text else []
        except ValueError:
            data = []
        if isinstance(data, dict):
            data = [data]
        self.data: List[Any] = data if isinstance(data, list) else [data]


class SupabaseRPC:
    """RPC call builder for Postgres functions."""

    def __init__(self, client: "SupabaseClient", function_name: str, params: Dict[str, Any]):
        self.client = client
        self.function_name = function_name
        self.params = params

    async def execute(self) -> SupabaseResponse:
        url = f"{self.client.rest_url}/rpc/{self.function_name}"
        response = await self.client.request("POST", url, json=self.params)
        return SupabaseResponse(response)


class SupabaseClient:
    """Async Supabase REST client."""

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not url or not key:
            raise ValueError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")
        self.url = url.rstrip("/")
        self.key = key
        self.rest_url = f"{self.url}/rest/v1"
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[List[Tuple[str, str]]] = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, params=params, json=json, headers=self.headers)
        except httpx.HTTPError as e:
            logger.error("[Supabase] %s %s failed: %s", method, url, e)
            raise StoreError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 400:
            excerpt = response.text[:500]
            logger.error("[Supabase] %s %s -> %s: %s", method, url, response.status_code, excerpt)
            raise StoreError(
                f"{method} {url} returned {response.status_code}",
                status_code=response.status_code,
                details=excerpt,
            )
        return response

    def table(self, table_name: str) -> SupabaseTable:
        return SupabaseTable(self, table_name)

    def rpc(self, function_name: str, params: Optional[Dict[str, Any]] = None) -> SupabaseRPC:
        """Call a Postgres function via RPC."""
        return SupabaseRPC(self, function_name, params or {})

    async def aclose(self) -> None:
        await self._client.aclose()


async def check_connection(client: SupabaseClient, table: str = "leads") -> bool:
    """Test if the Supabase connection works."""
    try:
        await client.table(table).select("id").limit(1).execute()
        return True
    except StoreError as e:
        logger.warning("[Supabase] Connection test failed: %s", e)
        return False
