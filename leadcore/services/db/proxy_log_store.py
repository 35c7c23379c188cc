"""
Proxy Log Store - append-only signal and heal-check logs plus the proxy registry.

The two log streams are separate tables: `proxy_logs` is written by the
scrapers for live traffic, `proxy_heal_check_logs` by the heal-check prober.
Neither exposes an update path.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ...models.proxies import (
    HealCheckStatus,
    ProxyHealCheckLogEntry,
    ProxyRecord,
    ProxySignalLogEntry,
    ProxySignalStatus,
    ProxyStatus,
)
from .supabase_client import StoreError, SupabaseClient


class ProxyLogUnavailable(Exception):
    """A proxy log stream could not be read."""


def _duration_ms(started_at: datetime, ended_at: datetime) -> int:
    return int((ended_at - started_at).total_seconds() * 1000)


class ProxyLogStore(ABC):
    """Write and read access to both proxy log streams."""

    @abstractmethod
    async def append_signal(self, entry: ProxySignalLogEntry) -> ProxySignalLogEntry:
        ...

    @abstractmethod
    async def append_heal_check(self, entry: ProxyHealCheckLogEntry) -> ProxyHealCheckLogEntry:
        ...

    @abstractmethod
    async def signal_entries(
        self,
        since: Optional[datetime] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> List[ProxySignalLogEntry]:
        """Raises ProxyLogUnavailable when the stream cannot be read."""

    @abstractmethod
    async def heal_check_entries(
        self,
        since: Optional[datetime] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> List[ProxyHealCheckLogEntry]:
        """Raises ProxyLogUnavailable when the stream cannot be read."""

    async def log_proxy_operation(
        self,
        proxy_host: str,
        proxy_port: int,
        started_at: datetime,
        ended_at: datetime,
        status: ProxySignalStatus,
        web_source: Optional[str] = None,
        web_url: Optional[str] = None,
        proxy_ip: Optional[str] = None,
        error: Optional[str] = None,
    ) -> ProxySignalLogEntry:
        entry = ProxySignalLogEntry(
            created_at=ended_at,
            web_source=web_source,
            web_url=web_url,
            proxy_host=proxy_host,
            proxy_port=proxy_port,
            proxy_ip=proxy_ip,
            status=status,
            duration=_duration_ms(started_at, ended_at),
            error=error or None,
        )
        return await self.append_signal(entry)

    async def log_heal_check(
        self,
        proxy_host: str,
        proxy_port: int,
        started_at: datetime,
        ended_at: datetime,
        status: HealCheckStatus,
        proxy_ip: Optional[str] = None,
        error: Optional[str] = None,
    ) -> ProxyHealCheckLogEntry:
        entry = ProxyHealCheckLogEntry(
            created_at=ended_at,
            proxy_host=proxy_host,
            proxy_port=proxy_port,
            proxy_ip=proxy_ip,
            status=status,
            duration=_duration_ms(started_at, ended_at),
            error=error or None,
        )
        return await self.append_heal_check(entry)


class ProxyRegistry(ABC):
    """The `proxies` table: which endpoints exist and their monitor info."""

    @abstractmethod
    async def list_proxies(self, statuses: Iterable[ProxyStatus]) -> List[ProxyRecord]:
        ...

    @abstractmethod
    async def update_proxy(self, proxy_id: str, fields: Dict[str, Any]) -> None:
        ...


class SupabaseProxyLogStore(ProxyLogStore):
    def __init__(
        self,
        client: SupabaseClient,
        signal_table: str = "proxy_logs",
        heal_check_table: str = "proxy_heal_check_logs",
        page_size: int = 1000,
    ):
        self.client = client
        self.signal_table = signal_table
        self.heal_check_table = heal_check_table
        # Must not exceed the PostgREST max-rows setting or a full page reads as short
        self.page_size = page_size

    async def append_signal(self, entry: ProxySignalLogEntry) -> ProxySignalLogEntry:
        payload = entry.model_dump(mode="json", exclude={"id"}, exclude_none=True)
        result = await self.client.table(self.signal_table).insert(payload).execute()
        return ProxySignalLogEntry.model_validate(result.data[0]) if result.data else entry

    async def append_heal_check(self, entry: ProxyHealCheckLogEntry) -> ProxyHealCheckLogEntry:
        payload = entry.model_dump(mode="json", exclude={"id"}, exclude_none=True)
        result = await self.client.table(self.heal_check_table).insert(payload).execute()
        return ProxyHealCheckLogEntry.model_validate(result.data[0]) if result.data else entry

    async def _read(self, table: str, since: Optional[datetime], host: Optional[str], port: Optional[int]) -> List[Dict[str, Any]]:
        """Read every matching row, one page at a time until a short page."""
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            query = self.client.table(table).select("*")
            if host:
                query = query.eq("proxy_host", host)
            if port is not None:
                query = query.eq("proxy_port", port)
            if since:
                query = query.gte("created_at", since.isoformat())
            query = query.order("created_at", desc=True).range(start, start + self.page_size - 1)
            try:
                result = await query.execute()
            except StoreError as e:
                raise ProxyLogUnavailable(f"{table}: {e}") from e
            rows.extend(result.data)
            if len(result.data) < self.page_size:
                return rows
            start += self.page_size

    async def signal_entries(self, since=None, host=None, port=None) -> List[ProxySignalLogEntry]:
        rows = await self._read(self.signal_table, since, host, port)
        return [ProxySignalLogEntry.model_validate(row) for row in rows]

    async def heal_check_entries(self, since=None, host=None, port=None) -> List[ProxyHealCheckLogEntry]:
        rows = await self._read(self.heal_check_table, since, host, port)
        return [ProxyHealCheckLogEntry.model_validate(row) for row in rows]


class SupabaseProxyRegistry(ProxyRegistry):
    def __init__(self, client: SupabaseClient, table: str = "proxies"):
        self.client = client
        self.table = table

    async def list_proxies(self, statuses: Iterable[ProxyStatus]) -> List[ProxyRecord]:
        result = await (
            self.client.table(self.table)
            .select("*")
            .in_("status", [status.value for status in statuses])
            .order("updated_at", desc=True)
            .execute()
        )
        return [ProxyRecord.model_validate(row) for row in result.data]

    async def update_proxy(self, proxy_id: str, fields: Dict[str, Any]) -> None:
        await self.client.table(self.table).update(fields).eq("id", proxy_id).execute()
