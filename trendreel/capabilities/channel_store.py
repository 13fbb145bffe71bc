"""Per-channel record stores.

The Supabase store keeps one row per channel:

    create table channels (
        id text primary key,
        name text not null default '',
        niche text not null default '',
        search_keywords text[] not null default '{}',
        region_code text,
        language text not null default 'en',
        target_audience text not null default '',
        avg_views bigint not null default 0,
        schedule jsonb not null default '{}',
        autopilot jsonb not null default '{}',
        status text not null default 'idle',
        last_log text not null default '',
        last_run_at timestamptz,
        auth_credentials jsonb
    );

Writes are plain upserts/updates: concurrent writers resolve last-writer-wins.
"""

import asyncio
from datetime import datetime
from typing import Any, Optional

import structlog
from supabase import Client

from trendreel.capabilities.base import ChannelStore
from trendreel.core.exceptions import CapabilityUnavailableError
from trendreel.models.schemas import ChannelRecord, StageStatus

logger = structlog.get_logger(__name__)


class InMemoryChannelStore(ChannelStore):
    """Channel store held in process memory, for development and tests."""

    def __init__(self, records: Optional[list[ChannelRecord]] = None):
        self._records: dict[str, ChannelRecord] = {r.id: r for r in records or []}

    async def list_channels(self) -> list[ChannelRecord]:
        return list(self._records.values())

    async def get_channel(self, channel_id: str) -> Optional[ChannelRecord]:
        return self._records.get(channel_id)

    async def save_channel(self, record: ChannelRecord) -> ChannelRecord:
        self._records[record.id] = record
        return record

    async def update_run_status(
        self,
        channel_id: str,
        status: StageStatus,
        last_log: str,
        last_run_at: Optional[datetime] = None,
    ) -> None:
        record = self._records.get(channel_id)
        if record is None:
            logger.warning("channel_status_update_missing", channel_id=channel_id)
            return
        update: dict[str, Any] = {"status": status, "last_log": last_log}
        if last_run_at is not None:
            update["last_run_at"] = last_run_at
        self._records[channel_id] = record.model_copy(update=update)


class SupabaseChannelStore(ChannelStore):
    """Channel store backed by a Supabase table."""

    def __init__(self, client: Client, table: str = "channels"):
        self._client = client
        self._table = table

    async def _execute(self, operation: str, build_query) -> Any:
        try:
            result = await asyncio.to_thread(lambda: build_query().execute())
        except Exception as e:
            logger.error("channel_store_error", operation=operation, error=str(e))
            raise CapabilityUnavailableError(
                "channel_store",
                f"Supabase {operation} failed: {e}",
                {"table": self._table},
            )
        return result.data or []

    async def list_channels(self) -> list[ChannelRecord]:
        rows = await self._execute(
            "list",
            lambda: self._client.table(self._table).select("*").order("id"),
        )
        records = []
        for row in rows:
            try:
                records.append(ChannelRecord.from_db_row(row))
            except ValueError as e:
                # One broken row must not hide the other channels
                logger.warning("channel_row_invalid", channel_id=row.get("id"), error=str(e))
        return records

    async def get_channel(self, channel_id: str) -> Optional[ChannelRecord]:
        rows = await self._execute(
            "get",
            lambda: self._client.table(self._table).select("*").eq("id", channel_id).limit(1),
        )
        return ChannelRecord.from_db_row(rows[0]) if rows else None

    async def save_channel(self, record: ChannelRecord) -> ChannelRecord:
        rows = await self._execute(
            "upsert",
            lambda: self._client.table(self._table).upsert(record.to_db_row()),
        )
        return ChannelRecord.from_db_row(rows[0]) if rows else record

    async def update_run_status(
        self,
        channel_id: str,
        status: StageStatus,
        last_log: str,
        last_run_at: Optional[datetime] = None,
    ) -> None:
        update: dict[str, Any] = {"status": status.value, "last_log": last_log}
        if last_run_at is not None:
            update["last_run_at"] = last_run_at.isoformat()
        await self._execute(
            "update",
            lambda: self._client.table(self._table).update(update).eq("id", channel_id),
        )
        logger.debug("channel_status_written", channel_id=channel_id, status=status.value)
