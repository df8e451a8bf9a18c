# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Azure Table Storage backend.

Wraps an ``azure.data.tables.aio.TableClient`` and translates the SDK's
status-code exceptions into the store's typed errors, so callers never
inspect transport details.
"""

from __future__ import annotations

from typing import Any

from azure.core.exceptions import (
    AzureError,
    ResourceExistsError,
    ResourceNotFoundError,
)
from azure.data.tables import UpdateMode
from azure.data.tables.aio import TableClient

from usage_alert.errors import (
    RecordConflictError,
    RecordNotFoundError,
    StoreTransientError,
)
from usage_alert.storage.interface import UsageRecordStore
from usage_alert.types import UsageRecord


class TableStore(UsageRecordStore):
    """
    Usage records stored as Azure Table entities.

    The table client is injected and owned by the caller (see
    ``usage_alert.clients.AzureClients``); ``close`` is a no-op unless
    ``owns_client`` is set.
    """

    def __init__(self, table_client: TableClient, owns_client: bool = False) -> None:
        self._client = table_client
        self._owns_client = owns_client

    async def get(self, partition_key: str, row_key: str) -> UsageRecord:
        try:
            entity = await self._client.get_entity(partition_key=partition_key, row_key=row_key)
        except ResourceNotFoundError as exc:
            raise RecordNotFoundError(partition_key, row_key) from exc
        except AzureError as exc:
            raise StoreTransientError(
                f"Table read failed for '{partition_key}/{row_key}': {exc}"
            ) from exc
        return UsageRecord.from_entity(_as_dict(entity))

    async def create(self, record: UsageRecord) -> None:
        try:
            await self._client.create_entity(entity=record.to_entity())
        except ResourceExistsError as exc:
            raise RecordConflictError(record.partition_key, record.row_key) from exc
        except AzureError as exc:
            raise StoreTransientError(
                f"Table create failed for '{record.partition_key}/{record.row_key}': {exc}"
            ) from exc

    async def update(self, record: UsageRecord) -> None:
        try:
            await self._client.update_entity(entity=record.to_entity(), mode=UpdateMode.REPLACE)
        except ResourceNotFoundError as exc:
            raise RecordNotFoundError(record.partition_key, record.row_key) from exc
        except AzureError as exc:
            raise StoreTransientError(
                f"Table update failed for '{record.partition_key}/{record.row_key}': {exc}"
            ) from exc

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()


def _as_dict(entity: Any) -> dict[str, Any]:
    # TableEntity is a dict subclass carrying service metadata on .metadata
    return dict(entity)
