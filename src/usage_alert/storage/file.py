# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
JSON file storage backend.

All records live in one JSON object keyed by ``"<PartitionKey>/<RowKey>"``,
each value holding the stored entity fields (``SumToken``, ``ActionDone``,
...). Every operation re-reads the file from disk so the in-process view
never goes stale, and writes go to a temporary file that is renamed over the
original.

An in-process lock serialises read-modify-write cycles. Two separate
processes sharing one file are not coordinated; use TableStore for that.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from usage_alert.errors import (
    RecordConflictError,
    RecordDecodeError,
    RecordNotFoundError,
    StoreTransientError,
)
from usage_alert.storage.interface import UsageRecordStore
from usage_alert.types import UsageRecord


def _entity_key(partition_key: str, row_key: str) -> str:
    return f"{partition_key}/{row_key}"


class FileStore(UsageRecordStore):
    """
    Persistent single-file store for cron-style deployments.

    Parameters
    ----------
    file_path:
        Path to the JSON document. Created on first write.
    """

    def __init__(self, file_path: str | Path) -> None:
        self._file_path = Path(file_path)
        self._lock = asyncio.Lock()

    async def get(self, partition_key: str, row_key: str) -> UsageRecord:
        entities = await self._load()
        entity = entities.get(_entity_key(partition_key, row_key))
        if entity is None:
            raise RecordNotFoundError(partition_key, row_key)
        return UsageRecord.from_entity(entity)

    async def create(self, record: UsageRecord) -> None:
        key = _entity_key(record.partition_key, record.row_key)
        async with self._lock:
            entities = await self._load()
            if key in entities:
                raise RecordConflictError(record.partition_key, record.row_key)
            entities[key] = record.to_entity()
            await self._save(entities)

    async def update(self, record: UsageRecord) -> None:
        key = _entity_key(record.partition_key, record.row_key)
        async with self._lock:
            entities = await self._load()
            if key not in entities:
                raise RecordNotFoundError(record.partition_key, record.row_key)
            entities[key] = record.to_entity()
            await self._save(entities)

    async def _load(self) -> dict[str, dict[str, Any]]:
        if not self._file_path.exists():
            return {}
        try:
            async with aiofiles.open(self._file_path, mode="r", encoding="utf-8") as file_handle:
                raw = await file_handle.read()
        except OSError as exc:
            raise StoreTransientError(f"Cannot read {self._file_path}: {exc}") from exc

        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RecordDecodeError(None, f"{self._file_path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise RecordDecodeError(None, f"{self._file_path} must hold a JSON object")
        return data

    async def _save(self, entities: dict[str, dict[str, Any]]) -> None:
        tmp_path = self._file_path.with_name(self._file_path.name + ".tmp")
        try:
            await aiofiles.os.makedirs(self._file_path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as file_handle:
                await file_handle.write(json.dumps(entities, indent=2, sort_keys=True))
            await aiofiles.os.replace(tmp_path, self._file_path)
        except OSError as exc:
            raise StoreTransientError(f"Cannot write {self._file_path}: {exc}") from exc
