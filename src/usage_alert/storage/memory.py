# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

from usage_alert.errors import RecordConflictError, RecordNotFoundError
from usage_alert.storage.interface import UsageRecordStore
from usage_alert.types import UsageRecord


class MemoryStore(UsageRecordStore):
    """
    In-process memory store, suitable for single-process runs and testing.

    Each operation completes without awaiting, so create/update are atomic
    with respect to other tasks on the same event loop. All state is lost
    when the process exits; use FileStore or TableStore for state that must
    survive between scheduled invocations.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], UsageRecord] = {}

    async def get(self, partition_key: str, row_key: str) -> UsageRecord:
        record = self._records.get((partition_key, row_key))
        if record is None:
            raise RecordNotFoundError(partition_key, row_key)
        return record.model_copy(deep=True)

    async def create(self, record: UsageRecord) -> None:
        key = (record.partition_key, record.row_key)
        if key in self._records:
            raise RecordConflictError(*key)
        self._records[key] = record.model_copy(deep=True)

    async def update(self, record: UsageRecord) -> None:
        key = (record.partition_key, record.row_key)
        if key not in self._records:
            raise RecordNotFoundError(*key)
        self._records[key] = record.model_copy(deep=True)

    def snapshot(self) -> list[UsageRecord]:
        """Copies of every stored record, for inspection in tests and demos."""
        return [record.model_copy(deep=True) for record in self._records.values()]
