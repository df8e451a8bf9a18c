# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

from abc import ABC, abstractmethod

from usage_alert.errors import RecordNotFoundError
from usage_alert.types import UsageRecord


class UsageRecordStore(ABC):
    """
    Minimal persistence contract for per-deployment monthly usage records.

    Keys are ``(partition_key, row_key)``. Implementations must make
    ``create`` atomic per key: of two concurrent creates for the same key,
    exactly one succeeds and the other raises ``RecordConflictError``.
    ``update`` is a full replace with last-write-wins semantics.

    Errors:
        RecordNotFoundError: ``get``/``update`` on a missing key.
        RecordConflictError: ``create`` on an existing key.
        StoreTransientError: the backend could not be reached.
        RecordDecodeError: the stored entity is malformed.
    """

    @abstractmethod
    async def get(self, partition_key: str, row_key: str) -> UsageRecord:
        ...

    @abstractmethod
    async def create(self, record: UsageRecord) -> None:
        ...

    @abstractmethod
    async def update(self, record: UsageRecord) -> None:
        ...

    async def find(self, partition_key: str, row_key: str) -> UsageRecord | None:
        """Like ``get`` but returns None for a missing record."""
        try:
            return await self.get(partition_key, row_key)
        except RecordNotFoundError:
            return None

    async def close(self) -> None:
        """Release backend resources. The default has nothing to release."""
        return None
