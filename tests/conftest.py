# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Shared fixtures for usage-alert tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from usage_alert.errors import StoreTransientError
from usage_alert.notifier import SEND_SUCCEEDED
from usage_alert.reconciler import Reconciler
from usage_alert.storage.memory import MemoryStore
from usage_alert.types import AlertMessage, DeploymentUsage, UsageRecord

FIXED_NOW = datetime(2024, 10, 28, 12, 30, tzinfo=timezone.utc)
MONTH = "2024-10"
THRESHOLD = 1000


class RecordingNotifier:
    """Notifier double that records every message and answers with ``status``."""

    def __init__(self, status: str = SEND_SUCCEEDED) -> None:
        self.status = status
        self.messages: list[AlertMessage] = []

    async def send(self, message: AlertMessage) -> str:
        self.messages.append(message)
        return self.status


class StaticSource:
    """Usage source double returning fixed totals."""

    def __init__(self, usages: list[DeploymentUsage]) -> None:
        self.usages = usages
        self.timespans: list[str] = []

    async def fetch(self, timespan: str) -> list[DeploymentUsage]:
        self.timespans.append(timespan)
        return list(self.usages)


class FailingStore(MemoryStore):
    """Memory store whose reads fail for selected row keys."""

    def __init__(self, failing_row_keys: set[str]) -> None:
        super().__init__()
        self.failing_row_keys = failing_row_keys

    async def get(self, partition_key: str, row_key: str) -> UsageRecord:
        if row_key in self.failing_row_keys:
            raise StoreTransientError(f"connection reset reading {row_key}")
        return await super().get(partition_key, row_key)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def reconciler(store: MemoryStore, notifier: RecordingNotifier) -> Reconciler:
    """A Reconciler over an empty memory store with threshold 1000."""
    return Reconciler(
        store=store,
        notifier=notifier,
        sender="alerts@example.com",
        recipients=["ops@example.com"],
        threshold=THRESHOLD,
        clock=lambda: FIXED_NOW,
    )
