# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Tests for the Reconciler: record creation, alert idempotence, usage
high-water mark, concurrent creation and per-deployment failure isolation.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import (
    FIXED_NOW,
    MONTH,
    FailingStore,
    RecordingNotifier,
)
from usage_alert.errors import NotifierFailureError, RecordConflictError, StoreTransientError
from usage_alert.reconciler import Reconciler
from usage_alert.storage.memory import MemoryStore
from usage_alert.types import DeploymentUsage, UsageRecord, make_row_key


def _seed(store: MemoryStore, deployment: str, cumulative_usage: float, alert_sent: bool) -> None:
    asyncio.run(
        store.create(
            UsageRecord(
                row_key=make_row_key(deployment, MONTH),
                cumulative_usage=cumulative_usage,
                alert_sent=alert_sent,
            )
        )
    )


def _stored(store: MemoryStore, deployment: str) -> UsageRecord:
    return asyncio.run(store.get("DeploymentType", make_row_key(deployment, MONTH)))


class RacingStore(MemoryStore):
    """
    Simulates a concurrent creator: the first ``get`` misses, and the record
    appears before this caller's ``create`` lands.
    """

    def __init__(self, competitor: UsageRecord) -> None:
        super().__init__()
        self.competitor = competitor
        self.create_attempts = 0

    async def create(self, record: UsageRecord) -> None:
        self.create_attempts += 1
        if self.create_attempts == 1:
            await super().create(self.competitor)
        await super().create(record)


# ---------------------------------------------------------------------------
# TestReconcileScenarios
# ---------------------------------------------------------------------------


class TestReconcileScenarios:
    def test_new_deployment_above_threshold_creates_record_and_alerts(
        self,
        reconciler: Reconciler,
        store: MemoryStore,
        notifier: RecordingNotifier,
    ) -> None:
        outcome = asyncio.run(reconciler.reconcile("gpt4dev", 1500, MONTH))

        assert outcome.status == "alerted"
        assert len(notifier.messages) == 1
        record = _stored(store, "gpt4dev")
        assert record.row_key == "gpt4dev-2024-10"
        assert record.cumulative_usage == 1500
        assert record.alert_sent is True
        assert record.last_updated == FIXED_NOW

    def test_already_alerted_record_only_raises_usage(
        self,
        reconciler: Reconciler,
        store: MemoryStore,
        notifier: RecordingNotifier,
    ) -> None:
        _seed(store, "gpt4dev", cumulative_usage=1500, alert_sent=True)

        outcome = asyncio.run(reconciler.reconcile("gpt4dev", 1800, MONTH))

        assert outcome.status == "ok"
        assert notifier.messages == []
        record = _stored(store, "gpt4dev")
        assert record.cumulative_usage == 1800
        assert record.alert_sent is True

    def test_usage_dip_keeps_high_water_mark_and_does_not_alert(
        self,
        reconciler: Reconciler,
        store: MemoryStore,
        notifier: RecordingNotifier,
    ) -> None:
        _seed(store, "gpt4dev", cumulative_usage=500, alert_sent=False)

        outcome = asyncio.run(reconciler.reconcile("gpt4dev", 400, MONTH))

        assert outcome.cumulative_usage == 500
        assert notifier.messages == []
        record = _stored(store, "gpt4dev")
        assert record.cumulative_usage == 500
        assert record.alert_sent is False

    def test_concurrent_create_is_resolved_by_rereading(self, notifier: RecordingNotifier) -> None:
        competitor = UsageRecord(
            row_key=make_row_key("gpt4dev", MONTH),
            cumulative_usage=1200,
            alert_sent=True,
        )
        store = RacingStore(competitor)
        reconciler = Reconciler(
            store=store,
            notifier=notifier,
            sender="alerts@example.com",
            recipients=["ops@example.com"],
            threshold=1000,
        )

        outcome = asyncio.run(reconciler.reconcile("gpt4dev", 1300, MONTH))

        assert outcome.status == "ok"
        assert store.create_attempts == 1
        assert len(store.snapshot()) == 1
        # The competitor already alerted, so this caller must not.
        assert notifier.messages == []
        assert _stored(store, "gpt4dev").cumulative_usage == 1300

    def test_two_parallel_reconciliations_leave_exactly_one_record(
        self,
        reconciler: Reconciler,
        store: MemoryStore,
    ) -> None:
        async def both() -> list[object]:
            return await asyncio.gather(
                reconciler.reconcile("gpt4dev", 800, MONTH),
                reconciler.reconcile("gpt4dev", 900, MONTH),
                return_exceptions=True,
            )

        results = asyncio.run(both())

        assert not any(isinstance(result, Exception) for result in results)
        records = store.snapshot()
        assert len(records) == 1
        assert records[0].cumulative_usage == 900

    def test_notifier_failure_leaves_alert_unsent_but_keeps_usage(self, store: MemoryStore) -> None:
        notifier = RecordingNotifier(status="Failed")
        reconciler = Reconciler(
            store=store,
            notifier=notifier,
            sender="alerts@example.com",
            recipients=["ops@example.com"],
            threshold=1000,
        )
        _seed(store, "gpt4dev", cumulative_usage=900, alert_sent=False)

        with pytest.raises(NotifierFailureError) as exc_info:
            asyncio.run(reconciler.reconcile("gpt4dev", 1500, MONTH))

        assert exc_info.value.status == "Failed"
        assert exc_info.value.deployment_name == "gpt4dev"
        record = _stored(store, "gpt4dev")
        assert record.alert_sent is False
        assert record.cumulative_usage == 1500

    def test_failed_notification_is_retried_on_next_run(self, store: MemoryStore) -> None:
        notifier = RecordingNotifier(status="Failed")
        reconciler = Reconciler(
            store=store,
            notifier=notifier,
            sender="alerts@example.com",
            recipients=["ops@example.com"],
            threshold=1000,
        )
        with pytest.raises(NotifierFailureError):
            asyncio.run(reconciler.reconcile("gpt4dev", 1500, MONTH))

        notifier.status = "Succeeded"
        outcome = asyncio.run(reconciler.reconcile("gpt4dev", 1500, MONTH))

        assert outcome.status == "alerted"
        assert len(notifier.messages) == 2
        assert _stored(store, "gpt4dev").alert_sent is True


# ---------------------------------------------------------------------------
# TestReconcileInvariants
# ---------------------------------------------------------------------------


class TestReconcileInvariants:
    def test_repeat_reconcile_after_alert_sends_nothing(
        self,
        reconciler: Reconciler,
        notifier: RecordingNotifier,
        store: MemoryStore,
    ) -> None:
        asyncio.run(reconciler.reconcile("gpt4dev", 1500, MONTH))
        second = asyncio.run(reconciler.reconcile("gpt4dev", 1500, MONTH))

        assert second.status == "ok"
        assert second.alert_sent is True
        assert len(notifier.messages) == 1
        assert _stored(store, "gpt4dev").alert_sent is True

    @pytest.mark.parametrize(
        ("previous", "new_usage"),
        [(500, 400), (500, 500), (500, 700), (0, 0), (1500, 2500)],
    )
    def test_cumulative_usage_is_max_of_previous_and_new(
        self,
        reconciler: Reconciler,
        store: MemoryStore,
        previous: float,
        new_usage: float,
    ) -> None:
        _seed(store, "gpt4dev", cumulative_usage=previous, alert_sent=True)

        asyncio.run(reconciler.reconcile("gpt4dev", new_usage, MONTH))

        assert _stored(store, "gpt4dev").cumulative_usage == max(previous, new_usage)

    def test_below_threshold_first_observation_creates_record_without_alert(
        self,
        reconciler: Reconciler,
        store: MemoryStore,
        notifier: RecordingNotifier,
    ) -> None:
        outcome = asyncio.run(reconciler.reconcile("gpt35", 200, MONTH))

        assert outcome.status == "ok"
        assert notifier.messages == []
        record = _stored(store, "gpt35")
        assert record.cumulative_usage == 200
        assert record.alert_sent is False

    def test_months_are_tracked_separately(
        self,
        reconciler: Reconciler,
        store: MemoryStore,
        notifier: RecordingNotifier,
    ) -> None:
        asyncio.run(reconciler.reconcile("gpt4dev", 1500, "2024-09"))
        asyncio.run(reconciler.reconcile("gpt4dev", 1500, "2024-10"))

        assert len(notifier.messages) == 2
        assert {record.row_key for record in store.snapshot()} == {
            "gpt4dev-2024-09",
            "gpt4dev-2024-10",
        }

    def test_alert_message_names_deployment_and_totals(
        self,
        reconciler: Reconciler,
        notifier: RecordingNotifier,
    ) -> None:
        asyncio.run(reconciler.reconcile("gpt4dev", 1500, MONTH))

        message = notifier.messages[0]
        assert message.sender == "alerts@example.com"
        assert message.recipients == ["ops@example.com"]
        assert message.subject == "[Alert!] gpt4dev has exceeded the threshold"
        assert "threshold of 1000 tokens" in message.plain_text
        assert "total token usage is 1500" in message.plain_text

    def test_no_write_when_nothing_changes(self, reconciler: Reconciler, store: MemoryStore) -> None:
        _seed(store, "gpt4dev", cumulative_usage=1500, alert_sent=True)
        before = _stored(store, "gpt4dev")

        asyncio.run(reconciler.reconcile("gpt4dev", 1200, MONTH))

        assert _stored(store, "gpt4dev").last_updated == before.last_updated

    def test_store_error_propagates_from_single_reconcile(self, notifier: RecordingNotifier) -> None:
        store = FailingStore({make_row_key("gpt4dev", MONTH)})
        reconciler = Reconciler(
            store=store,
            notifier=notifier,
            sender="alerts@example.com",
            recipients=["ops@example.com"],
        )
        with pytest.raises(StoreTransientError):
            asyncio.run(reconciler.reconcile("gpt4dev", 1500, MONTH))
        assert notifier.messages == []

    def test_negative_threshold_rejected(self, store: MemoryStore, notifier: RecordingNotifier) -> None:
        with pytest.raises(ValueError):
            Reconciler(store, notifier, "a@example.com", ["b@example.com"], threshold=-5)


# ---------------------------------------------------------------------------
# TestReconcileAll
# ---------------------------------------------------------------------------


class TestReconcileAll:
    def test_one_failure_does_not_abort_others(self, notifier: RecordingNotifier) -> None:
        store = FailingStore({make_row_key("broken", MONTH)})
        reconciler = Reconciler(
            store=store,
            notifier=notifier,
            sender="alerts@example.com",
            recipients=["ops@example.com"],
            threshold=1000,
        )
        usages = [
            DeploymentUsage(deployment_name="gpt4dev", total=1500),
            DeploymentUsage(deployment_name="broken", total=2000),
            DeploymentUsage(deployment_name="gpt35", total=10),
        ]

        outcomes = asyncio.run(reconciler.reconcile_all(usages, MONTH))

        assert [outcome.deployment_name for outcome in outcomes] == ["gpt4dev", "broken", "gpt35"]
        assert [outcome.status for outcome in outcomes] == ["alerted", "failed", "ok"]
        assert outcomes[1].error_code == "STORE_TRANSIENT"
        assert "connection reset" in (outcomes[1].error or "")
        assert len(notifier.messages) == 1

    def test_notifier_failure_is_reported_as_failed_outcome(self, store: MemoryStore) -> None:
        reconciler = Reconciler(
            store=store,
            notifier=RecordingNotifier(status="Canceled"),
            sender="alerts@example.com",
            recipients=["ops@example.com"],
            threshold=1000,
        )

        outcomes = asyncio.run(
            reconciler.reconcile_all([DeploymentUsage(deployment_name="gpt4dev", total=1500)], MONTH)
        )

        assert outcomes[0].status == "failed"
        assert outcomes[0].error_code == "NOTIFIER_FAILURE"
        assert _stored(store, "gpt4dev").alert_sent is False

    def test_unexpected_exception_is_captured(self, notifier: RecordingNotifier) -> None:
        class ExplodingStore(MemoryStore):
            async def get(self, partition_key: str, row_key: str) -> UsageRecord:
                raise RuntimeError("boom")

        reconciler = Reconciler(
            store=ExplodingStore(),
            notifier=notifier,
            sender="alerts@example.com",
            recipients=["ops@example.com"],
        )

        outcomes = asyncio.run(
            reconciler.reconcile_all([DeploymentUsage(deployment_name="gpt4dev", total=5)], MONTH)
        )

        assert outcomes[0].status == "failed"
        assert outcomes[0].error_code == "RuntimeError"

    def test_empty_input_returns_no_outcomes(self, reconciler: Reconciler) -> None:
        assert asyncio.run(reconciler.reconcile_all([], MONTH)) == []

    def test_conflict_error_type_is_available_to_stores(self) -> None:
        error = RecordConflictError("DeploymentType", "gpt4dev-2024-10")
        assert error.code == "RECORD_CONFLICT"
        assert "already exists" in error.message
