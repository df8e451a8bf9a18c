# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Reconciler: merges one deployment's monthly usage total into its stored
record and applies the alert policy.

Design contract
---------------
- The reconciler is the only writer of usage records.
- ``alert_sent`` is set only after the notifier reports success, and never
  cleared. A failed delivery leaves it false so the next invocation retries.
- ``cumulative_usage`` only ever rises to the newly observed total.
- Alert flag and usage increase are written in a single replace.
- No locks: the store's atomic create and last-write-wins update are the
  only concurrency control. Two overlapping invocations can at worst send a
  duplicate alert; neither can lose the fact that the threshold was crossed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable

from usage_alert.errors import (
    NotifierFailureError,
    RecordConflictError,
    RecordNotFoundError,
    UsageAlertError,
)
from usage_alert.notifier import SEND_SUCCEEDED, Notifier, build_alert_message
from usage_alert.policy import DEFAULT_THRESHOLD, should_alert
from usage_alert.storage.interface import UsageRecordStore
from usage_alert.types import (
    DEFAULT_PARTITION_KEY,
    DeploymentUsage,
    ReconcileOutcome,
    UsageRecord,
    make_row_key,
    utc_now,
)

logger = logging.getLogger("usage_alert.reconciler")


class Reconciler:
    """
    Applies new usage observations to persisted per-deployment state.

    Usage
    -----
    ::

        reconciler = Reconciler(
            store=MemoryStore(),
            notifier=my_notifier,
            sender="alerts@example.com",
            recipients=["ops@example.com"],
        )
        outcome = await reconciler.reconcile("gpt4dev", 1500, "2024-10")
    """

    def __init__(
        self,
        store: UsageRecordStore,
        notifier: Notifier,
        sender: str,
        recipients: list[str],
        threshold: float = DEFAULT_THRESHOLD,
        partition_key: str = DEFAULT_PARTITION_KEY,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if threshold < 0:
            raise ValueError("threshold must be non-negative")
        self._store = store
        self._notifier = notifier
        self._sender = sender
        self._recipients = list(recipients)
        self._threshold = threshold
        self._partition_key = partition_key
        self._clock = clock

    @property
    def threshold(self) -> float:
        return self._threshold

    # ─── Single deployment ────────────────────────────────────────────────────

    async def reconcile(
        self,
        deployment_name: str,
        new_usage: float,
        year_month: str,
    ) -> ReconcileOutcome:
        """
        Merge ``new_usage`` into the record for ``deployment_name`` in ``year_month``.

        Returns:
            The outcome, with status ``"alerted"`` when this call delivered
            the alert and ``"ok"`` otherwise.

        Raises:
            NotifierFailureError: The alert was due but not delivered. Any
                usage increase has already been persisted.
            StoreTransientError: The store could not be reached.
            RecordDecodeError: The stored record is malformed.
        """
        record = await self._load_or_create(deployment_name, new_usage, year_month)

        alert_delivered = False
        delivery_status: str | None = None
        if should_alert(record, new_usage, self._threshold):
            delivery_status = await self._notify(deployment_name, new_usage)
            alert_delivered = delivery_status == SEND_SUCCEEDED

        raise_usage = new_usage > record.cumulative_usage
        if alert_delivered or raise_usage:
            changes: dict[str, object] = {"last_updated": self._clock()}
            if alert_delivered:
                changes["alert_sent"] = True
            if raise_usage:
                changes["cumulative_usage"] = new_usage
            record = record.model_copy(update=changes)
            await self._store.update(record)

        if delivery_status is not None and not alert_delivered:
            raise NotifierFailureError(deployment_name, delivery_status)

        if alert_delivered:
            logger.info(
                "Alert mail sent for %s (%s): usage %s > %s",
                deployment_name,
                year_month,
                new_usage,
                self._threshold,
                extra={"deployment": deployment_name, "year_month": year_month},
            )
        else:
            logger.info(
                "No alert needed for %s (%s)",
                deployment_name,
                year_month,
                extra={"deployment": deployment_name, "year_month": year_month},
            )

        return ReconcileOutcome(
            deployment_name=deployment_name,
            year_month=year_month,
            status="alerted" if alert_delivered else "ok",
            alert_sent=record.alert_sent,
            cumulative_usage=record.cumulative_usage,
        )

    async def _load_or_create(
        self,
        deployment_name: str,
        new_usage: float,
        year_month: str,
    ) -> UsageRecord:
        row_key = make_row_key(deployment_name, year_month)
        try:
            return await self._store.get(self._partition_key, row_key)
        except RecordNotFoundError:
            pass

        record = UsageRecord(
            partition_key=self._partition_key,
            row_key=row_key,
            cumulative_usage=new_usage,
            alert_sent=False,
            last_updated=self._clock(),
        )
        try:
            await self._store.create(record)
        except RecordConflictError:
            # Another invocation created it first.
            logger.debug(
                "Record %s created concurrently, re-reading",
                row_key,
                extra={"deployment": deployment_name, "year_month": year_month},
            )
            return await self._store.get(self._partition_key, row_key)
        return record

    async def _notify(self, deployment_name: str, new_usage: float) -> str:
        message = build_alert_message(
            deployment_name,
            new_usage,
            self._threshold,
            self._sender,
            self._recipients,
        )
        return await self._notifier.send(message)

    # ─── Fan-out ──────────────────────────────────────────────────────────────

    async def reconcile_all(
        self,
        usages: Iterable[DeploymentUsage],
        year_month: str,
    ) -> list[ReconcileOutcome]:
        """
        Reconcile every deployment concurrently and collect one outcome each.

        Every task is awaited; a failure in one deployment is recorded as a
        ``"failed"`` outcome and never cancels or fails the others.
        """
        usage_list = list(usages)
        results = await asyncio.gather(
            *(self.reconcile(u.deployment_name, u.total, year_month) for u in usage_list),
            return_exceptions=True,
        )

        outcomes: list[ReconcileOutcome] = []
        for usage, result in zip(usage_list, results):
            if isinstance(result, ReconcileOutcome):
                outcomes.append(result)
                continue
            if not isinstance(result, Exception):
                raise result
            outcomes.append(self._failed_outcome(usage, year_month, result))
        return outcomes

    def _failed_outcome(
        self,
        usage: DeploymentUsage,
        year_month: str,
        error: Exception,
    ) -> ReconcileOutcome:
        code = error.code if isinstance(error, UsageAlertError) else type(error).__name__
        logger.error(
            "Error processing deployment %s (%s): %s",
            usage.deployment_name,
            year_month,
            error,
            exc_info=None if isinstance(error, UsageAlertError) else error,
            extra={
                "deployment": usage.deployment_name,
                "year_month": year_month,
                "error_code": code,
            },
        )
        return ReconcileOutcome(
            deployment_name=usage.deployment_name,
            year_month=year_month,
            status="failed",
            error=str(error),
            error_code=code,
        )
