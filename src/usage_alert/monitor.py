# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from usage_alert.reconciler import Reconciler
from usage_alert.source import UsageSource, current_month_string, current_month_timespan
from usage_alert.types import InvocationSummary, utc_now

logger = logging.getLogger("usage_alert.monitor")


class UsageMonitor:
    """
    One scheduled check: fetch this month's usage, reconcile every deployment.

    A ``SourceUnavailableError`` from the source propagates to the caller.
    Per-deployment failures are captured in the returned summary and do not
    fail the run.
    """

    def __init__(
        self,
        source: UsageSource,
        reconciler: Reconciler,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._source = source
        self._reconciler = reconciler
        self._clock = clock

    async def run(self, now: datetime | None = None) -> InvocationSummary:
        now = now or self._clock()
        timespan = current_month_timespan(now)
        year_month = current_month_string(now)

        usages = await self._source.fetch(timespan)
        outcomes = await self._reconciler.reconcile_all(usages, year_month)

        summary = InvocationSummary(year_month=year_month, timespan=timespan, outcomes=outcomes)
        logger.info(
            "Checked %d deployment(s) for %s: %d alerted, %d failed",
            len(outcomes),
            year_month,
            len(summary.alerted),
            len(summary.failed),
            extra={"year_month": year_month},
        )
        return summary
