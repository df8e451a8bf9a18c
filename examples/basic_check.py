# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
basic_check.py

Runs three simulated invocations of the monthly usage check against an
in-memory store, with a notifier that prints instead of sending mail:
  1. First run: gpt4dev crosses the threshold and is alerted.
  2. Second run: usage grew, but the alert is not repeated.
  3. Third run: a re-query reports a lower total; the high-water mark holds.

Run with:  python examples/basic_check.py
(with deployment-usage-alert installed)
"""

import asyncio
from datetime import datetime, timezone

from usage_alert import (
    SEND_SUCCEEDED,
    AlertMessage,
    DeploymentUsage,
    MemoryStore,
    Reconciler,
    UsageMonitor,
)

# ─── Collaborators ────────────────────────────────────────────────────────────


class PrintNotifier:
    async def send(self, message: AlertMessage) -> str:
        print(f"  MAIL to {', '.join(message.recipients)}: {message.subject}")
        return SEND_SUCCEEDED


class ScriptedSource:
    def __init__(self, runs: list[list[DeploymentUsage]]) -> None:
        self._runs = iter(runs)

    async def fetch(self, timespan: str) -> list[DeploymentUsage]:
        return next(self._runs)


runs = [
    [DeploymentUsage(deployment_name="gpt4dev", total=1500), DeploymentUsage(deployment_name="gpt35", total=200)],
    [DeploymentUsage(deployment_name="gpt4dev", total=1800), DeploymentUsage(deployment_name="gpt35", total=650)],
    [DeploymentUsage(deployment_name="gpt4dev", total=1700), DeploymentUsage(deployment_name="gpt35", total=640)],
]

store = MemoryStore()
monitor = UsageMonitor(
    source=ScriptedSource(runs),
    reconciler=Reconciler(
        store=store,
        notifier=PrintNotifier(),
        sender="DoNotReply@example.azurecomm.net",
        recipients=["ops@example.com"],
        threshold=1000,
    ),
)

# ─── Simulated invocations ────────────────────────────────────────────────────


async def main() -> None:
    now = datetime(2024, 10, 28, 9, 0, tzinfo=timezone.utc)
    for run_number in range(1, len(runs) + 1):
        print(f"Run {run_number}:")
        summary = await monitor.run(now=now)
        for outcome in summary.outcomes:
            print(
                f"  {outcome.deployment_name:<10} status={outcome.status:<8} "
                f"alert_sent={outcome.alert_sent!s:<5} high_water={outcome.cumulative_usage}"
            )

    print("\n── Stored records ────────────────────────────────────")
    for record in store.snapshot():
        print(f"  {record.row_key:<18} {record.cumulative_usage:>8.0f}  alert_sent={record.alert_sent}")


if __name__ == "__main__":
    asyncio.run(main())
