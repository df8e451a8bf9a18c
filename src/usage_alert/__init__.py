# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
usage-alert: monthly token usage checks with one-time threshold alerts.

Quick start::

    from usage_alert import MemoryStore, Reconciler

    reconciler = Reconciler(
        store=MemoryStore(),
        notifier=my_notifier,
        sender="alerts@example.com",
        recipients=["ops@example.com"],
        threshold=1000,
    )
    outcome = await reconciler.reconcile("gpt4dev", 1500, "2024-10")
    assert outcome.alert_sent
"""

from usage_alert.errors import (
    ConfigurationError,
    NotifierFailureError,
    RecordConflictError,
    RecordDecodeError,
    RecordNotFoundError,
    SourceUnavailableError,
    StoreTransientError,
    UsageAlertError,
)
from usage_alert.monitor import UsageMonitor
from usage_alert.notifier import SEND_SUCCEEDED, Notifier, build_alert_message
from usage_alert.policy import DEFAULT_THRESHOLD, should_alert
from usage_alert.reconciler import Reconciler
from usage_alert.source import (
    UsageSource,
    current_month_string,
    current_month_timespan,
    parse_metric_response,
)
from usage_alert.storage import FileStore, MemoryStore, UsageRecordStore
from usage_alert.types import (
    DEFAULT_PARTITION_KEY,
    AlertMessage,
    DeploymentUsage,
    InvocationSummary,
    ReconcileOutcome,
    UsageRecord,
    make_row_key,
)

__all__ = [
    # Core
    "Reconciler",
    "UsageMonitor",
    "should_alert",
    "DEFAULT_THRESHOLD",
    # Types
    "UsageRecord",
    "DeploymentUsage",
    "AlertMessage",
    "ReconcileOutcome",
    "InvocationSummary",
    "DEFAULT_PARTITION_KEY",
    "make_row_key",
    # Storage
    "UsageRecordStore",
    "MemoryStore",
    "FileStore",
    # Collaborators
    "Notifier",
    "SEND_SUCCEEDED",
    "build_alert_message",
    "UsageSource",
    "current_month_timespan",
    "current_month_string",
    "parse_metric_response",
    # Errors
    "UsageAlertError",
    "SourceUnavailableError",
    "RecordNotFoundError",
    "RecordConflictError",
    "StoreTransientError",
    "RecordDecodeError",
    "NotifierFailureError",
    "ConfigurationError",
]
