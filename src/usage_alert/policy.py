# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Alert decision for monthly deployment usage.

A single STATIC threshold per deployment and month. The decision looks only
at the newly observed total and whether an alert was already delivered; it
performs no I/O and keeps no state.
"""

from __future__ import annotations

from usage_alert.types import UsageRecord

DEFAULT_THRESHOLD: float = 1000


def should_alert(
    existing_record: UsageRecord | None,
    new_usage: float,
    threshold: float = DEFAULT_THRESHOLD,
) -> bool:
    """
    Decide whether a new alert must be sent.

    Args:
        existing_record: The stored record for this deployment and month,
            or None if there is none yet.
        new_usage:       Total usage observed by this invocation.
        threshold:       Usage above which an alert is warranted.

    Returns:
        True when ``new_usage`` exceeds ``threshold`` and no alert has been
        delivered for the record yet.

    Raises:
        ValueError: If ``threshold`` is negative.
    """
    if threshold < 0:
        raise ValueError("threshold must be non-negative")
    if new_usage <= threshold:
        return False
    return existing_record is None or not existing_record.alert_sent
