# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations


class UsageAlertError(Exception):
    """Base class for all usage-alert errors."""

    def __init__(self, message: str, code: str = "USAGE_ALERT_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class SourceUnavailableError(UsageAlertError):
    """
    Raised when the usage metric API cannot be queried.

    Fatal to the whole invocation: no deployment can be evaluated without
    usage totals.

    Attributes:
        status_code: HTTP status to surface to the trigger caller.
        body: Upstream response body, when one was received.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        body: object | None = None,
    ) -> None:
        super().__init__(message, code="SOURCE_UNAVAILABLE")
        self.status_code = status_code
        self.body = body


class RecordNotFoundError(UsageAlertError):
    """Raised by a store when no record exists for a key."""

    def __init__(self, partition_key: str, row_key: str) -> None:
        super().__init__(
            f"No usage record for '{partition_key}/{row_key}'.",
            code="RECORD_NOT_FOUND",
        )
        self.partition_key = partition_key
        self.row_key = row_key


class RecordConflictError(UsageAlertError):
    """Raised by a store when ``create`` targets a key that already exists."""

    def __init__(self, partition_key: str, row_key: str) -> None:
        super().__init__(
            f"Usage record '{partition_key}/{row_key}' already exists.",
            code="RECORD_CONFLICT",
        )
        self.partition_key = partition_key
        self.row_key = row_key


class StoreTransientError(UsageAlertError):
    """Raised when a store operation fails for connectivity or service reasons."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="STORE_TRANSIENT")


class RecordDecodeError(UsageAlertError):
    """
    Raised when a stored entity cannot be converted into a UsageRecord.

    Attributes:
        row_key: Row key of the offending entity, if it could be read.
        detail: Human-readable description of what was wrong.
    """

    def __init__(self, row_key: str | None, detail: str) -> None:
        super().__init__(
            f"Malformed usage record {row_key!r}: {detail}",
            code="RECORD_DECODE",
        )
        self.row_key = row_key
        self.detail = detail


class NotifierFailureError(UsageAlertError):
    """
    Raised when an alert could not be delivered.

    The record keeps ``alert_sent=False`` so the next invocation retries.

    Attributes:
        deployment_name: Deployment the alert was for.
        status: Final status reported by the notifier.
    """

    def __init__(self, deployment_name: str, status: str) -> None:
        super().__init__(
            f"Alert for deployment '{deployment_name}' was not delivered "
            f"(status: {status}).",
            code="NOTIFIER_FAILURE",
        )
        self.deployment_name = deployment_name
        self.status = status


class ConfigurationError(UsageAlertError):
    """Raised when required settings are missing or inconsistent."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")
