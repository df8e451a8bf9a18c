# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from usage_alert.errors import RecordDecodeError

DEFAULT_PARTITION_KEY = "DeploymentType"


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def make_row_key(deployment_name: str, year_month: str) -> str:
    """Build the record identity for one deployment in one month, e.g. ``gpt4dev-2024-10``."""
    return f"{deployment_name}-{year_month}"


# ─── Usage record ─────────────────────────────────────────────────────────────


class UsageRecord(BaseModel):
    """Persisted monthly usage state for one deployment."""

    partition_key: str = Field(default=DEFAULT_PARTITION_KEY, min_length=1)
    row_key: str = Field(..., min_length=1)
    cumulative_usage: float = Field(..., ge=0, description="Highest usage seen this month")
    alert_sent: bool = False
    last_updated: datetime = Field(default_factory=utc_now)

    @field_validator("last_updated")
    @classmethod
    def ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_entity(self) -> dict[str, Any]:
        """Render the record with the stored entity field names."""
        return {
            "PartitionKey": self.partition_key,
            "RowKey": self.row_key,
            "SumToken": self.cumulative_usage,
            "ActionDone": self.alert_sent,
            "LastUpdated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_entity(cls, entity: dict[str, Any]) -> UsageRecord:
        """
        Convert a stored entity into a UsageRecord.

        Raises:
            RecordDecodeError: A required field is missing or has the wrong type.
        """
        row_key = entity.get("RowKey")
        missing = [
            name
            for name in ("PartitionKey", "RowKey", "SumToken", "ActionDone", "LastUpdated")
            if name not in entity
        ]
        if missing:
            raise RecordDecodeError(
                str(row_key) if row_key is not None else None,
                f"missing fields {missing}",
            )
        if not isinstance(entity["ActionDone"], bool):
            raise RecordDecodeError(str(row_key), "ActionDone must be a boolean")
        try:
            return cls.model_validate(
                {
                    "partition_key": entity["PartitionKey"],
                    "row_key": entity["RowKey"],
                    "cumulative_usage": entity["SumToken"],
                    "alert_sent": entity["ActionDone"],
                    "last_updated": entity["LastUpdated"],
                }
            )
        except ValidationError as exc:
            raise RecordDecodeError(str(row_key), str(exc)) from exc


# ─── Usage samples ────────────────────────────────────────────────────────────


class DeploymentUsage(BaseModel, frozen=True):
    """Total usage of one deployment over the queried timespan."""

    deployment_name: str = Field(..., min_length=1)
    total: float = Field(..., ge=0)


# ─── Alerts ───────────────────────────────────────────────────────────────────


class AlertMessage(BaseModel, frozen=True):
    """An addressed plain-text alert."""

    sender: str = Field(..., min_length=1)
    recipients: list[str] = Field(..., min_length=1)
    subject: str
    plain_text: str


# ─── Outcomes ─────────────────────────────────────────────────────────────────

OutcomeStatus = Literal["ok", "alerted", "failed"]


class ReconcileOutcome(BaseModel, frozen=True):
    """Result of reconciling one deployment's usage sample."""

    deployment_name: str
    year_month: str
    status: OutcomeStatus
    alert_sent: bool = False
    cumulative_usage: Optional[float] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class InvocationSummary(BaseModel, frozen=True):
    """Everything one monitoring run did, one outcome per deployment."""

    year_month: str
    timespan: str
    outcomes: list[ReconcileOutcome] = Field(default_factory=list)

    @property
    def failed(self) -> list[ReconcileOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == "failed"]

    @property
    def alerted(self) -> list[ReconcileOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == "alerted"]
