# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Usage source: per-deployment token totals for the current month.

``AzureMonitorUsageSource`` reads the ``TokenTransaction`` metric of an Azure
OpenAI resource, split by ``ModelDeploymentName`` at one-day granularity, and
sums the daily totals per deployment. It is read-only.

Any failure to obtain usage is raised as ``SourceUnavailableError``; the
caller treats it as fatal for the whole invocation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx
from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import ClientAuthenticationError

from usage_alert.errors import SourceUnavailableError
from usage_alert.types import DeploymentUsage

logger = logging.getLogger("usage_alert.source")

MANAGEMENT_URL = "https://management.azure.com"
MANAGEMENT_SCOPE = "https://management.azure.com/.default"
METRICS_API_VERSION = "2023-10-01"
METRIC_NAME = "TokenTransaction"


# ---------------------------------------------------------------------------
# Time window helpers
# ---------------------------------------------------------------------------


def _utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def current_month_timespan(now: datetime) -> str:
    """
    ISO-8601 interval from the start of ``now``'s month to ``now``.

    Example: ``2024-10-01T00:00:00Z/2024-10-28T23:59:59Z``.
    Naive datetimes are taken to be UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return f"{_utc_iso(month_start)}/{_utc_iso(now)}"


def current_month_string(now: datetime) -> str:
    """``YYYY-MM`` of ``now`` in UTC, used as the record month."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m")


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def parse_metric_response(payload: Any) -> list[DeploymentUsage]:
    """
    Turn an Azure Monitor metrics response into one total per deployment.

    Reads ``value[0].timeseries``; each series is named by its first
    metadata value and totalled over its ``data`` points. Points without a
    ``total`` count as zero.

    Raises:
        SourceUnavailableError: The payload does not have the expected shape.
    """
    try:
        metrics = payload["value"]
        if not metrics:
            return []
        usages: list[DeploymentUsage] = []
        for series in metrics[0]["timeseries"]:
            name = str(series["metadatavalues"][0]["value"])
            total = sum(float(point.get("total") or 0) for point in series.get("data", []))
            usages.append(DeploymentUsage(deployment_name=name, total=total))
        return usages
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise SourceUnavailableError(
            f"Unexpected metrics response shape: {exc!r}",
            status_code=502,
            body=payload,
        ) from exc


# ---------------------------------------------------------------------------
# Source protocol
# ---------------------------------------------------------------------------


class UsageSource(Protocol):
    """Protocol for usage providers. Injected for testability."""

    async def fetch(self, timespan: str) -> list[DeploymentUsage]:
        """Return per-deployment usage totals over ``timespan``."""
        ...


class AzureMonitorUsageSource:
    """
    Queries Azure Monitor metrics for token usage per model deployment.

    Parameters
    ----------
    resource_uri:
        Resource path of the Azure OpenAI account, without leading slash.
    credential:
        Async token credential used to obtain a management-plane token.
    http_client:
        Shared ``httpx.AsyncClient``; owned by the caller.
    """

    def __init__(
        self,
        resource_uri: str,
        credential: AsyncTokenCredential,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._resource_uri = resource_uri.strip("/")
        self._credential = credential
        self._http_client = http_client

    def metrics_url(self) -> str:
        return f"{MANAGEMENT_URL}/{self._resource_uri}/providers/Microsoft.Insights/metrics"

    def query_params(self, timespan: str) -> dict[str, str]:
        return {
            "api-version": METRICS_API_VERSION,
            "metricnames": METRIC_NAME,
            "$filter": "ModelDeploymentName eq '*'",
            "interval": "P1D",
            "timespan": timespan,
        }

    async def fetch(self, timespan: str) -> list[DeploymentUsage]:
        try:
            token = await self._credential.get_token(MANAGEMENT_SCOPE)
        except ClientAuthenticationError as exc:
            raise SourceUnavailableError(f"Could not acquire management token: {exc}") from exc

        try:
            response = await self._http_client.get(
                self.metrics_url(),
                params=self.query_params(timespan),
                headers={"Authorization": f"Bearer {token.token}"},
            )
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(
                f"Metrics request failed: {exc}", status_code=502
            ) from exc

        if response.is_error:
            logger.error(
                "Metrics API returned %s for %s",
                response.status_code,
                self._resource_uri,
                extra={"status_code": response.status_code, "timespan": timespan},
            )
            raise SourceUnavailableError(
                f"Metrics API returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=_body_of(response),
            )

        usages = parse_metric_response(_body_of(response))
        logger.info(
            "Fetched usage for %d deployment(s) over %s",
            len(usages),
            timespan,
            extra={"timespan": timespan},
        )
        return usages


def _body_of(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
