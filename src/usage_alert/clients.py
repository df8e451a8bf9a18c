# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Process-wide service clients.

Lifecycle: build once per process with ``AzureClients.from_settings``, reuse
for every invocation, ``close`` at shutdown. Nothing here is created at
import time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from azure.communication.email.aio import EmailClient
from azure.data.tables.aio import TableClient
from azure.identity.aio import DefaultAzureCredential

from usage_alert.config import UsageAlertSettings
from usage_alert.errors import ConfigurationError
from usage_alert.monitor import UsageMonitor
from usage_alert.notifier import AzureEmailNotifier
from usage_alert.reconciler import Reconciler
from usage_alert.source import AzureMonitorUsageSource
from usage_alert.storage import FileStore, MemoryStore, UsageRecordStore
from usage_alert.storage.table import TableStore

HTTP_TIMEOUT_SECONDS = 30.0


def _require(settings: UsageAlertSettings, *names: str) -> None:
    missing = [name.upper() for name in names if not getattr(settings, name)]
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")


@dataclass
class AzureClients:
    """Shared credential and service clients for one process."""

    settings: UsageAlertSettings
    credential: DefaultAzureCredential
    http_client: httpx.AsyncClient
    email_client: EmailClient
    table_client: Optional[TableClient] = None

    @classmethod
    def from_settings(cls, settings: UsageAlertSettings) -> AzureClients:
        """
        Build every client the configured backends need.

        Raises:
            ConfigurationError: A setting required by the chosen backends is unset.
        """
        _require(
            settings,
            "aoai_resource_uri",
            "communication_services_connection_string",
            "email_sender_address",
            "email_recipient_address",
        )
        if settings.store_backend == "table":
            _require(settings, "table_storage_endpoint", "table_storage_table_name")

        credential = DefaultAzureCredential()
        table_client = None
        if settings.store_backend == "table":
            table_client = TableClient(
                endpoint=settings.table_storage_endpoint,
                table_name=settings.table_storage_table_name,
                credential=credential,
            )
        return cls(
            settings=settings,
            credential=credential,
            http_client=httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS),
            email_client=EmailClient.from_connection_string(
                settings.communication_services_connection_string
            ),
            table_client=table_client,
        )

    def build_store(self) -> UsageRecordStore:
        if self.table_client is not None:
            return TableStore(self.table_client)
        if self.settings.store_backend == "file":
            return FileStore(self.settings.store_file_path)
        return MemoryStore()

    def build_monitor(self) -> UsageMonitor:
        settings = self.settings
        reconciler = Reconciler(
            store=self.build_store(),
            notifier=AzureEmailNotifier(self.email_client),
            sender=settings.email_sender_address or "",
            recipients=settings.recipients,
            threshold=settings.usage_threshold,
            partition_key=settings.partition_key,
        )
        source = AzureMonitorUsageSource(
            resource_uri=settings.aoai_resource_uri or "",
            credential=self.credential,
            http_client=self.http_client,
        )
        return UsageMonitor(source=source, reconciler=reconciler)

    async def close(self) -> None:
        await self.http_client.aclose()
        await self.email_client.close()
        if self.table_client is not None:
            await self.table_client.close()
        await self.credential.close()
