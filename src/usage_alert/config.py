# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Environment-backed settings for the usage alert job.

Variable names are unprefixed so an existing deployment's app settings keep
working (``TABLE_STORAGE_ENDPOINT``, ``AOAI_RESOURCE_URI``, ...). A ``.env``
file in the working directory is read as well.

Example::

    from usage_alert.config import get_settings

    settings = get_settings()
    print(settings.usage_threshold)
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from usage_alert.types import DEFAULT_PARTITION_KEY

StoreBackend = Literal["table", "file", "memory"]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class UsageAlertSettings(BaseSettings):
    """
    Settings for one deployment of the job.

    Attributes:
        table_storage_endpoint: Azure Table Storage account endpoint.
        table_storage_table_name: Table holding the usage records.
        communication_services_connection_string: Azure Communication
            Services connection string used to send email.
        aoai_resource_uri: Resource path of the monitored Azure OpenAI
            account (``subscriptions/.../accounts/<name>``).
        email_sender_address: ``From`` address of alert mail.
        email_recipient_address: Recipient address, or several separated by commas.
        usage_threshold: Monthly token total above which an alert fires.
        partition_key: Partition tag shared by every record.
        store_backend: Which record store to build.
        store_file_path: JSON file used when ``store_backend`` is ``file``.
        log_level: Root log level for the CLI and HTTP app.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    table_storage_endpoint: Optional[str] = None
    table_storage_table_name: Optional[str] = None
    communication_services_connection_string: Optional[str] = None
    aoai_resource_uri: Optional[str] = None
    email_sender_address: Optional[str] = None
    email_recipient_address: Optional[str] = None
    usage_threshold: float = Field(default=1000, ge=0)
    partition_key: str = Field(default=DEFAULT_PARTITION_KEY, min_length=1)
    store_backend: StoreBackend = "table"
    store_file_path: str = "usage_records.json"
    log_level: str = "INFO"

    @field_validator("aoai_resource_uri")
    @classmethod
    def strip_slashes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip("/")

    @field_validator("log_level")
    @classmethod
    def normalise_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level

    @property
    def recipients(self) -> list[str]:
        if not self.email_recipient_address:
            return []
        return [
            address.strip()
            for address in self.email_recipient_address.split(",")
            if address.strip()
        ]


@lru_cache(maxsize=1)
def get_settings() -> UsageAlertSettings:
    """Return the process-wide settings, read from the environment once."""
    return UsageAlertSettings()


def configure_logging(level: str = "INFO") -> None:
    """Install a root handler. Called by the CLI and the HTTP app, never on import."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
