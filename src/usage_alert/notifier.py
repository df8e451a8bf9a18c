# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Alert delivery.

The reconciler depends only on the ``Notifier`` protocol: send a message,
get back the transport's final status string. Anything other than
``"Succeeded"`` counts as a failed delivery.

``AzureEmailNotifier`` delivers through Azure Communication Services email
and waits for the send operation to finish before reporting its status.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from azure.communication.email.aio import EmailClient
from azure.core.exceptions import AzureError

from usage_alert.types import AlertMessage

logger = logging.getLogger("usage_alert.notifier")

SEND_SUCCEEDED = "Succeeded"
SEND_FAILED = "Failed"


def build_alert_message(
    deployment_name: str,
    total: float,
    threshold: float,
    sender: str,
    recipients: list[str],
) -> AlertMessage:
    """Compose the threshold-exceeded mail for one deployment."""
    return AlertMessage(
        sender=sender,
        recipients=recipients,
        subject=f"[Alert!] {deployment_name} has exceeded the threshold",
        plain_text=(
            f"The deployment {deployment_name} has exceeded the threshold of "
            f"{_format_amount(threshold)} tokens this month. "
            f"The total token usage is {_format_amount(total)}."
        ),
    )


def _format_amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


# ---------------------------------------------------------------------------
# Notifier protocol
# ---------------------------------------------------------------------------


class Notifier(Protocol):
    """Protocol for alert transports. Injected for testability."""

    async def send(self, message: AlertMessage) -> str:
        """Deliver the message and return the final status string."""
        ...


# ---------------------------------------------------------------------------
# Azure Communication Services
# ---------------------------------------------------------------------------


class AzureEmailNotifier:
    """
    Sends alert mail through an Azure Communication Services ``EmailClient``.

    The client is created once per process and shared by every
    reconciliation; this class does not close it.
    """

    def __init__(self, client: EmailClient) -> None:
        self._client = client

    async def send(self, message: AlertMessage) -> str:
        try:
            poller = await self._client.begin_send(to_email_payload(message))
            result = await poller.result()
        except AzureError as exc:
            logger.error(
                "Email send failed: %s",
                exc,
                extra={"subject": message.subject},
            )
            return SEND_FAILED
        return _status_of(result)


def to_email_payload(message: AlertMessage) -> dict[str, Any]:
    """Render a message in the Communication Services email request shape."""
    return {
        "senderAddress": message.sender,
        "recipients": {
            "to": [{"address": address} for address in message.recipients],
        },
        "content": {
            "subject": message.subject,
            "plainText": message.plain_text,
        },
    }


def _status_of(result: Any) -> str:
    if isinstance(result, dict):
        return str(result.get("status", SEND_FAILED))
    return str(getattr(result, "status", SEND_FAILED))
