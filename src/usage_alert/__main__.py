# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Command-line entry points.

    python -m usage_alert run-once        # one check, summary as JSON on stdout
    python -m usage_alert serve --port 7071
"""
from __future__ import annotations

import argparse
import asyncio
import sys

from usage_alert.clients import AzureClients
from usage_alert.config import UsageAlertSettings, configure_logging, get_settings
from usage_alert.errors import ConfigurationError, SourceUnavailableError
from usage_alert.types import InvocationSummary


async def _run_once(settings: UsageAlertSettings) -> InvocationSummary:
    clients = AzureClients.from_settings(settings)
    try:
        return await clients.build_monitor().run()
    finally:
        await clients.close()


def run_once(settings: UsageAlertSettings) -> int:
    try:
        summary = asyncio.run(_run_once(settings))
    except ConfigurationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 2
    except SourceUnavailableError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    print(summary.model_dump_json(indent=2))
    return 0


def serve(settings: UsageAlertSettings, host: str, port: int) -> int:
    import uvicorn

    from usage_alert.app import create_app

    uvicorn.run(create_app(settings=settings), host=host, port=port, log_config=None)
    return 0


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usage_alert",
        description="Monthly per-deployment token usage check with one-time email alerts.",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("run-once", help="Run a single check and exit.")
    serve_parser = subcommands.add_parser("serve", help="Serve the HTTP trigger.")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address.")
    serve_parser.add_argument("--port", type=int, default=7071, help="Bind port.")
    return parser


def main(argv: list[str] | None = None) -> int:
    arguments = _build_argument_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    if arguments.command == "serve":
        return serve(settings, arguments.host, arguments.port)
    return run_once(settings)


if __name__ == "__main__":
    sys.exit(main())
