"""
Process bootstrap.

Startup order:
1. Load settings
2. Load the backing file (a malformed file stops the process)
3. Wire the bot, the HTTP API and the backup loop
4. Serve with uvicorn, over HTTPS when certificates are available
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI

from expense_tracker.api import create_app
from expense_tracker.bot import BotCommandHandler, TelegramClient, TelegramUpdateDispatcher
from expense_tracker.config import Settings, get_settings
from expense_tracker.orchestrator import AppComponents, create_app_components
from expense_tracker.services.backup import BackupService
from expense_tracker.services.storage import FormatError, StorageError


logger = structlog.get_logger(__name__)


def build_dispatcher(components: AppComponents) -> TelegramUpdateDispatcher:
    """Command handler plus Telegram transport for the webhook."""
    telegram = components.settings.telegram
    client = TelegramClient(telegram.bot_token) if telegram.bot_token else None
    if client is None:
        logger.warning("telegram_disabled", reason="TELEGRAM_BOT_TOKEN is not set")

    handler = BotCommandHandler(
        expense_flow=components.expense_flow,
        report_flow=components.report_flow,
        budget=components.budget,
        audit_logger=components.audit_logger,
        mini_app_url=telegram.mini_app_url,
    )
    return TelegramUpdateDispatcher(handler, client)


def build_app(
    settings: Optional[Settings] = None,
    components: Optional[AppComponents] = None,
    backup_service: Optional[BackupService] = None,
) -> FastAPI:
    """
    Wire every component into the HTTP application.

    The backup loop runs for the lifetime of the application.

    Raises:
        FormatError: The backing file is malformed
        StorageError: The backing file could not be created or read
    """
    settings = settings or get_settings()
    components = components or create_app_components(settings)
    backup_service = backup_service or BackupService.from_settings(
        settings,
        audit_logger=components.audit_logger,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = asyncio.Event()
        backup_task = asyncio.create_task(backup_service.run_daily(stop_event))
        try:
            yield
        finally:
            stop_event.set()
            await backup_task

    return create_app(components, build_dispatcher(components), lifespan=lifespan)


def main() -> int:
    logging.basicConfig(format="%(message)s", level=logging.INFO)
    settings = get_settings()

    try:
        app = build_app(settings)
    except FormatError as e:
        logger.error(
            "data_file_invalid",
            path=str(settings.storage.resolved_data_path),
            line=e.line,
            error=str(e),
        )
        return 1
    except StorageError as e:
        logger.error("data_file_unavailable", error=str(e))
        return 1

    web = settings.web
    try:
        tls_paths = web.resolve_tls_paths()
    except FileNotFoundError as e:
        logger.error("tls_files_missing", error=str(e))
        return 1

    options = {}
    if tls_paths:
        cert_path, key_path = tls_paths
        options = {"ssl_certfile": str(cert_path), "ssl_keyfile": str(key_path)}
        logger.info("server_starting", scheme="https", address=web.web_address)
    else:
        logger.info("server_starting", scheme="http", address=web.web_address)

    uvicorn.run(app, host=web.host, port=web.port, **options)
    return 0
