"""Application entry point for the jobwire alert bot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from art import tprint

import settings as settings_module
from adapters.json_feed_source import build_sources
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_notifier import BotApiClient, TelegramBotNotifier
from adapters.telegram_commands import CommandService, register_command_handlers
from adapters.telegram_connection import TelethonBotConnection
from adapters.telegram_notifier import TelegramClientNotifier
from adapters.telegram_onboarding import OnboardingService, register_onboarding_handlers
from client import build_client
from core.fanout import NotificationFanout
from core.intents import PendingIntentStore
from core.orchestrator import IngestionOrchestrator
from core.supervisor import ConnectionSupervisor
from settings import Settings

NAME = "JOBWIRE"
FONT = "tarty-1"

# Environment variables masked in log output unless overridden in config.
DEFAULT_REDACT = ["BOT_TOKEN", "API_HASH"]


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", DEFAULT_REDACT):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/jobwire.log")
        if not os.path.isabs(path):
            path = os.path.join(settings_module.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO about reconnects that the supervisor reports anyway.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _build_storage(settings: Settings) -> SQLiteStorage:
    storage = SQLiteStorage(settings.db_path)
    storage.init_db()
    return storage


def _build_delivery(settings: Settings, client, bot_api: BotApiClient):
    # Select the delivery adapter based on configuration to keep the core
    # orchestrator independent from delivery details.
    if settings.notification_method == "bot_api":
        return TelegramBotNotifier(bot_api, branding=settings.branding)
    return TelegramClientNotifier(client, branding=settings.branding)


def _build_orchestrator(settings: Settings, storage: SQLiteStorage, delivery, sources) -> IngestionOrchestrator:
    fanout = NotificationFanout(directory=storage, ledger=storage, delivery=delivery)
    return IngestionOrchestrator(
        sources=sources,
        ledger=storage,
        delivery=delivery,
        fanout=fanout,
        channel_id=settings.channel_id,
    )


async def _run_ingestion(orchestrator: IngestionOrchestrator, trigger: str) -> None:
    logger = logging.getLogger(__name__)
    logger.info("Ingestion run started (%s)", trigger)
    try:
        summaries = await orchestrator.run()
    except Exception:
        logger.exception("Ingestion run crashed (%s)", trigger)
        return
    posted = sum(summary.posted for summary in summaries)
    duplicates = sum(summary.duplicate for summary in summaries)
    failed = [summary.source for summary in summaries if summary.fetch_failed]
    logger.info(
        "Ingestion run finished (%s): posted=%s duplicates=%s failed_sources=%s",
        trigger,
        posted,
        duplicates,
        failed or "none",
    )


def _build_scheduler(settings: Settings, orchestrator: IngestionOrchestrator) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=settings.schedule.timezone)
    scheduler.add_job(
        _run_ingestion,
        trigger=CronTrigger.from_crontab(settings.schedule.cron, timezone=settings.schedule.timezone),
        args=[orchestrator, "schedule"],
        id="ingestion",
        name="Job ingestion",
        replace_existing=True,
    )
    return scheduler


async def _serve(settings: Settings) -> None:
    logger = logging.getLogger(__name__)

    storage = _build_storage(settings)
    sources = build_sources(settings.sources, settings.fetch)
    logger.info("%s sources are enabled", len(sources))

    client = build_client(settings)
    bot_api = BotApiClient(settings.bot_token, timeout=settings.fetch.timeout_seconds)
    delivery = _build_delivery(settings, client, bot_api)
    logger.info("Selected notification method - %s", settings.notification_method)
    orchestrator = _build_orchestrator(settings, storage, delivery, sources)

    connection = TelethonBotConnection(client, settings.bot_token, bot_api=bot_api)
    supervisor = ConnectionSupervisor(connection, settings.supervisor)
    connection.set_error_handler(supervisor.report_error)
    await supervisor.start()

    # Handlers need the bot's username to recognise /command@botname.
    me = await client.get_me()
    bot_username = getattr(me, "username", None)

    intents = PendingIntentStore(settings.intents.ttl_seconds)
    commands = CommandService(
        directory=storage,
        intents=intents,
        sources=sources,
        ledger=storage,
        max_results=settings.search_max_results,
        bot_username=bot_username,
    )
    register_command_handlers(client, commands)
    if settings.onboarding.enabled:
        onboarding = OnboardingService(
            directory=storage,
            ledger=storage,
            keywords=settings.onboarding.keywords,
            bot_username=bot_username,
            sample_size=settings.onboarding.sample_size,
        )
        register_onboarding_handlers(client, onboarding)
    logger.info("Bot connected as @%s. Listening for commands...", bot_username)

    scheduler: Optional[AsyncIOScheduler] = None
    if settings.schedule.enabled:
        scheduler = _build_scheduler(settings, orchestrator)
        scheduler.start()
        logger.info("Ingestion scheduled with cron '%s'", settings.schedule.cron)

    # The startup run may overlap a scheduled run; the seen ledger's atomic
    # claim keeps that safe.
    startup_task: Optional[asyncio.Task] = None
    if settings.schedule.run_on_startup:
        startup_task = asyncio.get_running_loop().create_task(_run_ingestion(orchestrator, "startup"))

    try:
        await asyncio.Event().wait()
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        await _cancel(startup_task)
        await supervisor.stop()
        logger.info("Shutdown complete")


async def _cancel(task: Optional[asyncio.Task]) -> None:
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def _run_once(settings: Settings) -> None:
    storage = _build_storage(settings)
    sources = build_sources(settings.sources, settings.fetch)
    client = build_client(settings)
    bot_api = BotApiClient(settings.bot_token, timeout=settings.fetch.timeout_seconds)
    delivery = _build_delivery(settings, client, bot_api)
    orchestrator = _build_orchestrator(settings, storage, delivery, sources)

    await client.start(bot_token=settings.bot_token)
    try:
        await _run_ingestion(orchestrator, "manual")
    finally:
        await client.disconnect()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="jobwire")
    parser.add_argument("--config", help="Path to config.json")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot and the ingestion schedule")
    subparsers.add_parser("run-once", help="Run a single ingestion pass and exit")

    args = parser.parse_args(argv)

    _print_banner()
    # ConfigurationError is fatal: the process does not start without settings.
    settings = settings_module.load_settings(args.config)
    _configure_logging(settings.logging)
    logging.getLogger(__name__).info("Starting jobwire")

    if args.command == "run-once":
        asyncio.run(_run_once(settings))
        return
    try:
        asyncio.run(_serve(settings))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Interrupted")


if __name__ == "__main__":
    main()
