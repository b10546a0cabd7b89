"""Telethon bot connection managed by the connection supervisor.

The connection is exclusive: one bot session may be held by one process. A
session used from two places at once is reported by Telegram as a duplicated
authorization key, and the Bot API answers 409 when a rival is polling.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from telethon import errors

from adapters.telegram_bot_notifier import BotApiClient, BotApiError

LOGGER = logging.getLogger(__name__)


def is_conflict_error(error: BaseException) -> bool:
    """Return True when ``error`` means another process holds the session."""

    if isinstance(error, errors.AuthKeyDuplicatedError):
        return True
    if isinstance(error, BotApiError):
        return error.code == 409
    code = getattr(error, "code", None) or getattr(error, "status_code", None)
    if code == 409:
        return True
    return "409" in str(error) and "conflict" in str(error).lower()


class TelethonBotConnection:
    """Starts and stops a Telethon bot session and reports disconnects.

    ``on_error`` is called with the transport error whenever the session drops
    without a local ``stop``; the supervisor decides whether to restart.
    """

    def __init__(self, client, bot_token: str, bot_api: Optional[BotApiClient] = None) -> None:
        self._client = client
        self._bot_token = bot_token
        self._bot_api = bot_api
        self._on_error: Optional[Callable[[BaseException], object]] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._stopping = False

    def set_error_handler(self, on_error: Callable[[BaseException], object]) -> None:
        self._on_error = on_error

    async def start(self) -> None:
        self._stopping = False
        await self._client.start(bot_token=self._bot_token)
        self._watch_task = asyncio.get_running_loop().create_task(self._watch())

    async def stop(self) -> None:
        self._stopping = True
        task = self._watch_task
        self._watch_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._client.disconnect()

    async def clear_conflicting_config(self) -> None:
        # A webhook set through the Bot API competes with polling for updates.
        if self._bot_api is not None:
            await self._bot_api.delete_webhook()

    def is_conflict(self, error: BaseException) -> bool:
        return is_conflict_error(error)

    async def _watch(self) -> None:
        try:
            await self._client.disconnected
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._stopping:
                self._report(exc)
            return
        if not self._stopping:
            self._report(ConnectionError("Telegram connection closed"))

    def _report(self, error: BaseException) -> None:
        if self._on_error is None:
            LOGGER.error("Connection lost with no handler: %s", error)
            return
        self._on_error(error)
