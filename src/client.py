"""Telegram client factory for jobwire.

We explicitly manage the client's lifecycle through the connection
supervisor so it is obvious when the bot session is created and when it ends.
"""

from __future__ import annotations

import logging

from telethon import TelegramClient

from settings import Settings


def build_client(settings: Settings) -> TelegramClient:
    """Create a Telethon client for the bot account.

    The session name defaults to "jobwire" to create a local .session file.
    Only one process may use that session at a time.
    """

    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(settings.session_name, settings.api_id, settings.api_hash)
