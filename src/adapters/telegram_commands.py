"""Interactive bot commands.

``CommandService`` turns one incoming message into an HTML reply and has no
Telethon dependency; ``register_command_handlers`` wires it to a client.
Commands that need an argument can be sent bare, in which case a pending
intent is stored and the user's next plain message in the same chat supplies
the argument.
"""

from __future__ import annotations

import html
import logging
from typing import Iterable, Optional

from telethon import events

from adapters.notification_formatting import format_job_list, format_keywords
from core.intents import PendingIntentStore
from core.ports import SeenLedgerPort, SourcePort, SubscriptionDirectoryPort
from core.search import recent_jobs, search_jobs

LOGGER = logging.getLogger(__name__)

USAGE = (
    "<b>Commands</b>\n"
    "/search &lt;keyword&gt;\n"
    "/subscribe &lt;keyword&gt;\n"
    "/unsubscribe &lt;keyword&gt;\n"
    "/subscriptions\n"
    "/recent\n"
    "/cancel\n"
)

# Commands that accept a keyword argument, and the prompt shown when it is missing.
_PROMPTS = {
    "subscribe": "Send the keyword you want alerts for.",
    "unsubscribe": "Send the keyword you want to remove.",
    "search": "Send the keyword to search for.",
}


class CommandService:
    """Handles slash commands and continues pending multi-turn commands."""

    def __init__(
        self,
        directory: SubscriptionDirectoryPort,
        intents: PendingIntentStore,
        sources: Iterable[SourcePort],
        ledger: SeenLedgerPort,
        max_results: int = 10,
        bot_username: Optional[str] = None,
    ) -> None:
        self._directory = directory
        self._intents = intents
        self._sources = list(sources)
        self._ledger = ledger
        self._max_results = max_results
        self._bot_username = (bot_username or "").lower()

    async def handle(self, user_id: int, chat_id: int, text: Optional[str]) -> Optional[str]:
        """Return the reply for a message, or ``None`` when nothing should be sent."""

        text = (text or "").strip()
        if not text:
            return None

        try:
            if not text.startswith("/"):
                return await self._continue_intent(user_id, chat_id, text)
            return await self._handle_command(user_id, chat_id, text)
        except Exception as exc:
            LOGGER.exception("Command failed for user %s", user_id)
            return f"Error: {html.escape(str(exc))}"

    async def _continue_intent(self, user_id: int, chat_id: int, text: str) -> Optional[str]:
        intent = self._intents.get_for_chat(user_id, chat_id)
        if intent is None:
            return None
        self._intents.clear(user_id)
        return await self._run_action(intent.action, user_id, text)

    async def _handle_command(self, user_id: int, chat_id: int, text: str) -> Optional[str]:
        head, _, rest = text.partition(" ")
        # Group chats address commands as /subscribe@botname.
        command, _, addressee = head.lower().partition("@")
        if addressee and self._bot_username and addressee != self._bot_username:
            return None
        arg = rest.strip()

        if command == "/cancel":
            had_intent = self._intents.get(user_id) is not None
            self._intents.clear(user_id)
            return "Cancelled." if had_intent else "Nothing to cancel."

        # Any new command supersedes an unfinished one.
        self._intents.clear(user_id)

        if command in {"/start", "/help"}:
            return USAGE
        if command == "/subscriptions":
            return self._list_subscriptions(user_id)
        if command == "/recent":
            return self._recent(user_id)

        action = command.lstrip("/")
        if action in _PROMPTS:
            if not arg:
                self._intents.set(user_id, chat_id, action)
                return _PROMPTS[action]
            return await self._run_action(action, user_id, arg)

        return USAGE

    async def _run_action(self, action: str, user_id: int, arg: str) -> str:
        if action == "subscribe":
            keywords = self._directory.add_keyword(user_id, arg)
            return "Saved. Current subscriptions:\n" + format_keywords(keywords)
        if action == "unsubscribe":
            keywords = self._directory.remove_keyword(user_id, arg)
            if not keywords:
                return "Removed. You have no subscriptions."
            return "Removed. Current subscriptions:\n" + format_keywords(keywords)
        if action == "search":
            return await self._search(arg)
        raise ValueError(f"Unsupported action: {action}")

    def _list_subscriptions(self, user_id: int) -> str:
        keywords = self._directory.list_keywords(user_id)
        if not keywords:
            return "No subscriptions yet. Use /subscribe &lt;keyword&gt;"
        return "<b>Your subscriptions</b>\n" + format_keywords(keywords)

    def _recent(self, user_id: int) -> str:
        keywords = self._directory.list_keywords(user_id)
        if not keywords:
            return "No subscriptions yet. Use /subscribe &lt;keyword&gt;"
        jobs = recent_jobs(self._ledger, keywords, self._max_results)
        if not jobs:
            return "No recent matching jobs found yet (try again later)."
        return format_job_list("Recent matching jobs", jobs)

    async def _search(self, keyword: str) -> str:
        results = await search_jobs(self._sources, keyword, self._max_results)
        if not results:
            return "No matching jobs found."
        return format_job_list(f"Results for {keyword}", results)


def register_command_handlers(client, service: CommandService) -> None:
    """Route incoming private and group messages to the command service."""

    async def handler(event) -> None:
        try:
            sender_id = event.sender_id
            if sender_id is None:
                return
            reply = await service.handle(sender_id, event.chat_id, event.raw_text)
            if reply:
                await event.respond(reply, parse_mode="html", link_preview=False)
        except Exception:
            LOGGER.exception("Error while handling command")

    client.add_event_handler(handler, events.NewMessage(incoming=True))
