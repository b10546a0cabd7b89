"""Telegram Bot API adapter.

Uses the HTTP Bot API for delivery and for clearing a webhook that would
otherwise conflict with update polling.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from typing import Any, Optional

from adapters.notification_formatting import format_job_message, job_button_rows
from core.config import BrandingConfig
from core.models import JobCandidate


class BotApiError(RuntimeError):
    """A non-OK response from the Bot API."""

    def __init__(self, code: int, description: str) -> None:
        super().__init__(f"Bot API error {code}: {description}")
        self.code = code
        self.description = description


class BotApiClient:
    """Minimal blocking Bot API client; calls run in a worker thread."""

    def __init__(self, bot_token: str, timeout: float = 10) -> None:
        self._bot_token = bot_token
        self._timeout = timeout

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/{method}"

    def _call(self, method: str, payload: Optional[dict] = None) -> Any:
        data = json.dumps(payload or {}).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            raw = e.read().decode("utf-8", errors="replace")
            try:
                description = json.loads(raw).get("description", raw)
            except ValueError:
                description = raw
            raise BotApiError(e.code, description) from e

        if not body.get("ok", False):
            raise BotApiError(int(body.get("error_code", 0)), str(body.get("description", "")))
        return body.get("result")

    async def call(self, method: str, payload: Optional[dict] = None) -> Any:
        return await asyncio.to_thread(self._call, method, payload)

    async def delete_webhook(self) -> None:
        await self.call("deleteWebhook", {"drop_pending_updates": False})


class TelegramBotNotifier:
    """Delivery adapter that sends job posts via the Telegram Bot API."""

    def __init__(self, api: BotApiClient, branding: Optional[BrandingConfig] = None) -> None:
        self._api = api
        self._branding = branding

    async def deliver(self, recipient: int | str, job: JobCandidate) -> None:
        """Send the formatted job with an Apply button and optional link rows."""

        keyboard = [
            [{"text": text, "url": url} for text, url in row]
            for row in job_button_rows(job, self._branding)
        ]
        payload = {
            "chat_id": recipient,
            "text": format_job_message(job, self._branding),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
            "reply_markup": {"inline_keyboard": keyboard},
        }
        await self._api.call("sendMessage", payload)
