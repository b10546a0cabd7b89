"""Telethon delivery adapter.

Sends job posts through the bot's own MTProto session, reusing the client
that serves interactive commands.
"""

from __future__ import annotations

from typing import Optional

from telethon import Button

from adapters.notification_formatting import format_job_message, job_button_rows
from core.config import BrandingConfig
from core.models import JobCandidate


def resolve_recipient(recipient: int | str) -> int | str:
    """Numeric chat ids arrive as strings from config; Telethon needs ints."""

    if isinstance(recipient, str) and recipient.lstrip("-").isdigit():
        return int(recipient)
    return recipient


class TelegramClientNotifier:
    """Delivery adapter that sends job posts with a Telethon bot client."""

    def __init__(self, client, branding: Optional[BrandingConfig] = None) -> None:
        self._client = client
        self._branding = branding

    async def deliver(self, recipient: int | str, job: JobCandidate) -> None:
        buttons = [[Button.url(text, url) for text, url in row] for row in job_button_rows(job, self._branding)]
        await self._client.send_message(
            resolve_recipient(recipient),
            format_job_message(job, self._branding),
            parse_mode="html",
            link_preview=False,
            buttons=buttons,
        )
