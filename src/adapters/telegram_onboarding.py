"""Group onboarding: welcome new members and let them pick keywords.

New human members get a welcome with a Start button bound to their user id.
Start swaps the message for a keyword keyboard whose buttons toggle
subscriptions in place; Done lists the keywords and a few recent matching
jobs. ``OnboardingService`` builds texts and keyboards as plain data;
``register_onboarding_handlers`` renders them with Telethon.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from telethon import Button, events

from adapters.notification_formatting import escape_attr, format_job_list, format_keywords, format_mention
from core.matching import normalize_keyword
from core.ports import SeenLedgerPort, SubscriptionDirectoryPort
from core.search import recent_jobs

LOGGER = logging.getLogger(__name__)

CALLBACK_PREFIX = "ob:"
START_PREFIX = "ob:start:"
TOGGLE_PREFIX = "ob:toggle:"
DONE = "ob:done"
LIST = "ob:list"

# (button text, callback data) pairs, laid out in rows.
Keyboard = List[List[Tuple[str, str]]]


@dataclass
class CallbackOutcome:
    """What to do in response to one button press."""

    notice: Optional[str] = None
    edit_text: Optional[str] = None
    keyboard: Optional[Keyboard] = None
    messages: List[str] = field(default_factory=list)


class OnboardingService:
    def __init__(
        self,
        directory: SubscriptionDirectoryPort,
        ledger: SeenLedgerPort,
        keywords: Sequence[str],
        bot_username: Optional[str] = None,
        sample_size: int = 5,
    ) -> None:
        self._directory = directory
        self._ledger = ledger
        self._choices = [(label, normalize_keyword(label)) for label in keywords if normalize_keyword(label)]
        self._bot_username = bot_username
        self._sample_size = sample_size

    def _dm_hint(self, link_text: str) -> str:
        if self._bot_username:
            deep_link = f"https://t.me/{self._bot_username}?start=onboard"
            return (
                "To receive <b>DM alerts</b>, open the bot in private and press Start once:\n"
                f"<a href=\"{escape_attr(deep_link)}\">{link_text}</a>"
            )
        return "To receive <b>DM alerts</b>, open the bot in private chat and press Start once."

    def welcome(self, user_id: int, name: str) -> Tuple[str, Keyboard]:
        text = (
            f"<b>Welcome {format_mention(user_id, name)}!</b>\n\n"
            "Click <b>Start</b> below (or type /start) to set up your job alerts.\n\n"
            + self._dm_hint("Start bot")
        )
        return text, [[("Start", f"{START_PREFIX}{user_id}")]]

    def picker(self, user_id: int, name: str) -> Tuple[str, Keyboard]:
        text = (
            f"<b>Welcome {format_mention(user_id, name)}!</b>\n\n"
            "Select the keywords you want job alerts for.\n"
            "You will only receive alerts for selected keywords.\n\n"
            + self._dm_hint("Start onboarding")
            + "\n\nPick keywords:"
        )
        return text, self.keyboard(user_id)

    def keyboard(self, user_id: int) -> Keyboard:
        selected = set(self._directory.list_keywords(user_id))
        buttons = [
            (f"✅ {label}" if value in selected else label, f"{TOGGLE_PREFIX}{value}")
            for label, value in self._choices
        ]
        rows: Keyboard = [buttons[i : i + 2] for i in range(0, len(buttons), 2)]
        rows.append([("Done", DONE), ("My subscriptions", LIST)])
        return rows

    def subscriptions_text(self, user_id: int) -> str:
        keywords = self._directory.list_keywords(user_id)
        if not keywords:
            return "You have no subscriptions yet."
        return "<b>Your subscriptions</b>\n" + format_keywords(keywords)

    def sample_jobs_text(self, user_id: int) -> Optional[str]:
        keywords = self._directory.list_keywords(user_id)
        if not keywords:
            return None
        jobs = recent_jobs(self._ledger, keywords, self._sample_size)
        if not jobs:
            return "No recent matching jobs found yet (try again later)."
        return format_job_list("Recent matching jobs", jobs)

    def handle_callback(self, user_id: int, name: str, data: str) -> CallbackOutcome:
        if data.startswith(START_PREFIX):
            expected = data[len(START_PREFIX) :].strip()
            if expected != str(user_id):
                return CallbackOutcome(notice="This button is not for you.")
            text, keyboard = self.picker(user_id, name)
            return CallbackOutcome(edit_text=text, keyboard=keyboard)

        if data.startswith(TOGGLE_PREFIX):
            keyword = normalize_keyword(data[len(TOGGLE_PREFIX) :])
            if keyword in self._directory.list_keywords(user_id):
                self._directory.remove_keyword(user_id, keyword)
            else:
                self._directory.add_keyword(user_id, keyword)
            text, keyboard = self.picker(user_id, name)
            return CallbackOutcome(edit_text=text, keyboard=keyboard)

        if data == DONE:
            messages = [self.subscriptions_text(user_id)]
            sample = self.sample_jobs_text(user_id)
            if sample:
                messages.append(sample)
            return CallbackOutcome(messages=messages)

        if data == LIST:
            return CallbackOutcome(messages=[self.subscriptions_text(user_id)])

        return CallbackOutcome()


def _buttons(keyboard: Keyboard):
    return [[Button.inline(text, data=data.encode("utf-8")) for text, data in row] for row in keyboard]


def _display_name(user) -> str:
    return getattr(user, "first_name", None) or getattr(user, "username", None) or "there"


def register_onboarding_handlers(client, service: OnboardingService) -> None:
    """Welcome joining members and serve the keyword keyboard callbacks."""

    async def on_join(event) -> None:
        if not (event.user_joined or event.user_added):
            return
        try:
            for user in await event.get_users():
                if getattr(user, "bot", False):
                    continue
                text, keyboard = service.welcome(user.id, _display_name(user))
                await event.respond(text, parse_mode="html", link_preview=False, buttons=_buttons(keyboard))
        except Exception:
            LOGGER.exception("Error while welcoming new members")

    async def on_callback(event) -> None:
        data = event.data.decode("utf-8", errors="replace")
        try:
            sender = await event.get_sender()
            outcome = service.handle_callback(event.sender_id, _display_name(sender), data)
        except Exception as exc:
            LOGGER.exception("Onboarding callback %r failed", data)
            await event.answer(str(exc)[:200])
            return

        await event.answer(outcome.notice)
        try:
            if outcome.edit_text is not None:
                await event.edit(
                    outcome.edit_text,
                    parse_mode="html",
                    link_preview=False,
                    buttons=_buttons(outcome.keyboard or []),
                )
            for message in outcome.messages:
                await event.respond(message, parse_mode="html", link_preview=False)
        except Exception:
            LOGGER.exception("Could not send onboarding reply for %r", data)

    client.add_event_handler(on_join, events.ChatAction())
    client.add_event_handler(on_callback, events.CallbackQuery(data=lambda data: data.startswith(CALLBACK_PREFIX.encode())))
