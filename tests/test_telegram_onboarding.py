from __future__ import annotations

from pathlib import Path

import pytest

from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_onboarding import DONE, LIST, OnboardingService
from core.models import JobCandidate

KEYWORDS = ("React", "Node", "Python", "Java", "Flutter", "QA")


@pytest.fixture()
def storage(tmp_path: Path) -> SQLiteStorage:
    store = SQLiteStorage(str(tmp_path / "jobwire.db"))
    store.init_db()
    return store


def _service(storage: SQLiteStorage, bot_username: str | None = "jobwire_bot") -> OnboardingService:
    return OnboardingService(directory=storage, ledger=storage, keywords=KEYWORDS, bot_username=bot_username)


def _labels(keyboard) -> list[str]:
    return [text for row in keyboard for text, _ in row]


def test_welcome_binds_start_button_to_member(storage: SQLiteStorage) -> None:
    text, keyboard = _service(storage).welcome(42, "Ann <3")

    assert "tg://user?id=42" in text
    assert "Ann &lt;3" in text
    assert "https://t.me/jobwire_bot?start=onboard" in text
    assert keyboard == [[("Start", "ob:start:42")]]


def test_welcome_without_username_has_no_deep_link(storage: SQLiteStorage) -> None:
    text, _ = _service(storage, bot_username=None).welcome(42, "Ann")
    assert "t.me" not in text


def test_start_button_pressed_by_someone_else(storage: SQLiteStorage) -> None:
    outcome = _service(storage).handle_callback(7, "Bob", "ob:start:42")

    assert outcome.notice == "This button is not for you."
    assert outcome.edit_text is None


def test_start_shows_keyword_keyboard(storage: SQLiteStorage) -> None:
    outcome = _service(storage).handle_callback(42, "Ann", "ob:start:42")

    assert "Pick keywords:" in outcome.edit_text
    assert outcome.keyboard[:3] == [
        [("React", "ob:toggle:react"), ("Node", "ob:toggle:node")],
        [("Python", "ob:toggle:python"), ("Java", "ob:toggle:java")],
        [("Flutter", "ob:toggle:flutter"), ("QA", "ob:toggle:qa")],
    ]
    assert outcome.keyboard[-1] == [("Done", DONE), ("My subscriptions", LIST)]


def test_toggle_adds_then_removes_keyword(storage: SQLiteStorage) -> None:
    service = _service(storage)

    outcome = service.handle_callback(42, "Ann", "ob:toggle:python")
    assert storage.list_keywords(42) == ["python"]
    assert "✅ Python" in _labels(outcome.keyboard)

    outcome = service.handle_callback(42, "Ann", "ob:toggle:python")
    assert storage.list_keywords(42) == []
    assert "Python" in _labels(outcome.keyboard)


def test_toggle_keeps_keywords_added_by_command(storage: SQLiteStorage) -> None:
    storage.add_keyword(42, "golang")
    _service(storage).handle_callback(42, "Ann", "ob:toggle:qa")
    assert storage.list_keywords(42) == ["golang", "qa"]


def test_done_lists_keywords_and_recent_jobs(storage: SQLiteStorage) -> None:
    for i in range(7):
        storage.claim_job(JobCandidate(title=f"Flutter Dev {i}", company="Acme", source="Infopark", link=f"https://x/{i}"))
    service = _service(storage)
    service.handle_callback(42, "Ann", "ob:toggle:flutter")

    outcome = service.handle_callback(42, "Ann", DONE)

    assert outcome.messages[0] == "<b>Your subscriptions</b>\n- flutter"
    assert "Recent matching jobs" in outcome.messages[1]
    # Five samples, newest first.
    assert "Flutter Dev 6" in outcome.messages[1]
    assert "Flutter Dev 2" in outcome.messages[1]
    assert "Flutter Dev 1" not in outcome.messages[1]


def test_done_without_matches_says_so(storage: SQLiteStorage) -> None:
    service = _service(storage)
    service.handle_callback(42, "Ann", "ob:toggle:java")

    outcome = service.handle_callback(42, "Ann", DONE)

    assert outcome.messages[1] == "No recent matching jobs found yet (try again later)."


def test_done_and_list_without_keywords(storage: SQLiteStorage) -> None:
    service = _service(storage)
    assert service.handle_callback(42, "Ann", DONE).messages == ["You have no subscriptions yet."]
    assert service.handle_callback(42, "Ann", LIST).messages == ["You have no subscriptions yet."]


def test_unknown_callback_does_nothing(storage: SQLiteStorage) -> None:
    outcome = _service(storage).handle_callback(42, "Ann", "ob:bogus")
    assert (outcome.notice, outcome.edit_text, outcome.messages) == (None, None, [])
