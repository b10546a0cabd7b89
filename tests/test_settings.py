from __future__ import annotations

import json
from pathlib import Path

import pytest

import settings
from settings import ConfigurationError, load_settings

ENV = {"BOT_TOKEN": "123:abc", "API_ID": "4242", "API_HASH": "hash"}


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch) -> None:
    monkeypatch.setattr(settings, "load_dotenv", lambda: None)
    for name in ("CHANNEL_ID", "SESSION_NAME"):
        monkeypatch.delenv(name, raising=False)
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)


def _write_config(tmp_path: Path, payload: dict) -> str:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_loads_defaults_and_sources(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        {
            "channel_id": "@jobs",
            "sources": [
                {"name": "Infopark", "url": "https://a"},
                {"name": "Infosys", "url": "https://b", "enabled": False},
            ],
        },
    )

    loaded = load_settings(path)

    assert loaded.api_id == 4242
    assert loaded.channel_id == "@jobs"
    assert loaded.schedule.cron == "*/20 * * * *"
    assert loaded.schedule.run_on_startup is False
    assert loaded.fetch.retries == 2
    assert loaded.supervisor.backoff_cap_seconds == 60
    assert loaded.notification_method == "client"
    assert [source.enabled for source in loaded.sources] == [True, False]


def test_missing_bot_token_is_fatal(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("BOT_TOKEN")
    path = _write_config(tmp_path, {"channel_id": "@jobs"})
    with pytest.raises(ConfigurationError, match="BOT_TOKEN"):
        load_settings(path)


def test_missing_config_file_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Config file not found"):
        load_settings(str(tmp_path / "missing.json"))


def test_missing_channel_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="channel_id"):
        load_settings(_write_config(tmp_path, {}))


def test_invalid_notification_method(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"channel_id": "@jobs", "notifications": {"notification_method": "email"}})
    with pytest.raises(ConfigurationError, match="notification_method"):
        load_settings(path)


def test_invalid_backoff_bounds(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        {"channel_id": "@jobs", "supervisor": {"backoff_floor_seconds": 10, "backoff_cap_seconds": 5}},
    )
    with pytest.raises(ConfigurationError, match="backoff"):
        load_settings(path)


def test_branding_and_onboarding_sections(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        {
            "channel_id": "@jobs",
            "branding": {"group_url": "https://t.me/devs", "promo_text": "Hiring fair"},
            "onboarding": {"keywords": ["Go", "Rust"], "sample_size": 3},
        },
    )

    loaded = load_settings(path)

    assert loaded.branding.group_title == "Join our community"
    assert loaded.branding.group_url == "https://t.me/devs"
    assert loaded.branding.promo_button_text == "Learn more"
    assert loaded.onboarding.enabled is True
    assert loaded.onboarding.keywords == ("Go", "Rust")
    assert loaded.onboarding.sample_size == 3


def test_onboarding_keywords_must_be_strings(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"channel_id": "@jobs", "onboarding": {"keywords": "react"}})
    with pytest.raises(ConfigurationError, match="onboarding.keywords"):
        load_settings(path)
