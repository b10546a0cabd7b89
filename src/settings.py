"""Configuration loading for jobwire.

All user-editable settings (sources, schedule, backoff, notifications) live
in a single JSON file for quick edits without touching Python. Secrets come
from the environment (optionally a .env file).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from core.config import (
    BrandingConfig,
    FetchConfig,
    IntentConfig,
    OnboardingConfig,
    ScheduleConfig,
    SourceConfig,
    SupervisorConfig,
)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where config.json is looked up unless a path is given.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

NOTIFICATION_METHODS = {"client", "bot_api"}


class ConfigurationError(RuntimeError):
    """A required setting is missing or invalid; the process must not start."""


@dataclass(frozen=True)
class Settings:
    bot_token: str
    api_id: int
    api_hash: str
    session_name: str
    channel_id: str
    db_path: str
    notification_method: str
    schedule: ScheduleConfig
    fetch: FetchConfig
    supervisor: SupervisorConfig
    intents: IntentConfig
    sources: list[SourceConfig] = field(default_factory=list)
    search_max_results: int = 10
    branding: BrandingConfig = field(default_factory=BrandingConfig)
    onboarding: OnboardingConfig = field(default_factory=OnboardingConfig)
    logging: dict = field(default_factory=dict)


def _load_json_config(path: str) -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise ConfigurationError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as handle:
        try:
            return json.load(handle)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigurationError(f"Missing env: {name}")
    return value


def _number(section: dict, key: str, default: float) -> float:
    raw = section.get(key, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid number for {key}: {raw!r}") from e


def _normalize_sources(raw_sources: list[dict]) -> list[SourceConfig]:
    """Keep configuration order; disabled sources stay listed but inactive."""

    sources: list[SourceConfig] = []
    for entry in raw_sources:
        name = entry.get("name")
        url = entry.get("url")
        if not name or not url:
            raise ConfigurationError("Every source needs a name and a url")
        sources.append(
            SourceConfig(
                name=name,
                url=url,
                enabled=bool(entry.get("enabled", True)),
                items_key=entry.get("items_key"),
            )
        )
    return sources


def _branding(section: dict) -> BrandingConfig:
    defaults = BrandingConfig()
    return BrandingConfig(
        group_title=str(section.get("group_title") or defaults.group_title),
        group_url=str(section.get("group_url") or ""),
        promo_text=str(section.get("promo_text") or ""),
        promo_url=str(section.get("promo_url") or ""),
        promo_button_text=str(section.get("promo_button_text") or defaults.promo_button_text),
    )


def _onboarding(section: dict) -> OnboardingConfig:
    defaults = OnboardingConfig()
    keywords = section.get("keywords", defaults.keywords)
    if not isinstance(keywords, (list, tuple)) or not all(isinstance(k, str) for k in keywords):
        raise ConfigurationError("onboarding.keywords must be a list of strings")
    return OnboardingConfig(
        enabled=bool(section.get("enabled", defaults.enabled)),
        keywords=tuple(keywords),
        sample_size=int(_number(section, "sample_size", defaults.sample_size)),
    )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Build validated settings from config.json and the environment."""

    load_dotenv()

    config = _load_json_config(config_path or CONFIG_PATH)

    bot_token = _require_env("BOT_TOKEN")
    api_id_raw = _require_env("API_ID")
    try:
        api_id = int(api_id_raw)
    except ValueError as e:
        raise ConfigurationError("API_ID must be an integer") from e
    api_hash = _require_env("API_HASH")

    channel_id = str(config.get("channel_id") or os.getenv("CHANNEL_ID") or "")
    if not channel_id:
        raise ConfigurationError("channel_id is required")

    database = config.get("database", {})
    db_path = database.get("path", "jobwire.db")
    if not os.path.isabs(db_path):
        db_path = os.path.join(PROJECT_ROOT, db_path)

    notifications = config.get("notifications", {})
    method = notifications.get("notification_method", "client")
    if method not in NOTIFICATION_METHODS:
        raise ConfigurationError("notification_method must be 'client' or 'bot_api'")

    schedule = config.get("schedule", {})
    fetch = config.get("fetch", {})
    supervisor = config.get("supervisor", {})
    intents = config.get("intents", {})
    search = config.get("search", {})

    floor = _number(supervisor, "backoff_floor_seconds", 1)
    cap = _number(supervisor, "backoff_cap_seconds", 60)
    if floor <= 0 or cap < floor:
        raise ConfigurationError("supervisor backoff requires 0 < floor <= cap")

    return Settings(
        bot_token=bot_token,
        api_id=api_id,
        api_hash=api_hash,
        session_name=os.getenv("SESSION_NAME", "jobwire"),
        channel_id=channel_id,
        db_path=db_path,
        notification_method=method,
        schedule=ScheduleConfig(
            cron=schedule.get("cron", "*/20 * * * *"),
            enabled=bool(schedule.get("enabled", True)),
            run_on_startup=bool(schedule.get("run_on_startup", False)),
            timezone=schedule.get("timezone", "UTC"),
        ),
        fetch=FetchConfig(
            retries=int(_number(fetch, "retries", 2)),
            retry_delay_seconds=_number(fetch, "retry_delay_seconds", 0.5),
            timeout_seconds=_number(fetch, "timeout_seconds", 15),
            max_pages=int(_number(fetch, "max_pages", 3)),
        ),
        supervisor=SupervisorConfig(
            backoff_floor_seconds=floor,
            backoff_cap_seconds=cap,
            jitter_seconds=_number(supervisor, "jitter_seconds", 0.5),
        ),
        intents=IntentConfig(ttl_seconds=_number(intents, "ttl_seconds", 300)),
        sources=_normalize_sources(config.get("sources", [])),
        search_max_results=int(_number(search, "max_results", 10)),
        branding=_branding(config.get("branding", {})),
        onboarding=_onboarding(config.get("onboarding", {})),
        logging=config.get("logging", {}),
    )
