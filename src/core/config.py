"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class FetchConfig:
    """Retry and timeout settings shared by every source adapter."""

    retries: int
    retry_delay_seconds: float
    timeout_seconds: float
    max_pages: int


@dataclass(frozen=True)
class SourceConfig:
    """A single configured job source."""

    name: str
    url: str
    enabled: bool = True
    items_key: Optional[str] = None


@dataclass(frozen=True)
class ScheduleConfig:
    """When ingestion runs are triggered."""

    cron: str
    enabled: bool
    run_on_startup: bool
    timezone: str


@dataclass(frozen=True)
class SupervisorConfig:
    """Backoff settings for the connection supervisor (seconds)."""

    backoff_floor_seconds: float
    backoff_cap_seconds: float
    jitter_seconds: float


@dataclass(frozen=True)
class IntentConfig:
    """Lifetime of pending multi-turn command intents."""

    ttl_seconds: float


@dataclass(frozen=True)
class BrandingConfig:
    """Optional community and promotion links appended to job posts."""

    group_title: str = "Join our community"
    group_url: str = ""
    promo_text: str = ""
    promo_url: str = ""
    promo_button_text: str = "Learn more"


@dataclass(frozen=True)
class OnboardingConfig:
    """Keyword picker offered to new group members."""

    enabled: bool = True
    keywords: Tuple[str, ...] = ("React", "Node", "Python", "Java", "Flutter", "QA")
    sample_size: int = 5
