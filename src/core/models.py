"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Tuple


@dataclass(frozen=True)
class JobCandidate:
    """A single listing as returned by a source; ``link`` is its identity."""

    title: str
    company: str
    source: str
    link: str


@dataclass(frozen=True)
class StoredJob:
    """A job persisted by a successful global claim."""

    title: str
    company: str
    source: str
    link: str
    created_at: datetime

    def as_candidate(self) -> JobCandidate:
        return JobCandidate(title=self.title, company=self.company, source=self.source, link=self.link)


@dataclass(frozen=True)
class Subscription:
    """Keyword subscription owned by a single Telegram user."""

    owner_id: int
    keywords: Tuple[str, ...]
    created_at: datetime
    updated_at: datetime


class ClaimResult(Enum):
    """Outcome of an atomic conditional insert."""

    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


@dataclass
class SourceSummary:
    """Per-source counters for one ingestion run."""

    source: str
    posted: int = 0
    duplicate: int = 0
    failed_deliveries: int = 0
    fetch_failed: bool = False


@dataclass
class FanoutResult:
    """Counters for one fan-out pass over the subscription directory."""

    matched: int = 0
    delivered: int = 0
    already_notified: int = 0
    failed: int = 0
