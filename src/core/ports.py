"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for sources, storage, delivery, and the
long-lived bot connection so that the core can be reused with different
backends. Storage ports only expose atomic conditional writes; callers never
check for existence before writing.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Protocol

from core.models import ClaimResult, JobCandidate, StoredJob, Subscription


class SourcePort(Protocol):
    """A job listing source. Whole-source failure is its only failure mode."""

    name: str

    async def fetch(self) -> List[JobCandidate]:
        ...


class DeliveryPort(Protocol):
    """Delivers a single job to a chat, channel, or user."""

    async def deliver(self, recipient: int | str, job: JobCandidate) -> None:
        ...


class SeenLedgerPort(Protocol):
    """Global "already posted" ledger keyed by job link."""

    def claim_job(self, job: JobCandidate) -> ClaimResult:
        ...

    def find_recent_jobs(self, keywords: Iterable[str], limit: int) -> List[StoredJob]:
        ...


class NotificationLedgerPort(Protocol):
    """Per-subscriber "already notified" ledger keyed by (owner_id, link)."""

    def claim_notification(self, owner_id: int, job: JobCandidate) -> ClaimResult:
        ...


class SubscriptionDirectoryPort(Protocol):
    """Keyword subscriptions keyed by owner."""

    def iter_subscriptions(self) -> Iterator[Subscription]:
        ...

    def list_keywords(self, owner_id: int) -> List[str]:
        ...

    def add_keyword(self, owner_id: int, keyword: str) -> List[str]:
        ...

    def remove_keyword(self, owner_id: int, keyword: str) -> List[str]:
        ...


class ConnectionPort(Protocol):
    """The exclusive long-lived bot connection managed by the supervisor."""

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def clear_conflicting_config(self) -> None:
        ...

    def is_conflict(self, error: BaseException) -> bool:
        ...
