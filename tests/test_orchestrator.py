from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path

import pytest

from adapters.sqlite_storage import SQLiteStorage
from core.fanout import NotificationFanout
from core.models import JobCandidate
from core.orchestrator import IngestionOrchestrator

CHANNEL = "@jobs"


class FakeSource:
    def __init__(self, name: str, jobs: list[JobCandidate] | None = None, error: Exception | None = None) -> None:
        self.name = name
        self._jobs = jobs or []
        self._error = error
        self.calls = 0

    async def fetch(self) -> list[JobCandidate]:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return list(self._jobs)


class FakeDelivery:
    def __init__(self, failing_recipients: set | None = None) -> None:
        self.failing = failing_recipients or set()
        self.sent: list[tuple[object, str]] = []

    async def deliver(self, recipient, job: JobCandidate) -> None:
        if recipient in self.failing:
            raise RuntimeError("send failed")
        self.sent.append((recipient, job.link))

    def to(self, recipient) -> list[str]:
        return [link for target, link in self.sent if target == recipient]


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "jobwire.db")


@pytest.fixture()
def storage(db_path: str) -> SQLiteStorage:
    store = SQLiteStorage(db_path)
    store.init_db()
    return store


def _count(db_path: str, sql: str, params: tuple) -> int:
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute(sql, params).fetchone()[0]
    finally:
        conn.close()


def _job(link: str, title: str = "React Developer", source: str = "Infopark") -> JobCandidate:
    return JobCandidate(title=title, company="Acme", source=source, link=link)


def _orchestrator(sources, storage: SQLiteStorage, delivery: FakeDelivery) -> IngestionOrchestrator:
    fanout = NotificationFanout(directory=storage, ledger=storage, delivery=delivery)
    return IngestionOrchestrator(sources, storage, delivery, fanout, CHANNEL)


def test_same_link_from_two_sources_is_posted_once(storage: SQLiteStorage, db_path: str) -> None:
    storage.add_keyword(42, "react")
    delivery = FakeDelivery()
    sources = [
        FakeSource("Infopark", [_job("https://x/1")]),
        FakeSource("Technopark", [_job("https://x/1", source="Technopark")]),
    ]

    summaries = asyncio.run(_orchestrator(sources, storage, delivery).run())

    assert _count(db_path, "SELECT COUNT(*) FROM jobs WHERE link = ?", ("https://x/1",)) == 1
    assert delivery.to(CHANNEL) == ["https://x/1"]
    assert delivery.to(42) == ["https://x/1"]
    assert (summaries[0].posted, summaries[0].duplicate) == (1, 0)
    assert (summaries[1].posted, summaries[1].duplicate) == (0, 1)


def test_second_run_only_counts_duplicates(storage: SQLiteStorage) -> None:
    storage.add_keyword(42, "react")
    delivery = FakeDelivery()
    source = FakeSource("Infopark", [_job("https://x/1"), _job("https://x/2")])
    orchestrator = _orchestrator([source], storage, delivery)

    asyncio.run(orchestrator.run())
    summaries = asyncio.run(orchestrator.run())

    assert summaries[0].posted == 0
    assert summaries[0].duplicate == 2
    assert delivery.to(CHANNEL) == ["https://x/1", "https://x/2"]
    assert delivery.to(42) == ["https://x/1", "https://x/2"]


def test_overlapping_runs_post_each_link_once(storage: SQLiteStorage) -> None:
    delivery = FakeDelivery()
    source = FakeSource("Infopark", [_job(f"https://x/{i}") for i in range(5)])
    orchestrator = _orchestrator([source], storage, delivery)

    async def scenario():
        return await asyncio.gather(orchestrator.run(), orchestrator.run())

    first, second = asyncio.run(scenario())

    assert first[0].posted + second[0].posted == 5
    assert first[0].duplicate + second[0].duplicate == 5
    assert sorted(delivery.to(CHANNEL)) == sorted(f"https://x/{i}" for i in range(5))


def test_failing_source_does_not_abort_run(storage: SQLiteStorage) -> None:
    delivery = FakeDelivery()
    broken = FakeSource("Infopark", error=TimeoutError("timed out"))
    healthy = FakeSource("Technopark", [_job("https://x/9")])

    summaries = asyncio.run(_orchestrator([broken, healthy], storage, delivery).run())

    assert summaries[0].fetch_failed
    assert summaries[1].posted == 1
    assert delivery.to(CHANNEL) == ["https://x/9"]


def test_candidates_are_processed_in_source_order(storage: SQLiteStorage) -> None:
    delivery = FakeDelivery()
    jobs = [_job("https://x/3"), _job("https://x/1"), _job("https://x/2")]

    asyncio.run(_orchestrator([FakeSource("Infopark", jobs)], storage, delivery).run())

    assert delivery.to(CHANNEL) == ["https://x/3", "https://x/1", "https://x/2"]


def test_broadcast_failure_is_not_retried(storage: SQLiteStorage) -> None:
    storage.add_keyword(42, "react")
    delivery = FakeDelivery(failing_recipients={CHANNEL})
    orchestrator = _orchestrator([FakeSource("Infopark", [_job("https://x/1"), _job("https://x/2")])], storage, delivery)

    summaries = asyncio.run(orchestrator.run())

    assert summaries[0].failed_deliveries == 2
    assert summaries[0].posted == 2
    # Subscribers are still notified; the channel post is never retried.
    assert delivery.to(42) == ["https://x/1", "https://x/2"]

    delivery.failing.clear()
    summaries = asyncio.run(orchestrator.run())
    assert summaries[0].duplicate == 2
    assert delivery.to(CHANNEL) == []


def test_reingesting_identical_candidate_does_not_renotify(storage: SQLiteStorage, db_path: str) -> None:
    storage.add_keyword(42, "react")
    delivery = FakeDelivery()
    job = JobCandidate(title="React Developer", company="Acme", source="Infopark", link="https://x/1")
    sources = [FakeSource("Infopark", [job]), FakeSource("Mirror", [job])]

    asyncio.run(_orchestrator(sources, storage, delivery).run())

    assert delivery.to(42) == ["https://x/1"]
    assert (
        _count(
            db_path,
            "SELECT COUNT(*) FROM user_notifications WHERE owner_id = ? AND link = ?",
            (42, "https://x/1"),
        )
        == 1
    )
