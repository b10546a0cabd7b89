"""Keyword search over live sources and stored jobs."""

from __future__ import annotations

import logging
from typing import Iterable, List

from core.matching import matches_keyword, normalize_keyword
from core.models import JobCandidate
from core.ports import SeenLedgerPort, SourcePort

LOGGER = logging.getLogger(__name__)


async def search_jobs(sources: Iterable[SourcePort], keyword: str, limit: int) -> List[JobCandidate]:
    """Fetch every source in order and return up to ``limit`` matches.

    A failing source is skipped so one broken site does not hide results
    from the others.
    """

    if not normalize_keyword(keyword):
        return []

    results: List[JobCandidate] = []
    for source in sources:
        try:
            jobs = await source.fetch()
        except Exception:
            LOGGER.exception("Search fetch failed: %s", source.name)
            continue
        results.extend(job for job in jobs if matches_keyword(job, keyword))
        if len(results) >= limit:
            break
    return results[:limit]


def recent_jobs(ledger: SeenLedgerPort, keywords: Iterable[str], limit: int) -> List[JobCandidate]:
    """Return the newest stored jobs matching any of ``keywords``."""

    normalized = [k for k in (normalize_keyword(k) for k in keywords) if k]
    if not normalized:
        return []
    return [job.as_candidate() for job in ledger.find_recent_jobs(normalized, max(1, limit))]
