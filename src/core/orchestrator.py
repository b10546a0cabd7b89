"""Ingestion orchestrator.

This module is integration-agnostic. It only relies on ports for sources,
storage, and delivery, enabling new sources or channels without changes here.

One run processes sources strictly in configuration order:
1) Fetch candidates (the adapter handles its own retries)
2) Claim each link in the global seen ledger
3) Broadcast newly claimed jobs to the channel
4) Fan out to matching subscribers
5) Emit a per-source summary

Publication is at-most-once: the claim is committed before broadcast and
fan-out, and nothing is retried after a claim.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from core.fanout import NotificationFanout
from core.models import ClaimResult, JobCandidate, SourceSummary
from core.ports import DeliveryPort, SeenLedgerPort, SourcePort

LOGGER = logging.getLogger(__name__)


class IngestionOrchestrator:
    """Drives a single harvesting pass across all enabled sources."""

    def __init__(
        self,
        sources: Iterable[SourcePort],
        ledger: SeenLedgerPort,
        delivery: DeliveryPort,
        fanout: NotificationFanout,
        channel_id: int | str,
    ) -> None:
        self._sources = list(sources)
        self._ledger = ledger
        self._delivery = delivery
        self._fanout = fanout
        self._channel_id = channel_id

    async def run(self) -> List[SourceSummary]:
        """Run one pass and return a summary per source."""

        summaries: List[SourceSummary] = []
        for source in self._sources:
            summary = SourceSummary(source=source.name)
            summaries.append(summary)

            try:
                candidates = await source.fetch()
            except Exception:
                # A failing source never aborts the run or affects other sources.
                summary.fetch_failed = True
                LOGGER.exception("Fetcher failed: %s", source.name)
                continue

            LOGGER.info("Fetched %s candidates from %s", len(candidates), source.name)
            for candidate in candidates:
                await self._process(candidate, summary)

            LOGGER.info(
                "Summary for %s: posted=%s duplicate=%s failed_deliveries=%s",
                summary.source,
                summary.posted,
                summary.duplicate,
                summary.failed_deliveries,
            )
        return summaries

    async def _process(self, candidate: JobCandidate, summary: SourceSummary) -> None:
        # The atomic claim is the only guard against overlapping runs.
        if self._ledger.claim_job(candidate) is ClaimResult.ALREADY_EXISTS:
            summary.duplicate += 1
            return

        try:
            await self._delivery.deliver(self._channel_id, candidate)
        except Exception:
            summary.failed_deliveries += 1
            LOGGER.exception("Broadcast failed for %s", candidate.link)

        try:
            await self._fanout.notify(candidate)
        except Exception:
            LOGGER.exception("Fan-out failed for %s", candidate.link)

        summary.posted += 1
        LOGGER.info("Posted: %s (%s)", candidate.title, candidate.link)
