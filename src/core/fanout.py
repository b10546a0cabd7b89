"""Keyword fan-out of published jobs to subscribers.

Each subscriber is notified at most once per job link. The per-subscriber
ledger is claimed before delivery, so a failed send is never retried.
"""

from __future__ import annotations

import logging

from core.matching import matches_any_keyword
from core.models import ClaimResult, FanoutResult, JobCandidate
from core.ports import DeliveryPort, NotificationLedgerPort, SubscriptionDirectoryPort

LOGGER = logging.getLogger(__name__)


class NotificationFanout:
    """Matches one job against every subscription and delivers once per match."""

    def __init__(
        self,
        directory: SubscriptionDirectoryPort,
        ledger: NotificationLedgerPort,
        delivery: DeliveryPort,
    ) -> None:
        self._directory = directory
        self._ledger = ledger
        self._delivery = delivery

    async def notify(self, job: JobCandidate) -> FanoutResult:
        result = FanoutResult()

        # The directory is consumed as a stream so large subscriber sets are
        # never materialized here.
        for subscription in self._directory.iter_subscriptions():
            if not subscription.keywords:
                continue
            if not matches_any_keyword(job, subscription.keywords):
                continue
            result.matched += 1

            claim = self._ledger.claim_notification(subscription.owner_id, job)
            if claim is ClaimResult.ALREADY_EXISTS:
                result.already_notified += 1
                continue

            try:
                await self._delivery.deliver(subscription.owner_id, job)
            except Exception:
                result.failed += 1
                LOGGER.exception("Delivery to %s failed for %s", subscription.owner_id, job.link)
                continue
            result.delivered += 1

        if result.matched:
            LOGGER.info(
                "Fan-out for %s: matched=%s delivered=%s already_notified=%s failed=%s",
                job.link,
                result.matched,
                result.delivered,
                result.already_notified,
                result.failed,
            )
        return result
