"""Generic JSON feed source adapter.

Pulls paginated JSON listings over HTTP. Each page is either a list of job
objects or an object holding that list under ``items_key``. Site-specific
scrapers can replace this adapter behind the same ``fetch`` contract.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.request
from typing import Any, List, Optional
from urllib.parse import urljoin

from core.config import FetchConfig, SourceConfig
from core.models import JobCandidate
from core.retry import attempt

LOGGER = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; jobwire/1.0)"


class SourceFormatError(ValueError):
    """Raised when a feed page does not have the expected shape."""


def _text(value: Any) -> str:
    return str(value or "").strip()


def parse_listings(payload: Any, source_name: str, base_url: str, items_key: Optional[str] = None) -> List[JobCandidate]:
    """Convert one decoded page into candidates, skipping incomplete rows."""

    items = payload.get(items_key) if items_key and isinstance(payload, dict) else payload
    if not isinstance(items, list):
        raise SourceFormatError(f"{source_name}: expected a list of listings")

    jobs: List[JobCandidate] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = _text(item.get("title"))
        company = _text(item.get("company"))
        href = _text(item.get("link") or item.get("url"))
        if not title or not company or not href:
            continue
        link = href if href.startswith("http") else urljoin(base_url, href)
        jobs.append(JobCandidate(title=title, company=company, source=source_name, link=link))
    return jobs


class JsonFeedSource:
    """Source adapter for a JSON listing endpoint.

    ``url`` may contain a ``{page}`` placeholder; pages 1..max_pages are then
    fetched in order and an empty page stops pagination early.
    """

    def __init__(self, config: SourceConfig, fetch_config: FetchConfig) -> None:
        self.name = config.name
        self._config = config
        self._fetch = fetch_config

    def _page_urls(self) -> List[str]:
        if "{page}" not in self._config.url:
            return [self._config.url]
        return [self._config.url.format(page=page) for page in range(1, max(1, self._fetch.max_pages) + 1)]

    def _get(self, url: str) -> Any:
        request = urllib.request.Request(url, method="GET")
        request.add_header("User-Agent", USER_AGENT)
        request.add_header("Accept", "application/json")
        with urllib.request.urlopen(request, timeout=self._fetch.timeout_seconds) as response:
            return json.loads(response.read().decode("utf-8"))

    async def _get_with_retry(self, url: str) -> Any:
        # urllib blocks, so it runs in a worker thread to keep the loop responsive.
        return await attempt(
            lambda: asyncio.to_thread(self._get, url),
            retries=self._fetch.retries,
            delay=self._fetch.retry_delay_seconds,
        )

    async def fetch(self) -> List[JobCandidate]:
        jobs: List[JobCandidate] = []
        for url in self._page_urls():
            payload = await self._get_with_retry(url)
            page = parse_listings(payload, self.name, url, self._config.items_key)
            LOGGER.debug("%s: %s listings from %s", self.name, len(page), url)
            if not page:
                break
            jobs.extend(page)
        return jobs


def build_sources(configs: List[SourceConfig], fetch_config: FetchConfig) -> List[JsonFeedSource]:
    """Build adapters for enabled sources, preserving configuration order."""

    return [JsonFeedSource(config, fetch_config) for config in configs if config.enabled]
