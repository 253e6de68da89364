from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Iterable
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .frontier import ClaimOutcome, Frontier
from .http_client import HttpClient
from .urls import UrlScope, compile_patterns, normalize_url
from .work_queue import WorkQueue

logger = logging.getLogger(__name__)

# Hard ceiling for discovery runs, whatever max_pages says.
DISCOVERY_LIMIT = 1000


def extract_links_from_html(html: str, *, page_url: str) -> list[str]:
    """Return absolute hrefs in document order, one per normalized URL."""

    try:
        soup = BeautifulSoup(html, "html.parser")
        anchors = soup.select("a[href]")
    except Exception as e:  # noqa: BLE001
        logger.warning("Failed to extract links from %s: %s", page_url, e)
        return []

    out: list[str] = []
    seen: set[str] = set()
    for a in anchors:
        href = a.get("href")
        if isinstance(href, list):
            href = href[0] if href else ""
        href = str(href or "").strip()
        if not href:
            continue
        try:
            abs_url = urljoin(page_url, href)
        except ValueError:
            continue
        normalized = normalize_url(abs_url)
        if normalized in seen:
            continue
        seen.add(normalized)
        out.append(abs_url)

    return out


@dataclass(frozen=True)
class CrawlConfig:
    max_depth: int = 3
    max_pages: int = DISCOVERY_LIMIT
    concurrency: int = 5
    delay_s: float = 0.5
    allowed_domains: tuple[str, ...] = ()
    exclude_patterns: tuple[str | re.Pattern[str], ...] = ()
    # Carried for callers; admission never consults these.
    include_patterns: tuple[str | re.Pattern[str], ...] = ()
    discovery_mode: bool = False

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.max_pages < 0:
            raise ValueError(f"max_pages must be >= 0, got {self.max_pages}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.delay_s < 0:
            raise ValueError(f"delay_s must be >= 0, got {self.delay_s}")
        compile_patterns(self.exclude_patterns)
        compile_patterns(self.include_patterns)

    @property
    def page_cap(self) -> int:
        if self.discovery_mode:
            return min(self.max_pages, DISCOVERY_LIMIT)
        return self.max_pages

    def scope(self) -> UrlScope:
        return UrlScope(
            allowed_hosts=tuple(self.allowed_domains),
            exclude_patterns=compile_patterns(self.exclude_patterns),
        )


@dataclass(frozen=True)
class CrawlResult:
    url: str
    html: str
    depth: int


@dataclass(frozen=True)
class DiscoveryResult:
    url: str
    depth: int


@dataclass(frozen=True)
class CrawlStats:
    pages_visited: int
    pages_crawled: int
    queue_size: int
    pending: int
    hit_limit: bool
    max_pages: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "pages_visited": self.pages_visited,
            "pages_crawled": self.pages_crawled,
            "queue_size": self.queue_size,
            "pending": self.pending,
            "hit_limit": self.hit_limit,
            "max_pages": self.max_pages,
        }


class Crawler:
    """Breadth-first, domain-scoped crawler over a bounded work queue.

    A crawler instance owns its frontier and results; run one instance per
    concurrent crawl.
    """

    def __init__(self, *, http: HttpClient, config: CrawlConfig) -> None:
        self.http = http
        self.cfg = config
        self._scope = config.scope()
        self.frontier = Frontier()
        self._queue: WorkQueue | None = None
        self._results: list[CrawlResult] = []
        self._discovery_results: list[DiscoveryResult] = []
        self._running = False

    @property
    def results(self) -> list[CrawlResult]:
        return list(self._results)

    @property
    def discovery_results(self) -> list[DiscoveryResult]:
        return list(self._discovery_results)

    @property
    def hit_limit(self) -> bool:
        return self.frontier.hit_limit

    def discovered_urls(self) -> list[str]:
        """Admissible URLs left unfetched because the cap was reached."""
        return sorted(self.frontier.discovered)

    def stats(self) -> CrawlStats:
        crawled = (
            self._discovery_results if self.cfg.discovery_mode else self._results
        )
        return CrawlStats(
            pages_visited=len(self.frontier.visited),
            pages_crawled=len(crawled),
            queue_size=self._queue.size if self._queue else 0,
            pending=self._queue.pending if self._queue else 0,
            hit_limit=self.frontier.hit_limit,
            max_pages=self.cfg.page_cap,
        )

    async def discover(self, seeds: Iterable[str]) -> list[DiscoveryResult]:
        if not self.cfg.discovery_mode:
            self.cfg = replace(self.cfg, discovery_mode=True)
        await self.crawl(seeds)
        return self.discovery_results

    async def crawl(self, seeds: Iterable[str]) -> list[CrawlResult]:
        if self._running:
            raise RuntimeError("Crawler is already running; use one per crawl")

        seeds = list(seeds)
        if self.cfg.page_cap < self.cfg.max_pages:
            logger.info(
                "Discovery mode: limiting max_pages from %d to %d",
                self.cfg.max_pages,
                self.cfg.page_cap,
            )
        logger.info(
            "Starting crawl with %d seed URLs (max_depth=%d, max_pages=%d, "
            "concurrency=%d, discovery_mode=%s)",
            len(seeds),
            self.cfg.max_depth,
            self.cfg.page_cap,
            self.cfg.concurrency,
            self.cfg.discovery_mode,
        )

        self._results = []
        self._discovery_results = []
        self.frontier.reset()
        if not seeds:
            return []

        self._running = True
        try:
            self._queue = WorkQueue(
                concurrency=self.cfg.concurrency,
                interval_s=self.cfg.delay_s,
            )
            # Seeds skip admission; the first one scopes the whole run.
            base_url = seeds[0]
            for url in seeds:
                self.frontier.mark_queued(normalize_url(url))
                self._schedule(url, 0, base_url)

            await self._queue.on_idle()
        finally:
            self._running = False

        logger.info(
            "Crawl complete: %d pages (%d visited, hit_limit=%s)",
            self.stats().pages_crawled,
            len(self.frontier.visited),
            self.frontier.hit_limit,
        )
        return self.results

    def _schedule(self, url: str, depth: int, base_url: str) -> None:
        assert self._queue is not None
        self._queue.add(lambda: self._crawl_page(url, depth, base_url))

    async def _crawl_page(self, url: str, depth: int, base_url: str) -> None:
        normalized = normalize_url(url)
        outcome = self.frontier.claim(normalized, max_pages=self.cfg.page_cap)
        if outcome is ClaimOutcome.DUPLICATE:
            logger.debug("Skipping %s (already visited)", url)
            return
        if outcome is ClaimOutcome.LIMIT:
            logger.debug("Skipping %s (max pages already reached)", url)
            return

        try:
            logger.info(
                "Crawling (depth %d): %s [%d/%d]",
                depth,
                url,
                len(self.frontier.visited),
                self.cfg.page_cap,
            )
            res = await asyncio.to_thread(self.http.get, url)

            if not res.ok:
                logger.warning("HTTP %d for %s, skipping", res.status_code, url)
                return
            if not res.is_html:
                logger.info("Skipping non-HTML content: %s", url)
                return

            html = res.text
            if self.cfg.discovery_mode:
                self._discovery_results.append(
                    DiscoveryResult(url=normalized, depth=depth)
                )
            else:
                self._results.append(
                    CrawlResult(url=normalized, html=html, depth=depth)
                )

            if depth < self.cfg.max_depth:
                self._enqueue_links(html, url, depth, base_url)
        except Exception as e:  # noqa: BLE001
            logger.warning("Error crawling %s: %s", url, e)

    def _enqueue_links(
        self, html: str, page_url: str, depth: int, base_url: str
    ) -> None:
        assert self._queue is not None
        cap = self.cfg.page_cap

        if len(self.frontier.visited) >= cap:
            logger.info("Reached %d pages, skipping link extraction", cap)
            self.frontier.hit_limit = True
            return

        links = extract_links_from_html(html, page_url=page_url)
        added = 0
        duplicates = 0

        for link in links:
            normalized = normalize_url(link)
            admitted = self.frontier.should_crawl(
                link, scope=self._scope, max_pages=cap, base_url=base_url
            )

            # Scheduled tasks stay in queued until they claim, whether or not
            # the work queue has started them yet.
            if self.frontier.committed() >= cap:
                if admitted:
                    self.frontier.mark_discovered(normalized)
                self.frontier.hit_limit = True
                continue

            if admitted:
                self.frontier.mark_queued(normalized)
                self._schedule(link, depth + 1, base_url)
                added += 1
            elif normalized in self.frontier.visited:
                duplicates += 1

        logger.debug(
            "Found %d links on %s: %d queued, %d duplicates skipped, "
            "%d discovered for later (queue size=%d, pending=%d)",
            len(links),
            page_url,
            added,
            duplicates,
            len(self.frontier.discovered),
            self._queue.size,
            self._queue.pending,
        )
