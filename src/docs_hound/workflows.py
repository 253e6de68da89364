"""Discovery and indexing triggers.

Both follow the same shape: flip the site's status, run a crawler, hand
the results to the collaborators, and record the outcome. Any failure
moves the site to `error` with the message and re-raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from tqdm import tqdm

from .convert.html_to_md import scrape_page_to_markdown
from .crawl import CrawlConfig, Crawler, CrawlStats
from .http_client import HttpClient
from .manifest import utc_iso
from .registry import SiteRegistry, SiteStatus, UrlFilters
from .storage import DocStorage, DocumentMetadata
from .urls import compile_patterns, matches_any

logger = logging.getLogger(__name__)

DISCOVERY_MAX_DEPTH = 5
DISCOVERY_MAX_PAGES = 1000
DISCOVERY_CONCURRENCY = 5
DISCOVERY_DELAY_S = 0.3

INDEX_CONCURRENCY = 3
INDEX_DELAY_S = 0.5

# Extracted pages at or below this many characters are not worth indexing.
MIN_CONTENT_CHARS = 50


@dataclass(frozen=True)
class DiscoveryReport:
    domain: str
    urls: list[str]
    overflow_urls: list[str]
    filtered_out: int
    stats: CrawlStats


@dataclass(frozen=True)
class IndexReport:
    domain: str
    crawled: int
    indexed_urls: list[str]
    skipped_urls: list[str]
    stats: CrawlStats


def discovery_config(domain: str, site_filters: UrlFilters) -> CrawlConfig:
    return CrawlConfig(
        max_depth=DISCOVERY_MAX_DEPTH,
        max_pages=DISCOVERY_MAX_PAGES,
        concurrency=DISCOVERY_CONCURRENCY,
        delay_s=DISCOVERY_DELAY_S,
        allowed_domains=(domain,),
        exclude_patterns=site_filters.exclude_patterns,
        include_patterns=site_filters.include_patterns,
        discovery_mode=True,
    )


def index_config(domain: str, page_count: int) -> CrawlConfig:
    return CrawlConfig(
        max_depth=0,
        max_pages=page_count,
        concurrency=INDEX_CONCURRENCY,
        delay_s=INDEX_DELAY_S,
        allowed_domains=(domain,),
    )


async def discover_site(
    registry: SiteRegistry,
    http: HttpClient,
    domain: str,
) -> DiscoveryReport:
    site = registry.get_site(domain)
    if site is None:
        raise KeyError(domain)

    registry.update_status(domain, SiteStatus.DISCOVERING)
    logger.info("Starting discovery for %s", domain)
    try:
        filters = site.url_filters
        crawler = Crawler(http=http, config=discovery_config(domain, filters))
        results = await crawler.discover([site.base_url])

        include = compile_patterns(filters.include_patterns)
        urls = [r.url for r in results]
        if include:
            kept = [u for u in urls if matches_any(u, include)]
        else:
            kept = urls

        registry.set_discovered_urls(domain, kept)
        registry.update_site(domain, error_message=None)
        registry.update_status(domain, SiteStatus.DISCOVERED)

        stats = crawler.stats()
        if stats.hit_limit:
            logger.info("Hit %d page limit for %s", stats.max_pages, domain)
        logger.info("Discovery completed for %s: %d URLs", domain, len(kept))
        return DiscoveryReport(
            domain=domain,
            urls=kept,
            overflow_urls=crawler.discovered_urls(),
            filtered_out=len(urls) - len(kept),
            stats=stats,
        )
    except Exception as e:
        logger.error("Discovery failed for %s: %s", domain, e)
        registry.update_status(domain, SiteStatus.ERROR, str(e))
        raise


async def index_pages(
    registry: SiteRegistry,
    storage: DocStorage,
    http: HttpClient,
    domain: str,
    urls: Iterable[str],
) -> IndexReport:
    urls = list(urls)
    if not urls:
        raise ValueError("URLs are required")
    if not registry.site_exists(domain):
        raise KeyError(domain)

    registry.update_status(domain, SiteStatus.INDEXING)
    logger.info("Starting indexing for %s (%d pages)", domain, len(urls))
    try:
        storage.delete_by_source(domain)

        crawler = Crawler(http=http, config=index_config(domain, len(urls)))
        pages = await crawler.crawl(urls)
        logger.info("Crawled %d pages for %s", len(pages), domain)

        documents: list[DocumentMetadata] = []
        skipped: list[str] = []
        for page in tqdm(pages, desc=f"Extracting {domain}", unit="page"):
            try:
                scraped = scrape_page_to_markdown(page.url, page.html)
            except ValueError as e:
                logger.warning("Failed to process %s: %s", page.url, e)
                skipped.append(page.url)
                continue

            if len(scraped.content) <= MIN_CONTENT_CHARS:
                logger.info("Skipping %s - no content", page.url)
                skipped.append(page.url)
                continue

            documents.append(
                DocumentMetadata(
                    id=f"{domain}-{len(documents)}",
                    url=page.url,
                    title=scraped.title,
                    content=scraped.content,
                    excerpt=scraped.excerpt,
                    source=domain,
                    scraped_at=utc_iso(),
                )
            )

        storage.upsert_documents(documents, domain)

        indexed_urls = [d.url for d in documents]
        registry.set_indexed_pages(domain, indexed_urls)
        registry.update_site(domain, error_message=None)
        registry.update_status(domain, SiteStatus.INDEXED)
        logger.info("Indexing completed for %s: %d pages", domain, len(indexed_urls))
        return IndexReport(
            domain=domain,
            crawled=len(pages),
            indexed_urls=indexed_urls,
            skipped_urls=skipped,
            stats=crawler.stats(),
        )
    except Exception as e:
        logger.error("Indexing failed for %s: %s", domain, e)
        registry.update_status(domain, SiteStatus.ERROR, str(e))
        raise
