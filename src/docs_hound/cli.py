from __future__ import annotations

import argparse
import asyncio
import hashlib
import json
import logging
import os
import sys
from pathlib import Path

import requests

from .convert.html_to_md import scrape_page_to_markdown
from .crawl import CrawlConfig, Crawler
from .http_client import DEFAULT_TIMEOUT_S, HttpClient, fetch_html
from .manifest import ManifestWriter, utc_iso
from .registry import SiteRegistry, UrlFilters
from .storage import DocStorage
from .urls import safe_filename_piece
from .workflows import discover_site, index_pages


def _default_data_dir() -> Path:
    return Path(os.getenv("DOCS_HOUND_HOME") or ".docs-hound")


def _make_http(timeout_s: float) -> HttpClient:
    return HttpClient(requests.Session, timeout_s=timeout_s)


def _add_crawl_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--max-depth", type=int, default=3)
    p.add_argument("--max-pages", type=int, default=1000)
    p.add_argument("--concurrency", type=int, default=5)
    p.add_argument(
        "--delay",
        type=float,
        default=0.5,
        help="Minimum seconds between successive fetch dispatches",
    )
    p.add_argument(
        "--allow-host",
        action="append",
        default=[],
        help="Repeatable; exact hostname match, e.g. --allow-host docs.example.com",
    )
    p.add_argument(
        "--exclude",
        action="append",
        default=[],
        help="Repeatable; regex matched against candidate URLs",
    )
    p.add_argument(
        "--discover",
        action="store_true",
        help="Only enumerate URLs (capped at 1000); keep no page bodies",
    )


def _run_crawl(args: argparse.Namespace) -> int:
    cfg = CrawlConfig(
        max_depth=int(args.max_depth),
        max_pages=int(args.max_pages),
        concurrency=int(args.concurrency),
        delay_s=float(args.delay),
        allowed_domains=tuple(args.allow_host),
        exclude_patterns=tuple(args.exclude),
        discovery_mode=bool(args.discover),
    )
    crawler = Crawler(http=_make_http(args.timeout), config=cfg)
    started_at = utc_iso()

    manifest = ManifestWriter(args.out)
    if cfg.discovery_mode:
        for found in asyncio.run(crawler.discover(args.seed)):
            manifest.append({"kind": "discovered", "url": found.url, "depth": found.depth})
    else:
        pages_dir = args.out / "pages"
        pages_dir.mkdir(parents=True, exist_ok=True)
        for page in asyncio.run(crawler.crawl(args.seed)):
            event = {"kind": "fetched", "url": page.url, "depth": page.depth}
            if args.markdown:
                try:
                    scraped = scrape_page_to_markdown(page.url, page.html)
                except ValueError as e:
                    event["error"] = str(e)
                else:
                    url_key = hashlib.sha256(page.url.encode("utf-8")).hexdigest()[:12]
                    stem = f"{safe_filename_piece(scraped.title)}--{url_key}"
                    md_path = pages_dir / f"{stem}.md"
                    md_path.write_text(
                        f"# {scraped.title}\n\nSource: {page.url}\n\n{scraped.content}\n",
                        encoding="utf-8",
                        newline="\n",
                    )
                    event["title"] = scraped.title
                    event["page_md"] = md_path.relative_to(args.out).as_posix()
            manifest.append(event)

    summary = {
        "started_at": started_at,
        "finished_at": utc_iso(),
        "seeds": list(args.seed),
        "config": {
            "max_depth": cfg.max_depth,
            "max_pages": cfg.page_cap,
            "concurrency": cfg.concurrency,
            "delay_s": cfg.delay_s,
            "allowed_domains": list(cfg.allowed_domains),
            "discovery_mode": cfg.discovery_mode,
        },
        "stats": crawler.stats().to_dict(),
        "overflow_urls": crawler.discovered_urls(),
    }
    manifest.write_summary(summary)
    print(json.dumps(summary["stats"], indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="docs-hound")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Registry + document store location (default: $DOCS_HOUND_HOME "
        "or ./.docs-hound)",
    )
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_S)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    crawl_p = sub.add_parser("crawl", help="Ad-hoc crawl into an output directory")
    crawl_p.add_argument("--seed", action="append", required=True)
    crawl_p.add_argument("--out", type=Path, required=True)
    crawl_p.add_argument(
        "--markdown",
        action="store_true",
        help="Also write extracted Markdown for each fetched page",
    )
    _add_crawl_args(crawl_p)

    add_p = sub.add_parser("add-site", help="Register a documentation site")
    add_p.add_argument("url")
    add_p.add_argument("--name", default=None)
    add_p.add_argument("--description", default="")

    sub.add_parser("sites", help="List registered sites")

    discover_p = sub.add_parser("discover", help="Enumerate a site's URLs")
    discover_p.add_argument("domain")

    index_p = sub.add_parser("index", help="Fetch, extract and store pages")
    index_p.add_argument("domain")
    index_p.add_argument("urls", nargs="*")
    index_p.add_argument(
        "--all-discovered",
        action="store_true",
        help="Index every URL stored by the last discovery run",
    )

    filters_p = sub.add_parser("filters", help="Set a site's URL filters")
    filters_p.add_argument("domain")
    filters_p.add_argument("--include", action="append", default=[])
    filters_p.add_argument("--exclude", action="append", default=[])

    search_p = sub.add_parser("search", help="Search indexed documents")
    search_p.add_argument("query")
    search_p.add_argument("--source", default=None)
    search_p.add_argument("--limit", type=int, default=5)

    remove_p = sub.add_parser("remove-site", help="Remove a site and its documents")
    remove_p.add_argument("domain")

    markdown_p = sub.add_parser("markdown", help="Print one page as Markdown")
    markdown_p.add_argument("url")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    data_dir = args.data_dir or _default_data_dir()

    try:
        if args.cmd == "crawl":
            return _run_crawl(args)

        if args.cmd == "markdown":
            html = fetch_html(_make_http(args.timeout), args.url)
            scraped = scrape_page_to_markdown(args.url, html)
            print(f"# {scraped.title}\n\n{scraped.content}")
            return 0

        registry = SiteRegistry(data_dir)

        if args.cmd == "add-site":
            site = registry.add_site(
                args.url, name=args.name, description=args.description
            )
            print(site.domain)
            return 0

        if args.cmd == "sites":
            for site in registry.list_sites():
                meta = site.metadata
                print(
                    f"{site.domain}\t{meta.status.value}\t"
                    f"discovered={meta.discovered_count}\tindexed={meta.page_count}"
                )
            return 0

        if args.cmd in ("filters", "discover", "index", "remove-site"):
            if not registry.site_exists(args.domain):
                print(f"Site not found: {args.domain}", file=sys.stderr)
                return 2

        if args.cmd == "filters":
            registry.set_url_filters(
                args.domain,
                UrlFilters(
                    include_patterns=tuple(args.include),
                    exclude_patterns=tuple(args.exclude),
                ),
            )
            return 0

        if args.cmd == "discover":
            report = asyncio.run(
                discover_site(registry, _make_http(args.timeout), args.domain)
            )
            print(
                f"discover: urls={len(report.urls)} "
                f"filtered_out={report.filtered_out} "
                f"overflow={len(report.overflow_urls)} "
                f"hit_limit={report.stats.hit_limit}"
            )
            return 0

        storage = DocStorage(data_dir)

        if args.cmd == "index":
            urls = list(args.urls)
            if args.all_discovered:
                urls.extend(registry.get_discovered_urls(args.domain))
            report = asyncio.run(
                index_pages(
                    registry, storage, _make_http(args.timeout), args.domain, urls
                )
            )
            print(
                f"index: crawled={report.crawled} "
                f"indexed={len(report.indexed_urls)} "
                f"skipped={len(report.skipped_urls)}"
            )
            return 0

        if args.cmd == "search":
            for hit in storage.search_docs(args.query, args.source, args.limit):
                print(f"{hit.score:.3f}\t{hit.data.title}\t{hit.data.url}")
            return 0

        if args.cmd == "remove-site":
            storage.delete_by_source(args.domain)
            registry.remove_site(args.domain)
            return 0
    except (OSError, ValueError, RuntimeError) as e:
        print(str(e), file=sys.stderr)
        return 2

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
