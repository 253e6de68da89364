from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from .manifest import load_json, utc_iso, write_json
from .urls import compile_patterns, hostname_of

logger = logging.getLogger(__name__)


class SiteStatus(str, Enum):
    PENDING = "pending"
    DISCOVERING = "discovering"
    DISCOVERED = "discovered"
    INDEXING = "indexing"
    INDEXED = "indexed"
    ERROR = "error"


@dataclass(frozen=True)
class UrlFilters:
    """Regex filters for a site. Include is applied first, then exclude."""

    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        compile_patterns(self.include_patterns)
        compile_patterns(self.exclude_patterns)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "include_patterns": list(self.include_patterns),
            "exclude_patterns": list(self.exclude_patterns),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> UrlFilters:
        data = data or {}
        return cls(
            include_patterns=tuple(data.get("include_patterns") or ()),
            exclude_patterns=tuple(data.get("exclude_patterns") or ()),
        )


@dataclass
class SiteMetadata:
    name: str
    base_url: str
    description: str = ""
    status: SiteStatus = SiteStatus.PENDING
    page_count: int = 0
    discovered_count: int = 0
    last_indexed_at: str | None = None
    last_discovered_at: str | None = None
    created_at: str = field(default_factory=utc_iso)
    error_message: str | None = None
    url_filters: UrlFilters = field(default_factory=UrlFilters)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "base_url": self.base_url,
            "description": self.description,
            "status": self.status.value,
            "page_count": self.page_count,
            "discovered_count": self.discovered_count,
            "last_indexed_at": self.last_indexed_at,
            "last_discovered_at": self.last_discovered_at,
            "created_at": self.created_at,
            "error_message": self.error_message,
            "url_filters": self.url_filters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, domain: str) -> SiteMetadata:
        return cls(
            name=str(data.get("name") or domain),
            base_url=str(data.get("base_url") or ""),
            description=str(data.get("description") or ""),
            status=SiteStatus(data.get("status") or SiteStatus.PENDING.value),
            page_count=int(data.get("page_count") or 0),
            discovered_count=int(data.get("discovered_count") or 0),
            last_indexed_at=data.get("last_indexed_at") or None,
            last_discovered_at=data.get("last_discovered_at") or None,
            created_at=str(data.get("created_at") or utc_iso()),
            error_message=data.get("error_message") or None,
            url_filters=UrlFilters.from_dict(data.get("url_filters")),
        )


@dataclass(frozen=True)
class Site:
    domain: str
    metadata: SiteMetadata


_UPDATABLE_FIELDS = {f.name for f in fields(SiteMetadata)}


class SiteRegistry:
    """File-backed per-domain workflow state.

    Layout under `root`:
      sites/<domain>.json             site metadata
      sites/<domain>.discovered.txt   discovered URLs, one per line
      sites/<domain>.pages.txt        indexed page URLs, one per line
    """

    def __init__(self, root: Path) -> None:
        self.sites_dir = root / "sites"
        self.sites_dir.mkdir(parents=True, exist_ok=True)

    def _meta_path(self, domain: str) -> Path:
        return self.sites_dir / f"{_safe_domain(domain)}.json"

    def _discovered_path(self, domain: str) -> Path:
        return self.sites_dir / f"{_safe_domain(domain)}.discovered.txt"

    def _pages_path(self, domain: str) -> Path:
        return self.sites_dir / f"{_safe_domain(domain)}.pages.txt"

    def list_sites(self) -> list[Site]:
        sites: list[Site] = []
        for path in self.sites_dir.glob("*.json"):
            domain = path.stem
            metadata = self.get_site(domain)
            if metadata is not None:
                sites.append(Site(domain=domain, metadata=metadata))
        sites.sort(key=lambda s: s.metadata.created_at, reverse=True)
        return sites

    def get_site(self, domain: str) -> SiteMetadata | None:
        data = load_json(self._meta_path(domain))
        if not data:
            return None
        return SiteMetadata.from_dict(data, domain=domain)

    def site_exists(self, domain: str) -> bool:
        return self._meta_path(domain).exists()

    def add_site(
        self,
        url: str,
        *,
        name: str | None = None,
        description: str = "",
    ) -> Site:
        domain = hostname_of(url)
        if domain is None:
            raise ValueError(f"Not an absolute URL: {url!r}")

        metadata = SiteMetadata(
            name=name or domain,
            base_url=url,
            description=description,
        )
        self._save(domain, metadata)
        logger.info("Added site: %s", domain)
        return Site(domain=domain, metadata=metadata)

    def update_status(
        self,
        domain: str,
        status: SiteStatus,
        error_message: str | None = None,
    ) -> None:
        metadata = self._require(domain)
        metadata.status = status
        if error_message is not None:
            metadata.error_message = error_message
        if status == SiteStatus.DISCOVERED:
            metadata.last_discovered_at = utc_iso()
        if status == SiteStatus.INDEXED:
            metadata.last_indexed_at = utc_iso()
        self._save(domain, metadata)
        logger.info("Updated %s status to: %s", domain, status.value)

    def update_site(self, domain: str, **updates: Any) -> None:
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown site fields: {sorted(unknown)}")
        metadata = self._require(domain)
        for key, value in updates.items():
            setattr(metadata, key, value)
        self._save(domain, metadata)

    def set_url_filters(self, domain: str, filters: UrlFilters) -> None:
        self.update_site(domain, url_filters=filters)

    def remove_site(self, domain: str) -> None:
        for path in [
            self._meta_path(domain),
            self._discovered_path(domain),
            self._pages_path(domain),
        ]:
            path.unlink(missing_ok=True)
        logger.info("Removed site: %s", domain)

    def set_discovered_urls(self, domain: str, urls: Iterable[str]) -> None:
        urls = _unique(urls)
        metadata = self._require(domain)
        _write_lines(self._discovered_path(domain), urls)
        metadata.discovered_count = len(urls)
        self._save(domain, metadata)
        logger.info("Stored %d discovered URLs for %s", len(urls), domain)

    def get_discovered_urls(self, domain: str) -> list[str]:
        return _read_lines(self._discovered_path(domain))

    def set_indexed_pages(self, domain: str, urls: Iterable[str]) -> None:
        urls = _unique(urls)
        metadata = self._require(domain)
        _write_lines(self._pages_path(domain), urls)
        metadata.page_count = len(urls)
        self._save(domain, metadata)
        logger.info("Stored %d indexed pages for %s", len(urls), domain)

    def get_indexed_pages(self, domain: str) -> list[str]:
        return _read_lines(self._pages_path(domain))

    def _require(self, domain: str) -> SiteMetadata:
        metadata = self.get_site(domain)
        if metadata is None:
            raise KeyError(domain)
        return metadata

    def _save(self, domain: str, metadata: SiteMetadata) -> None:
        write_json(self._meta_path(domain), metadata.to_dict())


def _safe_domain(domain: str) -> str:
    domain = domain.strip().lower()
    if not domain or "/" in domain or "\\" in domain or domain.startswith("."):
        raise ValueError(f"Invalid domain: {domain!r}")
    return domain.replace(":", "_")


def _unique(urls: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(u.strip() for u in urls if u.strip()))


def _read_lines(path: Path) -> list[str]:
    if not path.exists():
        return []
    return [
        line.strip()
        for line in path.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]


def _write_lines(path: Path, lines: list[str]) -> None:
    path.write_text(
        "\n".join(lines) + ("\n" if lines else ""),
        encoding="utf-8",
        newline="\n",
    )
