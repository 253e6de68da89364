from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable
from urllib.parse import SplitResult, urlsplit, urlunsplit

_CRAWLABLE_SCHEMES = {"http", "https"}
_DEFAULT_PORTS = {"http": 80, "https": 443}


def _parse(raw_url: str) -> SplitResult | None:
    try:
        parsed = urlsplit(raw_url.strip())
        # Accessing .port validates it (raises ValueError when malformed).
        _ = parsed.port
    except ValueError:
        return None
    if not parsed.scheme:
        return None
    if parsed.scheme.lower() in _CRAWLABLE_SCHEMES and not parsed.hostname:
        return None
    return parsed


def normalize_url(raw_url: str) -> str:
    """Normalize a URL for de-duplication.

    - Lowercases scheme + hostname, drops default ports.
    - Strips fragments and query strings.
    - Strips one trailing slash from the path; the root path stays "/".

    Input that cannot be parsed as an absolute URL is returned unchanged.
    """

    parsed = _parse(raw_url)
    if parsed is None:
        return raw_url

    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    path = parsed.path

    if scheme in _CRAWLABLE_SCHEMES:
        host = parsed.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        userinfo = netloc.rpartition("@")[0]
        port = parsed.port
        netloc = host
        if port is not None and port != _DEFAULT_PORTS[scheme]:
            netloc = f"{host}:{port}"
        if userinfo:
            netloc = f"{userinfo}@{netloc}"
        path = path or "/"

    if path.endswith("/"):
        path = path[:-1] or "/"

    return urlunsplit((scheme, netloc, path, "", ""))


def is_crawlable_scheme(url: str) -> bool:
    parsed = _parse(url)
    return parsed is not None and parsed.scheme.lower() in _CRAWLABLE_SCHEMES


def hostname_of(url: str) -> str | None:
    parsed = _parse(url)
    if parsed is None:
        return None
    return (parsed.hostname or "").lower() or None


def compile_patterns(
    patterns: Iterable[str | re.Pattern[str]],
) -> tuple[re.Pattern[str], ...]:
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        if isinstance(pattern, re.Pattern):
            compiled.append(pattern)
            continue
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ValueError(f"Invalid URL pattern {pattern!r}: {e}") from e
    return tuple(compiled)


@dataclass(frozen=True)
class UrlScope:
    """Static part of crawl admission: everything except frontier state."""

    allowed_hosts: tuple[str, ...] = ()
    exclude_patterns: tuple[re.Pattern[str], ...] = ()

    def is_allowed(self, url: str, base_url: str | None = None) -> bool:
        parsed = _parse(url)
        if parsed is None:
            return False
        if parsed.scheme.lower() not in _CRAWLABLE_SCHEMES:
            return False

        host = (parsed.hostname or "").lower()
        # Exact hostname match only; subdomains are separate sites.
        if self.allowed_hosts and host not in {
            h.lower() for h in self.allowed_hosts
        }:
            return False

        if base_url is not None and host != hostname_of(base_url):
            return False

        return not matches_any(url, self.exclude_patterns)


def matches_any(url: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    return any(p.search(url) for p in patterns)


def safe_filename_piece(text: str, *, max_len: int = 80) -> str:
    text = text.strip()
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"[^A-Za-z0-9._-]+", "-", text)
    text = re.sub(r"-+", "-", text).strip("-")
    if not text:
        return "untitled"
    return text[:max_len]
