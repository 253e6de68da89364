from __future__ import annotations

import re
import threading
import time
from dataclasses import dataclass
from typing import Callable

import requests
from requests import exceptions as req_exc

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; DocsHound/1.0; +https://github.com/docs-hound)"
)
DEFAULT_TIMEOUT_S = 30

_CHUNK_SIZE = 64 * 1024
_CHARSET = re.compile(r"charset\s*=\s*([^;\s]+)", re.IGNORECASE)


@dataclass(frozen=True)
class FetchResult:
    url: str
    final_url: str
    status_code: int
    headers: dict[str, str]
    fetched_at: float
    body: bytes
    encoding: str | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def is_html(self) -> bool:
        return self.content_type.strip().lower().startswith("text/html")

    @property
    def text(self) -> str:
        if self.encoding:
            try:
                return self.body.decode(self.encoding, errors="replace")
            except LookupError:
                pass
        return self.body.decode("utf-8", errors="replace")


class HttpClient:
    """Single-shot GET client. Failed requests are never retried.

    Each worker thread gets its own session from `session_factory`, since
    `requests.Session` is not documented as thread-safe. `timeout_s` bounds
    the whole request, body included.
    """

    def __init__(
        self,
        session_factory: Callable[[], requests.Session] = requests.Session,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._session_factory = session_factory
        self._local = threading.local()
        self._timeout_s = timeout_s
        self._user_agent = user_agent

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
        return session

    def get(self, url: str) -> FetchResult:
        deadline = time.monotonic() + self._timeout_s
        try:
            resp = self._session().get(
                url,
                timeout=self._timeout_s,
                headers={"User-Agent": self._user_agent},
                stream=True,
            )
            try:
                chunks: list[bytes] = []
                for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                    chunks.append(chunk)
                    if time.monotonic() > deadline:
                        raise RuntimeError(
                            f"Timed out after {self._timeout_s}s fetching {url}"
                        )
                body = b"".join(chunks)
            finally:
                resp.close()
        except req_exc.RequestException as e:
            raise RuntimeError(f"Failed to fetch {url}: {e}") from e

        headers = {k: str(v) for k, v in resp.headers.items()}
        return FetchResult(
            url=url,
            final_url=str(resp.url),
            status_code=int(resp.status_code),
            headers=headers,
            fetched_at=time.time(),
            body=body,
            encoding=declared_charset(headers),
        )


def declared_charset(headers: dict[str, str]) -> str | None:
    """Charset named in Content-Type, if any. No guessing from the type."""

    for key, value in headers.items():
        if key.lower() == "content-type":
            match = _CHARSET.search(value)
            if match:
                return match.group(1).strip("'\"") or None
    return None


def fetch_html(http: HttpClient, url: str) -> str:
    res = http.get(url)
    if not res.ok:
        raise RuntimeError(f"HTTP {res.status_code} for {url}")
    return res.text
