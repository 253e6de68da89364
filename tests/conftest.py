from __future__ import annotations

import threading
import time

import pytest

from docs_hound.http_client import HttpClient


class FakeResponse:
    def __init__(
        self,
        url: str,
        *,
        status_code: int = 200,
        body: str | bytes = "",
        content_type: str = "text/html; charset=utf-8",
        chunks: int = 1,
        chunk_delay_s: float = 0.0,
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        self.content = body.encode("utf-8") if isinstance(body, str) else body
        # What requests reports for text/* without a declared charset.
        self.encoding = "utf-8" if "charset" in content_type else "ISO-8859-1"
        self.chunks = chunks
        self.chunk_delay_s = chunk_delay_s
        self.closed = False

    def iter_content(self, chunk_size=1):
        step = max(1, -(-len(self.content) // self.chunks))
        for i in range(self.chunks):
            if self.chunk_delay_s:
                time.sleep(self.chunk_delay_s)
            yield self.content[i * step : (i + 1) * step]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Stands in for requests.Session; unknown URLs answer 404."""

    def __init__(self, pages: dict[str, object] | None = None) -> None:
        self.pages = dict(pages or {})
        self.requested: list[str] = []
        self.last_headers: dict[str, str] | None = None
        self.last_timeout: float | None = None
        self._lock = threading.Lock()

    def add_page(self, url: str, body: str, **kwargs) -> None:
        self.pages[url] = FakeResponse(url, body=body, **kwargs)

    def get(self, url, timeout=None, headers=None, stream=False):
        with self._lock:
            self.requested.append(url)
            self.last_headers = headers
            self.last_timeout = timeout
        resp = self.pages.get(url)
        if resp is None:
            return FakeResponse(url, status_code=404, body="not found")
        if isinstance(resp, Exception):
            raise resp
        return resp


def html_page(*hrefs: str, title: str = "Page", text: str = "") -> str:
    links = "".join(f'<a href="{h}">link</a>' for h in hrefs)
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><main><h1>{title}</h1><p>{text}</p>{links}</main></body></html>"
    )


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def http(session: FakeSession) -> HttpClient:
    return HttpClient(lambda: session)  # type: ignore[arg-type, return-value]
