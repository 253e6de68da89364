from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .urls import UrlScope, normalize_url


class ClaimOutcome(str, Enum):
    CLAIMED = "claimed"
    DUPLICATE = "duplicate"
    LIMIT = "limit"


@dataclass
class Frontier:
    """Dedup ledger for one crawl run, keyed by normalized URL.

    - visited: fetch has started (claimed); only ever grows during a run.
    - queued: scheduled but not started yet.
    - discovered: admissible but turned away because the page cap was hit.

    Admission is optimistic: the same URL may be scheduled twice when two
    pages link to it at once. `claim` absorbs that instead of a lock
    preventing it.
    """

    visited: set[str] = field(default_factory=set)
    queued: set[str] = field(default_factory=set)
    discovered: set[str] = field(default_factory=set)
    hit_limit: bool = False

    def reset(self) -> None:
        self.visited.clear()
        self.queued.clear()
        self.discovered.clear()
        self.hit_limit = False

    def is_known(self, normalized: str) -> bool:
        return normalized in self.visited or normalized in self.queued

    def should_crawl(
        self,
        url: str,
        *,
        scope: UrlScope,
        max_pages: int,
        base_url: str | None = None,
    ) -> bool:
        if not scope.is_allowed(url, base_url):
            return False
        if self.is_known(normalize_url(url)):
            return False
        return len(self.visited) < max_pages

    def committed(self) -> int:
        """Pages claimed plus pages scheduled but not yet claimed."""
        return len(self.visited) + len(self.queued)

    def mark_queued(self, normalized: str) -> None:
        self.queued.add(normalized)

    def mark_discovered(self, normalized: str) -> None:
        self.discovered.add(normalized)
        self.hit_limit = True

    def claim(self, normalized: str, *, max_pages: int) -> ClaimOutcome:
        # Dequeued regardless of what happens next.
        self.queued.discard(normalized)

        if normalized in self.visited:
            return ClaimOutcome.DUPLICATE

        # Siblings may have used up the capacity since this was scheduled.
        if len(self.visited) >= max_pages:
            self.hit_limit = True
            return ClaimOutcome.LIMIT

        self.visited.add(normalized)
        return ClaimOutcome.CLAIMED
