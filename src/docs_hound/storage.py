from __future__ import annotations

import hashlib
import logging
import math
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterable

from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from .manifest import load_json, write_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentMetadata:
    id: str
    url: str
    title: str
    content: str
    source: str
    scraped_at: str
    excerpt: str | None = None


@dataclass(frozen=True)
class SearchResult:
    id: str
    data: DocumentMetadata
    score: float


@dataclass(frozen=True)
class StorageStats:
    total_documents: int
    sources: dict[str, int]


def doc_id_for_url(url: str) -> str:
    return "doc-" + hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


class DocStorage:
    """File-backed document store keyed by URL, partitioned by source.

    One JSON file per source under `root/docs/`. Similarity is a
    TF-IDF cosine over title + content, fitted on the documents being
    searched.
    """

    def __init__(self, root: Path, *, batch_size: int = 100) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.docs_dir = root / "docs"
        self.docs_dir.mkdir(parents=True, exist_ok=True)
        self.batch_size = batch_size

    def _source_path(self, source: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9._-]+", "_", source.strip().lower())
        if not safe.strip("._"):
            raise ValueError(f"Invalid source: {source!r}")
        return self.docs_dir / f"{safe}.json"

    def _load(self, source: str) -> dict[str, dict[str, Any]]:
        data = load_json(self._source_path(source))
        return dict((data or {}).get("documents") or {})

    def _save(self, source: str, docs: dict[str, dict[str, Any]]) -> None:
        write_json(self._source_path(source), {"source": source, "documents": docs})

    def _sources(self) -> list[str]:
        out: list[str] = []
        for path in sorted(self.docs_dir.glob("*.json")):
            data = load_json(path) or {}
            if data.get("source"):
                out.append(str(data["source"]))
        return out

    def upsert_documents(
        self, documents: Iterable[DocumentMetadata], source: str
    ) -> int:
        documents = list(documents)
        if not documents:
            logger.info("No documents to upsert for %s", source)
            return 0

        stored = self._load(source)
        total_batches = math.ceil(len(documents) / self.batch_size)
        for i in range(0, len(documents), self.batch_size):
            batch = documents[i : i + self.batch_size]
            for doc in batch:
                stored[doc_id_for_url(doc.url)] = asdict(doc)
            self._save(source, stored)
            logger.info(
                "Upserted batch %d/%d (%d docs) for %s",
                i // self.batch_size + 1,
                total_batches,
                len(batch),
                source,
            )
        return len(documents)

    def search_docs(
        self,
        query: str,
        source: str | None = None,
        limit: int = 5,
    ) -> list[SearchResult]:
        sources = [source] if source else self._sources()

        ids: list[str] = []
        docs: list[DocumentMetadata] = []
        for src in sources:
            for doc_id, record in self._load(src).items():
                ids.append(doc_id)
                docs.append(DocumentMetadata(**record))
        if not docs or not query.strip():
            return []

        vectorizer = TfidfVectorizer(lowercase=True, strip_accents="unicode")
        try:
            matrix = vectorizer.fit_transform([f"{d.title} {d.content}" for d in docs])
        except ValueError as e:
            # Raised when no document has a single indexable term.
            logger.info("Nothing searchable in %s: %s", source or "all sources", e)
            return []
        scores = cosine_similarity(vectorizer.transform([query]), matrix).ravel()

        hits = [
            SearchResult(id=doc_id, data=doc, score=float(score))
            for doc_id, doc, score in zip(ids, docs, scores)
            if score > 0
        ]
        hits.sort(key=lambda h: (-h.score, h.data.url))
        logger.info(
            "Search %r (%s): %d hits", query, source or "all sources", len(hits)
        )
        return hits[: max(limit, 0)]

    def delete_by_source(self, source: str) -> int:
        path = self._source_path(source)
        removed = len(self._load(source))
        path.unlink(missing_ok=True)
        logger.info("Deleted %d documents for source: %s", removed, source)
        return removed

    def get_stats(self) -> StorageStats:
        counts = {src: len(self._load(src)) for src in self._sources()}
        return StorageStats(total_documents=sum(counts.values()), sources=counts)
