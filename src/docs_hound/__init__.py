"""docs-hound core library.

This package provides the pieces of a documentation-indexing pipeline:
a bounded-concurrency crawler, an HTML-to-Markdown content extractor, and
small file-backed collaborators for site bookkeeping and document search.

Repo rules:
- One crawler instance per crawl run; instances are not shared.
- Collaborators are constructed explicitly and passed in, never global.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
