from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag
from markdownify import markdownify as md

logger = logging.getLogger(__name__)

_EXCERPT_MAX_CHARS = 200
_LANGUAGE_CLASS = re.compile(r"(?:language|lang)-([\w+#-]+)")


@dataclass(frozen=True)
class ScrapedPage:
    title: str
    content: str
    excerpt: str | None = None


def _clean_soup_inplace(soup: BeautifulSoup) -> None:
    for tag_name in ["script", "style", "noscript", "template", "svg"]:
        for t in soup.find_all(tag_name):
            t.decompose()
    # Page chrome: navigation, site header/footer, sidebars.
    for tag_name in ["nav", "header", "footer", "aside", "form"]:
        for t in soup.find_all(tag_name):
            t.decompose()
    for t in soup.select("[role='navigation'], [role='banner'], [aria-hidden='true']"):
        t.decompose()


def _pick_main_content(soup: BeautifulSoup):
    for selector in [
        "main",
        "article",
        "div[role='main']",
        "div[role='document']",
        "#content",
        ".content",
    ]:
        node = soup.select_one(selector)
        if node and node.get_text(strip=True):
            return node

    best = None
    best_len = 0
    for div in soup.find_all("div"):
        text_len = len(div.get_text(" ", strip=True))
        if text_len > best_len:
            best = div
            best_len = text_len
    return best or soup.body or soup


def _code_language(el: Tag) -> str | None:
    for node in [el.find("code"), el]:
        if not isinstance(node, Tag):
            continue
        for cls in node.get("class") or []:
            match = _LANGUAGE_CLASS.fullmatch(cls)
            if match:
                return match.group(1)
    return None


def extract_title(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return h1.get_text(" ", strip=True)
    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(" ", strip=True)
    return "Untitled"


def extract_excerpt(html: str) -> str | None:
    soup = BeautifulSoup(html, "html.parser")
    for selector in ["meta[name='description']", "meta[property='og:description']"]:
        meta = soup.select_one(selector)
        content = str(meta.get("content") or "").strip() if meta else ""
        if content:
            return _truncate(content)

    _clean_soup_inplace(soup)
    for p in _pick_main_content(soup).find_all("p"):
        text = p.get_text(" ", strip=True)
        if text:
            return _truncate(text)
    return None


def _truncate(text: str) -> str:
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) <= _EXCERPT_MAX_CHARS:
        return text
    return text[: _EXCERPT_MAX_CHARS - 3].rstrip() + "..."


def html_to_markdown(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    _clean_soup_inplace(soup)
    main = _pick_main_content(soup)
    markdown = md(
        str(main),
        heading_style="ATX",
        bullets="-",
        code_language_callback=_code_language,
    )
    # Collapse the blank-line runs markdownify leaves between blocks.
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


def scrape_page_to_markdown(url: str, html: str) -> ScrapedPage:
    """Extract the readable article from a page as Markdown.

    Raises ValueError when the page has no text content worth keeping.
    """

    content = html_to_markdown(html)
    if not content:
        raise ValueError(f"No article content found in {url}")

    title = extract_title(html)
    logger.debug("Extracted %r from %s (%d chars)", title, url, len(content))
    return ScrapedPage(title=title, content=content, excerpt=extract_excerpt(html))
