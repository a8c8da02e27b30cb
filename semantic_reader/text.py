"""HTML article bodies -> plain text used as embedding input."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from .models import FeedItem

_WS_RE = re.compile(r"\s+")


def extract_text_from_html(html: str) -> str:
    """Return the visible text of ``html`` with whitespace collapsed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return _WS_RE.sub(" ", soup.get_text(" ")).strip()


def build_embedding_text(item: FeedItem) -> str:
    """Title, blank line, then the plain-text body."""
    return f"{item.title}\n\n{extract_text_from_html(item.content)}"
