from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment, NavigableString, ParserRejectedMarkup, Tag

from masto_comments.errors import ContentNormalizationError


MENTION_SELECTOR = ".h-card"
# Mastodon markup that only governs display in its own UI (hidden URL prefixes,
# truncated link tails).
WRAPPER_SELECTOR = ".invisible, .ellipsis"
ELLIPSIS = "…"

# Applied in order to the serialized fragment. Numbering removal has to run
# before the empty-paragraph pass, which cleans up what it leaves behind.
CLEANUP_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Trim long bare links to host + 16 characters of path
    (re.compile(r"(<a [^>]+>\s*https?://[^/<]+/[^<]{16})[^<]+(</a>)", re.ASCII), rf"\1{ELLIPSIS}\2"),
    # Line breaks at the start or end of a paragraph
    (re.compile(r"<p>(\s*<br/?>)+", re.ASCII), "<p>"),
    (re.compile(r"(<br/?>\s*)+</p>", re.ASCII), "</p>"),
    # Thread numbering, e.g. "3/" and "3/5"
    (re.compile(r"<p>\d+/\d*</p>", re.ASCII), ""),
    (re.compile(r"<br/?>\s*\d+/\d*", re.ASCII), ""),
    # Empty paragraphs
    (re.compile(r"\s*<p>\s*</p>\s*", re.ASCII), ""),
]
ASCII_WHITESPACE = " \t\n\r\f\v"
WHITESPACE_RE = re.compile(r"\s+", re.ASCII)


def clean_content(html: str | None) -> str:
    """Normalize the HTML body of a Mastodon status for embedding in a blog page.

    Removes the @-mentions a reply starts with (mentions later in the text are
    kept), unwraps Mastodon's UI-only link decorations, shortens long link text,
    drops blank lines at paragraph edges, strips manual thread numbering and
    empty paragraphs, and collapses whitespace.
    """
    if not html:
        return ""

    try:
        soup = BeautifulSoup(f"<div>{html}</div>", "html.parser")
    except ParserRejectedMarkup as e:
        raise ContentNormalizationError(f"Cannot parse status content: {e}") from e
    container = soup.find("div")
    if container is None:
        raise ContentNormalizationError("Cannot parse status content: no root element")

    for node in container.select(MENTION_SELECTOR):
        if _only_blank_before(node):
            node.decompose()

    for node in container.select(WRAPPER_SELECTOR):
        node.unwrap()

    text = container.decode_contents()
    for pattern, replacement in CLEANUP_PATTERNS:
        text = pattern.sub(replacement, text)
    return WHITESPACE_RE.sub(" ", text.strip(ASCII_WHITESPACE))


def _only_blank_before(node: Tag) -> bool:
    sibling = node.previous_sibling
    while sibling is not None:
        if isinstance(sibling, Tag):
            if sibling.name != "br":
                return False
        elif isinstance(sibling, Comment):
            return False
        elif isinstance(sibling, NavigableString) and sibling.strip():
            return False
        sibling = sibling.previous_sibling
    return True
