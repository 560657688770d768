# core/annotations.py
"""
Annotation extraction for mirrored posts.

The source platform hands us text in which links are shortened (t.co) and entity spans
that point into that *source* text. What actually gets posted is the *display* text:
shortened links spliced back to their expanded form, HTML entities unescaped and media
links removed. All annotations produced here are in display-text coordinates.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from core.models import Annotation, Post, UrlEntity

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"\bhttps?://[^\s<>\"]+")
HASHTAG_PATTERN = re.compile(r"(?<![\w&/])#([A-Za-z0-9_]+)")
SHORT_LINK_PATTERN = re.compile(r"https://t\.co/\w+")
TRUNCATED_URL_PATTERN = re.compile(r"(\bhttps?://\S+?)…")

# Punctuation that usually closes a sentence rather than belonging to the URL.
_URL_TRAILING = ".,;:!?)]}'\""


def _is_valid_url(candidate: str) -> bool:
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = parsed.hostname or ""
    if "." not in host or host.startswith(".") or host.endswith("."):
        return False
    return True


def _clean_plain_segment(segment: str) -> str:
    segment = html.unescape(segment)
    segment = SHORT_LINK_PATTERN.sub("", segment)
    return TRUNCATED_URL_PATTERN.sub(r"\1", segment)


def _usable_entities(text: str, entities: Iterable[UrlEntity]) -> List[UrlEntity]:
    """Drop entities whose span is out of range or collides with an earlier one."""
    usable: List[UrlEntity] = []
    for ent in sorted(entities, key=lambda e: (e.start, e.end)):
        if ent.start < 0 or ent.end > len(text) or ent.start >= ent.end:
            logger.debug("Ignoring out-of-range url entity %r for text of length %d", ent, len(text))
            continue
        if usable and ent.start < usable[-1].end:
            logger.debug("Ignoring overlapping url entity %r", ent)
            continue
        usable.append(ent)
    return usable


def splice_entities(text: str, entities: Sequence[UrlEntity]) -> Tuple[str, List[Annotation]]:
    """
    Replace every entity span with its expanded url.

    Entities are applied in descending start order so that a substitution never shifts
    the source offsets of entities still waiting to be applied. Text between entities is
    cleaned (unescaped, media links removed) as it is spliced.

    Returns the display text and one link annotation per spliced entity.
    """
    pieces: List[Tuple[str, Optional[UrlEntity]]] = []
    cursor = len(text)
    for ent in sorted(_usable_entities(text, entities), key=lambda e: e.start, reverse=True):
        pieces.append((text[ent.end : cursor], None))
        pieces.append((ent.expanded_url, ent))
        cursor = ent.start
    pieces.append((text[:cursor], None))
    pieces.reverse()

    out: List[str] = []
    annotations: List[Annotation] = []
    pos = 0
    for segment, ent in pieces:
        if ent is None:
            segment = _clean_plain_segment(segment)
        else:
            annotations.append(Annotation("link", ent.expanded_url, pos, pos + len(segment)))
        out.append(segment)
        pos += len(segment)

    return "".join(out), annotations


def scan_links(text: str) -> List[Annotation]:
    """Find well-formed http(s) links in `text`."""
    found: List[Annotation] = []
    for match in URL_PATTERN.finditer(text):
        url = match.group(0).rstrip(_URL_TRAILING)
        if not url or not _is_valid_url(url):
            continue
        found.append(Annotation("link", url, match.start(), match.start() + len(url)))
    return found


def scan_hashtags(text: str) -> List[Annotation]:
    """Find `#tag` spans; the tag target is stored without the leading '#'."""
    return [Annotation("hashtag", m.group(1), m.start(), m.end()) for m in HASHTAG_PATTERN.finditer(text)]


def extract_annotations(
    text: str,
    entities: Optional[Sequence[UrlEntity]] = None,
) -> Tuple[str, List[Annotation]]:
    """
    Build the display text and its annotation set.

    Links known from entities win over re-scanned links for the same span; hashtags that
    fall inside any link (e.g. a url fragment) are ignored. The result is sorted by start
    offset, but callers must not rely on ordering.
    """
    if not text:
        return "", []

    display, known = splice_entities(text, entities or [])
    display = display.rstrip()
    known = [a for a in known if a.end <= len(display)]

    links = list(known)
    for candidate in scan_links(display):
        if any(candidate.overlaps(a.start, a.end) for a in links):
            continue
        links.append(candidate)

    hashtags = [h for h in scan_hashtags(display) if not any(h.overlaps(a.start, a.end) for a in links)]

    annotations = sorted(links + hashtags, key=lambda a: (a.start, a.end))
    return display, annotations


def render_post(post: Post) -> Tuple[str, List[Annotation]]:
    """Display text and annotations for a post, including a trailing quoted permalink."""
    display, annotations = extract_annotations(post.text, post.urls)

    if post.quote and post.quote not in display:
        prefix = f"{display}\n\n" if display else ""
        start = len(prefix)
        display = prefix + post.quote
        if _is_valid_url(post.quote):
            annotations = annotations + [Annotation("link", post.quote, start, start + len(post.quote))]

    return display, annotations


def strip_hashtags(text: str) -> Tuple[str, List[str]]:
    """Remove hashtag tokens from `text` and return them separately (without '#')."""
    tags = [a.target for a in scan_hashtags(text)]
    stripped = HASHTAG_PATTERN.sub("", text)
    stripped = re.sub(r"[ \t]{2,}", " ", stripped)
    stripped = re.sub(r"[ \t]+\n", "\n", stripped)
    return stripped.strip(), tags
