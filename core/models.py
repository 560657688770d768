# core/models.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Literal, Optional

AnnotationKind = Literal["link", "hashtag"]


@dataclass(frozen=True)
class Annotation:
    """
    A rich-text span inside a specific text buffer.

    Offsets are Python string (code point) offsets, end-exclusive. Byte offsets are only
    computed at the platform boundary (Bluesky facets).
    """

    kind: AnnotationKind
    target: str
    start: int
    end: int

    def shifted(self, delta: int) -> "Annotation":
        return replace(self, start=self.start + delta, end=self.end + delta)

    def overlaps(self, start: int, end: int) -> bool:
        return self.start < end and start < self.end


@dataclass(frozen=True)
class Chunk:
    """A length-bounded slice of a post's display text with chunk-local annotations."""

    text: str
    annotations: List[Annotation] = field(default_factory=list)


@dataclass(frozen=True)
class UrlEntity:
    """A url entity as delivered by the source platform (offsets into the source text)."""

    url: str
    expanded_url: str
    display_url: str = ""
    start: int = 0
    end: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UrlEntity":
        indices = data.get("indices") or []
        if len(indices) != 2:
            raise ValueError(f"url entity needs two indices: {data!r}")
        start, end = int(indices[0]), int(indices[1])
        expanded = data.get("expanded_url") or data.get("url")
        if not expanded:
            raise ValueError(f"url entity without a url: {data!r}")
        return cls(
            url=str(data.get("url") or expanded),
            expanded_url=str(expanded),
            display_url=str(data.get("display_url") or ""),
            start=start,
            end=end,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_url": self.display_url,
            "expanded_url": self.expanded_url,
            "url": self.url,
            "indices": [self.start, self.end],
        }


@dataclass(frozen=True)
class Post:
    """
    The atomic unit that gets mirrored.

    `url` is the stable identity used for de-duplication. `mirrors` records, per destination
    platform, the root and last reply reference of the chain this post was published into,
    or `{"pending": True}` for a platform that has not received it yet. It is the only
    field that changes after a post is observed.
    """

    url: str
    text: str = ""
    images: List[str] = field(default_factory=list)
    retweeted: bool = False
    quote_retweeted: bool = False
    quote: Optional[str] = None
    urls: List[UrlEntity] = field(default_factory=list)
    mirrors: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Post":
        if not isinstance(data, dict):
            raise ValueError(f"post must be an object, got {type(data).__name__}")

        url = data.get("url")
        if not url or not isinstance(url, str):
            raise ValueError(f"post without a url: {data!r}")

        images = [str(i) for i in (data.get("images") or []) if i]
        quote = data.get("quote") or None

        return cls(
            url=url,
            text=str(data.get("text") or ""),
            images=images,
            retweeted=bool(data.get("retweeted", False)),
            quote_retweeted=bool(data.get("quote_retweeted", quote is not None)),
            quote=str(quote) if quote else None,
            urls=[UrlEntity.from_dict(u) for u in (data.get("urls") or [])],
            mirrors=dict(data.get("mirrors") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "text": self.text,
            "images": list(self.images),
            "url": self.url,
            "retweeted": self.retweeted,
            "quote_retweeted": self.quote_retweeted,
            "quote": self.quote,
            "urls": [u.to_dict() for u in self.urls],
        }
        if self.mirrors:
            out["mirrors"] = self.mirrors
        return out

    def with_mirror(self, platform: str, root: Dict[str, Any], last: Dict[str, Any]) -> "Post":
        mirrors = dict(self.mirrors)
        mirrors[platform] = {"root": root, "last": last}
        return replace(self, mirrors=mirrors)

    def with_pending(self, platform: str) -> "Post":
        """Mark this post as still owed to `platform` (it was kept because another platform has it)."""
        mirrors = dict(self.mirrors)
        mirrors[platform] = {"pending": True}
        return replace(self, mirrors=mirrors)

    def pending_on(self, platform: str) -> bool:
        return bool((self.mirrors.get(platform) or {}).get("pending"))


Thread = List[Post]


def thread_urls(thread: Thread) -> set[str]:
    return {p.url for p in thread}


def threads_from_json(data: Any) -> List[Thread]:
    """Validate a JSON array of threads (each an array of post objects)."""
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of threads")

    threads: List[Thread] = []
    for raw_thread in data:
        if not isinstance(raw_thread, list):
            raise ValueError("expected each thread to be a JSON array of posts")
        threads.append([Post.from_dict(p) for p in raw_thread])
    return threads


def threads_to_json(threads: List[Thread]) -> List[List[Dict[str, Any]]]:
    return [[p.to_dict() for p in thread] for thread in threads]
