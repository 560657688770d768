# socials/types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PostRef:
    """Normalized reference to a published post on a destination platform.

    platform:  "bluesky" | "tumblr" | ...
    id:        canonical id for the platform (Bluesky URI, Tumblr post id)
    uri:       Bluesky URI if available (needed for replies)
    cid:       Bluesky CID if available (needed for replies)
    published: whether the post is publicly visible yet
    raw:       original dict returned by the platform adapter (debugging/forensics)
    """

    platform: str
    id: str
    uri: str | None = None
    cid: str | None = None
    published: bool = True
    raw: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "id": self.id,
            "uri": self.uri,
            "cid": self.cid,
            "published": self.published,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PostRef":
        return cls(
            platform=str(data.get("platform") or "unknown"),
            id=str(data.get("id") or data.get("uri") or ""),
            uri=data.get("uri"),
            cid=data.get("cid"),
            published=bool(data.get("published", True)),
        )


@dataclass(frozen=True)
class ReplyRef:
    """Where a new post hangs in a reply chain: the thread root and the direct parent."""

    root: PostRef
    parent: PostRef
