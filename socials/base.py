# socials/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from core.models import Annotation
from socials.types import PostRef, ReplyRef


class AuthFailure(Exception):
    """Login to a destination platform was rejected."""


class MediaFailure(Exception):
    """An image could not be fetched or uploaded."""


class PostFailure(Exception):
    """
    A destination rejected a post.

    `posted` is how many chunks of the current source post made it out before the
    failure and `last` is the reference of the last one, so the caller knows exactly how
    far a partial thread got.
    """

    def __init__(self, message: str, platform: str = "unknown", posted: int = 0, last: Optional[PostRef] = None):
        super().__init__(message)
        self.platform = platform
        self.posted = posted
        self.last = last


@dataclass
class SocialPost:
    """
    A single outbound post payload (one chunk).

    - `annotations` are link/hashtag spans in `text` coordinates.
    - `media` holds whatever the client's `upload_image()` returned (or hosted image urls
      for clients with `accepts_hosted_media`).
    - Threading is handled by passing a ReplyRef separately to the client's `post()`.
    """

    text: str = ""
    annotations: List[Annotation] = field(default_factory=list)
    media: List[Any] = field(default_factory=list)
    alt_text: str = ""


class SocialClient(Protocol):
    """
    All platform adapters (Bluesky, Tumblr) implement this.

    MUST:
      - Raise AuthFailure from login_or_restore() when credentials are rejected
      - Create the post on the target platform, threaded under `reply` when the platform
        supports it
      - Return a PostRef that uniquely identifies the created post, or raise PostFailure
    """

    platform: str
    accepts_hosted_media: bool

    def login_or_restore(self) -> None: ...

    def upload_image(self, data: bytes, alt_text: str = "") -> Any: ...

    def post(self, post: SocialPost, reply: Optional[ReplyRef] = None) -> PostRef: ...
