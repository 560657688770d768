# socials/composer.py
"""
Publish source posts to one destination as a reply chain.

Posting is strictly sequential: chunk N+1 needs chunk N's server-assigned reference to
build its reply link. That dependency is expressed as a fold over chunks (and over the
posts of a thread) carrying a `_ChainState` accumulator.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import reduce
from typing import Any, Callable, List, Optional, Sequence, Tuple

from core.annotations import render_post
from core.models import Chunk, Post
from core.remapper import build_chunks
from socials.base import MediaFailure, PostFailure, SocialClient, SocialPost
from socials.types import PostRef, ReplyRef

logger = logging.getLogger(__name__)

ImageFetcher = Callable[[str], bytes]


@dataclass(frozen=True)
class _ChainState:
    root: Optional[PostRef] = None
    parent: Optional[PostRef] = None
    posted: int = 0


@dataclass(frozen=True)
class ComposeResult:
    """Root of the chain and the last reference posted for one source post."""

    root: PostRef
    last: PostRef
    chunks: int


@dataclass
class ThreadOutcome:
    """What happened on one platform for the pending posts of one thread."""

    platform: str
    published: List[Tuple[Post, ComposeResult]] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ThreadComposer:
    """
    Chunk, remap and post source posts to one client.

    max_length:      chunk size (None = post unchunked)
    thread_marker:   appended to the first chunk when a post needs more than one
    require_images:  if True a media failure fails the post; otherwise it goes out text-only
    """

    def __init__(
        self,
        client: SocialClient,
        fetch_image: ImageFetcher,
        max_length: Optional[int] = 290,
        thread_marker: str = " 🧵",
        require_images: bool = False,
        max_images: int = 4,
        image_workers: int = 4,
    ):
        self.client = client
        self.fetch_image = fetch_image
        self.max_length = max_length
        self.thread_marker = thread_marker
        self.require_images = require_images
        self.max_images = max_images
        self.image_workers = image_workers

    @property
    def platform(self) -> str:
        return getattr(self.client, "platform", "unknown")

    # ---------- chunks ----------

    def chunks_for(self, post: Post) -> List[Chunk]:
        text, annotations = render_post(post)
        return build_chunks(text, annotations, self.max_length, self.thread_marker)

    # ---------- media ----------

    def _fetch_and_upload(self, url: str) -> Any:
        try:
            data = self.fetch_image(url)
        except Exception as e:
            raise MediaFailure(f"Could not fetch image {url}: {e}") from e
        return self.client.upload_image(data, alt_text="")

    def prepare_media(self, post: Post) -> List[Any]:
        """
        Media handles for the first chunk. Images are fetched (and uploaded) concurrently;
        order is preserved.
        """
        urls = list(post.images)[: self.max_images]
        if not urls:
            return []
        if getattr(self.client, "accepts_hosted_media", False):
            return urls

        logger.info("%s: uploading %d image(s) for %s", self.platform, len(urls), post.url)
        try:
            with ThreadPoolExecutor(max_workers=min(self.image_workers, len(urls))) as pool:
                return list(pool.map(self._fetch_and_upload, urls))
        except Exception as e:
            if self.require_images:
                raise PostFailure(f"Images required but unavailable for {post.url}: {e}", platform=self.platform) from e
            logger.warning("%s: media failed for %s (%s); posting text only.", self.platform, post.url, e)
            return []

    # ---------- posting ----------

    def _post_chunk(self, media: Sequence[Any]) -> Callable[[_ChainState, Tuple[int, Chunk]], _ChainState]:
        def step(state: _ChainState, indexed: Tuple[int, Chunk]) -> _ChainState:
            index, chunk = indexed
            reply = ReplyRef(root=state.root, parent=state.parent) if state.parent and state.root else None
            outgoing = SocialPost(
                text=chunk.text,
                annotations=list(chunk.annotations),
                media=list(media) if index == 0 else [],
            )

            logger.debug("%s: posting chunk %d (%d chars)", self.platform, index, len(chunk.text))
            try:
                ref = self.client.post(outgoing, reply=reply)
            except PostFailure as e:
                raise PostFailure(str(e), platform=self.platform, posted=state.posted, last=state.parent) from e
            except Exception as e:
                raise PostFailure(
                    f"{self.platform} post raised: {e}", platform=self.platform, posted=state.posted, last=state.parent
                ) from e
            if ref is None:
                raise PostFailure(
                    f"{self.platform} returned no reference", platform=self.platform, posted=state.posted, last=state.parent
                )

            return _ChainState(root=state.root or ref, parent=ref, posted=state.posted + 1)

        return step

    def compose_post(
        self,
        post: Post,
        parent: Optional[PostRef] = None,
        root: Optional[PostRef] = None,
    ) -> ComposeResult:
        """
        Post every chunk of `post` in order, each replying to the previous one.

        With no `parent` the first chunk starts a new chain and becomes its root. With a
        `parent` (this post continues an earlier one) the first chunk replies to it under
        `root` (defaulting to `parent`). Images ride on chunk 0 only.

        Raises PostFailure on the first rejected chunk; nothing after it is sent.
        """
        chunks = self.chunks_for(post)
        media = self.prepare_media(post)

        start = _ChainState(root=root or parent, parent=parent)
        final = reduce(self._post_chunk(media), enumerate(chunks), start)

        logger.info("%s: posted %s in %d chunk(s)", self.platform, post.url, final.posted)
        return ComposeResult(root=final.root, last=final.parent, chunks=final.posted)

    def compose_thread(
        self,
        posts: Sequence[Post],
        root: Optional[PostRef] = None,
        parent: Optional[PostRef] = None,
    ) -> ThreadOutcome:
        """
        Post `posts` in order as one chain. Stops at the first failing post; the outcome
        lists every post that was fully published before it.
        """
        outcome = ThreadOutcome(platform=self.platform)
        anchor = _ChainState(root=root or parent, parent=parent)

        for post in posts:
            try:
                result = self.compose_post(post, parent=anchor.parent, root=anchor.root)
            except PostFailure as e:
                logger.error(
                    "%s: aborting thread at %s after %d chunk(s): %s", self.platform, post.url, e.posted, e
                )
                outcome.error = e
                break
            outcome.published.append((post, result))
            anchor = _ChainState(root=result.root, parent=result.last)

        return outcome
