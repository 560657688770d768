# socials/bluesky_client.py
from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from atproto import Client
from atproto import models as at_models
from PIL import Image

from core.models import Annotation
from socials.base import AuthFailure, MediaFailure, PostFailure, SocialClient, SocialPost
from socials.types import PostRef, ReplyRef

logger = logging.getLogger(__name__)


@dataclass
class BlueskyConfig:
    handle: str
    app_password: str
    service_url: str | None = None
    session_file: str | None = None


@dataclass
class UploadedImage:
    blob: Any
    alt: str
    width: int
    height: int


def _strong_ref(ref: PostRef) -> at_models.ComAtprotoRepoStrongRef.Main:
    return at_models.ComAtprotoRepoStrongRef.Main(uri=ref.uri or ref.id, cid=ref.cid or "")


def build_facets(text: str, annotations: Sequence[Annotation]) -> list[at_models.AppBskyRichtextFacet.Main]:
    """
    Convert character-offset annotations into Bluesky facets (UTF-8 byte offsets).
    Spans outside `text` are skipped.
    """
    facets: list[at_models.AppBskyRichtextFacet.Main] = []
    for a in sorted(annotations, key=lambda a: a.start):
        if a.start < 0 or a.end > len(text) or a.start >= a.end:
            continue
        byte_start = len(text[: a.start].encode("utf-8"))
        byte_end = byte_start + len(text[a.start : a.end].encode("utf-8"))

        if a.kind == "link":
            feature = at_models.AppBskyRichtextFacet.Link(uri=a.target)
        elif a.kind == "hashtag":
            feature = at_models.AppBskyRichtextFacet.Tag(tag=a.target)
        else:
            continue

        facets.append(
            at_models.AppBskyRichtextFacet.Main(
                index=at_models.AppBskyRichtextFacet.ByteSlice(byte_start=byte_start, byte_end=byte_end),
                features=[feature],
            )
        )
    return facets


def shrink_image(data: bytes, max_bytes: int, max_dim: int = 2000) -> bytes:
    """Re-encode an image as JPEG, stepping quality down until it fits under `max_bytes`."""
    with Image.open(io.BytesIO(data)) as im:
        img = im.convert("RGB")
    if max(img.size) > max_dim:
        img.thumbnail((max_dim, max_dim), Image.Resampling.LANCZOS)

    for quality in (85, 75, 65, 55, 45):
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=quality, optimize=True)
        if buf.tell() <= max_bytes:
            return buf.getvalue()

    raise MediaFailure(f"Image still larger than {max_bytes} bytes after re-encoding")


class BlueskyClient(SocialClient):
    """
    Bluesky client:
      - Restores/saves session.
      - Posts with explicit facets built from pre-computed annotations.
      - Uploads images as blobs (re-encoding anything over the blob limit).
      - Threads replies with a root/parent ReplyRef.
    """

    platform = "bluesky"
    accepts_hosted_media = False

    # Bluesky currently limits blobs to ~1,000,000 bytes (~976.56 KiB).
    MAX_BLOB_BYTES: int = 975 * 1024
    MAX_IMAGES: int = 4

    def __init__(self, cfg: BlueskyConfig):
        self.cfg = cfg
        self.client = Client(cfg.service_url or "https://bsky.social")

    # ---------------- Session helpers ----------------

    def _load_session(self) -> bool:
        sf = self.cfg.session_file
        if not sf:
            return False
        p = Path(sf)
        if not p.exists():
            return False
        try:
            session = p.read_text(encoding="utf-8")
            self.client.login(session_string=json.loads(session)["session"])
            logger.info("Bluesky session restored from %s", p)
            return True
        except Exception as e:
            logger.warning("Failed to restore Bluesky session (%s). Will re-login.", e)
            return False

    def _save_session(self) -> None:
        sf = self.cfg.session_file
        if not sf:
            return
        p = Path(sf)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps({"session": self.client.export_session_string()}), encoding="utf-8")
        logger.info("Bluesky session saved to %s", p)

    def login_or_restore(self) -> None:
        if self._load_session():
            return
        try:
            self.client.login(self.cfg.handle, self.cfg.app_password)
        except Exception as e:
            raise AuthFailure(f"Bluesky login rejected for {self.cfg.handle}: {e}") from e
        self._save_session()

    # ---------------- Media ----------------

    def upload_image(self, data: bytes, alt_text: str = "") -> UploadedImage:
        if len(data) > self.MAX_BLOB_BYTES:
            logger.info("BlueskyClient: image is %.2f MB; re-encoding to fit the blob limit.", len(data) / (1024 * 1024))
            try:
                data = shrink_image(data, self.MAX_BLOB_BYTES)
            except MediaFailure:
                raise
            except Exception as e:
                raise MediaFailure(f"Could not re-encode oversized image: {e}") from e

        # Extract dimensions for aspect ratio (falls back if PIL can't read)
        width = height = 0
        try:
            with Image.open(io.BytesIO(data)) as im:
                width, height = im.size
        except Exception:
            logger.debug("BlueskyClient: could not read image dimensions; using 16:9.")
        if not width or not height:
            width, height = 1200, 675

        try:
            uploaded = self.client.upload_blob(data)
        except Exception as e:
            raise MediaFailure(f"Bluesky blob upload failed: {e}") from e

        return UploadedImage(blob=uploaded.blob, alt=alt_text, width=width, height=height)

    def _images_embed(self, media: Sequence[UploadedImage]) -> at_models.AppBskyEmbedImages.Main:
        images = [
            at_models.AppBskyEmbedImages.Image(
                image=m.blob,
                alt=m.alt,
                aspect_ratio=at_models.AppBskyEmbedDefs.AspectRatio(width=m.width, height=m.height),
            )
            for m in list(media)[: self.MAX_IMAGES]
        ]
        return at_models.AppBskyEmbedImages.Main(images=images)

    # ---------------- Public API ----------------

    def post(self, post: SocialPost, reply: Optional[ReplyRef] = None) -> PostRef:
        """
        Create a Bluesky post. Facets come from `post.annotations`; images (already
        uploaded) are embedded; `reply` threads it under root/parent.
        """
        facets = build_facets(post.text, post.annotations) or None
        embed = self._images_embed(post.media) if post.media else None

        reply_to = None
        if reply is not None:
            reply_to = at_models.AppBskyFeedPost.ReplyRef(
                root=_strong_ref(reply.root),
                parent=_strong_ref(reply.parent),
            )

        try:
            created = self.client.send_post(text=post.text, facets=facets, embed=embed, reply_to=reply_to)
        except Exception as e:
            raise PostFailure(f"Bluesky rejected post: {e}", platform=self.platform) from e

        uri = str(getattr(created, "uri", "") or "")
        cid = str(getattr(created, "cid", "") or "")
        if not uri:
            raise PostFailure("Bluesky returned no uri for the created post", platform=self.platform)

        return PostRef(
            platform=self.platform,
            id=uri,
            uri=uri,
            cid=cid or None,
            published=True,
            raw={"uri": uri, "cid": cid},
        )
