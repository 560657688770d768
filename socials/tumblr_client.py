# socials/tumblr_client.py
from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from typing import Any, Optional

import requests
from requests_oauthlib import OAuth1

from core.annotations import scan_links, strip_hashtags
from socials.base import AuthFailure, MediaFailure, PostFailure, SocialClient, SocialPost
from socials.types import PostRef, ReplyRef

logger = logging.getLogger(__name__)

TUMBLR_API = "https://api.tumblr.com/v2"


@dataclass
class TumblrConfig:
    consumer_key: str
    consumer_secret: str
    token: str
    token_secret: str
    blog_identifier: str


class TumblrClient(SocialClient):
    """
    Tumblr (NPF) client compatible with SocialPublisher.

    - No native threading: every source post becomes one standalone Tumblr post with its
      full, unchunked text. `reply` is accepted and ignored.
    - Hashtags are stripped from the text and sent as the post's tags.
    - Images are referenced by their hosted url in an image block (no binary upload).
    """

    platform = "tumblr"
    accepts_hosted_media = True

    def __init__(self, config: TumblrConfig) -> None:
        self.config = config
        self.session = requests.Session()
        self.session.auth = OAuth1(
            config.consumer_key,
            client_secret=config.consumer_secret,
            resource_owner_key=config.token,
            resource_owner_secret=config.token_secret,
        )
        self.session.headers.update({"User-Agent": "mirrorbot/1.0"})

    def login_or_restore(self) -> None:
        """OAuth1 tokens are long-lived; verify them once against /user/info."""
        try:
            resp = self.session.get(f"{TUMBLR_API}/user/info", timeout=15)
        except requests.RequestException as e:
            raise AuthFailure(f"Tumblr credential check failed: {e}") from e
        if resp.status_code in (401, 403):
            raise AuthFailure(f"Tumblr rejected credentials: status={resp.status_code} body={resp.text}")
        if resp.status_code >= 300:
            logger.warning("Tumblr user/info returned status=%s; continuing.", resp.status_code)

    def upload_image(self, data: bytes, alt_text: str = "") -> Any:
        raise MediaFailure("Tumblr takes hosted image urls")

    # ---- payload ----------------------------------------------------------

    @staticmethod
    def build_content(text: str, image_urls: list[str]) -> tuple[list[dict[str, Any]], list[str]]:
        """NPF content blocks (image block first, then text) plus the derived tag list."""
        body, tags = strip_hashtags(text)

        formatting = [{"start": a.start, "end": a.end, "type": "link", "url": a.target} for a in scan_links(body)]

        content: list[dict[str, Any]] = []
        if image_urls:
            media = []
            for url in image_urls:
                mime, _ = mimetypes.guess_type(url.split("?")[0])
                media.append({"type": mime or "image/jpeg", "url": url})
            content.append({"type": "image", "media": media})

        text_block: dict[str, Any] = {"type": "text", "text": body}
        if formatting:
            text_block["formatting"] = formatting
        content.append(text_block)
        return content, tags

    # ---- public API -------------------------------------------------------

    def post(self, post: SocialPost, reply: Optional[ReplyRef] = None) -> PostRef:
        image_urls = [m for m in post.media if isinstance(m, str)]
        content, tags = self.build_content(post.text or "", image_urls)

        payload = {"content": content, "state": "published", "tags": ",".join(tags)}
        url = f"{TUMBLR_API}/blog/{self.config.blog_identifier}/posts"

        try:
            resp = self.session.post(url, json=payload, timeout=30)
        except requests.RequestException as e:
            raise PostFailure(f"Tumblr request failed: {e}", platform=self.platform) from e

        if resp.status_code >= 300:
            raise PostFailure(
                f"Tumblr createPost failed: status={resp.status_code} body={resp.text}",
                platform=self.platform,
            )

        js = resp.json()
        post_id = (js.get("response") or {}).get("id_string") or (js.get("response") or {}).get("id")
        if not post_id:
            raise PostFailure("Tumblr returned no post id", platform=self.platform)

        logger.info("Tumblr: created post %s on %s", post_id, self.config.blog_identifier)
        return PostRef(platform=self.platform, id=str(post_id), raw=js.get("response"))
