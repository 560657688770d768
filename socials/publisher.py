# socials/publisher.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import uuid4

import yaml

from core.models import Post, Thread
from socials.base import AuthFailure, SocialClient, SocialPost
from socials.bluesky_client import BlueskyClient, BlueskyConfig
from socials.composer import ImageFetcher, ThreadComposer, ThreadOutcome
from socials.tumblr_client import TumblrClient, TumblrConfig
from socials.types import PostRef, ReplyRef
from utils.sessions import SessionFactory

logger = logging.getLogger(__name__)

# Per-platform chunking defaults; Bluesky's hard limit is 300 graphemes, leave room for the marker.
PLATFORM_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "bluesky": {"max_length": 290, "thread_marker": " 🧵", "require_images": False},
    "tumblr": {"max_length": None, "thread_marker": "", "require_images": False},
}


class _DryRunClient:
    """Stands in for a real client in NOSOCIAL mode: logs and returns placeholder refs."""

    accepts_hosted_media = True

    def __init__(self, platform: str):
        self.platform = platform

    def login_or_restore(self) -> None:
        logger.info("[NOSOCIAL] (%s) Skipping login.", self.platform)

    def upload_image(self, data: bytes, alt_text: str = "") -> Any:
        return None

    def post(self, post: SocialPost, reply: Optional[ReplyRef] = None) -> PostRef:
        preview = (post.text or "").strip().replace("\n", " ")[:180]
        action = "reply" if reply else "post"
        logger.info("[NOSOCIAL] (%s) Would %s → %s", self.platform, action, preview)
        logger.debug("[NOSOCIAL-FULL] (%s)\n%s", self.platform, post.text)
        ref_id = f"nosocial-{uuid4()}"
        return PostRef(platform=self.platform, id=ref_id, uri=ref_id, cid=ref_id)


class SocialPublisher:
    """
    Platform-agnostic publisher for mirrored threads.

    - login_all(): authenticate every enabled client; platforms that fail are left out
    - publish_thread(): post a thread's pending posts to each platform concurrently
      (each platform is an independent reply chain; within a platform posting is sequential)
    """

    def __init__(
        self,
        config: Union[dict, str, Path],  # accept dict or path to YAML
        mode: Optional[str] = None,  # "prod" | "debug" (overrides YAML)
        nosocial: Optional[bool] = None,  # override YAML script.nosocial
        fetch_image: Optional[ImageFetcher] = None,
    ):
        if isinstance(config, (str, Path)):
            with open(config, "r", encoding="utf-8") as f:
                self.cfg: dict = yaml.safe_load(f)
        else:
            self.cfg = dict(config)

        cfg_script = self.cfg.get("script", {}) or {}
        self.mode = (mode or cfg_script.get("mode") or "prod").lower()
        if self.mode not in ("prod", "debug"):
            self.mode = "prod"

        cfg_nosocial = bool(cfg_script.get("nosocial", False))
        self.nosocial = cfg_nosocial if nosocial is None else bool(nosocial)

        self.socials = self.cfg.get("socials", {}) or {}
        self._fetch_image = fetch_image or SessionFactory().fetch_bytes

        # Registry of active platforms
        self._composers: Dict[str, ThreadComposer] = {}

        if self.socials.get("bluesky", False):
            bc = self._platform_cfg("bluesky")
            client = (
                _DryRunClient("bluesky")
                if self.nosocial
                else BlueskyClient(
                    BlueskyConfig(
                        handle=bc["handle"],
                        app_password=bc["app_password"],
                        service_url=bc.get("service_url"),
                        session_file=bc.get("session_file"),
                    )
                )
            )
            self.register(client, bc)

        if self.socials.get("tumblr", False):
            tc = self._platform_cfg("tumblr")
            client = (
                _DryRunClient("tumblr")
                if self.nosocial
                else TumblrClient(
                    TumblrConfig(
                        consumer_key=tc["consumer_key"],
                        consumer_secret=tc["consumer_secret"],
                        token=tc["token"],
                        token_secret=tc["token_secret"],
                        blog_identifier=tc["blog_identifier"],
                    )
                )
            )
            self.register(client, tc)

    def _platform_cfg(self, platform: str) -> dict:
        section = self.cfg.get(platform) or {}
        # Accept both per-mode sections (bluesky.prod / bluesky.debug) and a flat section.
        return dict(section.get(self.mode) or section) if isinstance(section, dict) else {}

    def register(self, client: SocialClient, options: Optional[dict] = None) -> ThreadComposer:
        """Add a client (and its chunking options) to the fan-out."""
        platform = client.platform
        opts = dict(PLATFORM_DEFAULTS.get(platform, PLATFORM_DEFAULTS["bluesky"]))
        for key in ("max_length", "thread_marker", "require_images"):
            if options and key in options:
                opts[key] = options[key]

        composer = ThreadComposer(
            client,
            self._fetch_image,
            max_length=opts["max_length"],
            thread_marker=opts["thread_marker"] or "",
            require_images=bool(opts["require_images"]),
        )
        self._composers[platform] = composer
        return composer

    @property
    def platforms(self) -> List[str]:
        return list(self._composers.keys())

    # ---------- lifecycle ----------
    def login_all(self) -> List[str]:
        """Login/session-restore across enabled clients; returns the platforms ready to post."""
        ready: List[str] = []
        for name, composer in self._composers.items():
            try:
                composer.client.login_or_restore()
            except AuthFailure as e:
                logger.error("Login rejected for %s; skipping it this cycle: %s", name, e)
                continue
            except Exception as e:
                logger.exception("Login/restore failed for %s: %s", name, e)
                continue
            ready.append(name)
        return ready

    # ---------- anchors ----------
    @staticmethod
    def anchor_for(thread: Sequence[Post], pending: Sequence[Post], platform: str) -> Tuple[Optional[PostRef], Optional[PostRef]]:
        """
        (root, parent) to continue `thread` on `platform`: the chain recorded on the last
        already-mirrored post, or (None, None) to start a new chain.
        """
        pending_urls = {p.url for p in pending}
        for post in reversed(thread):
            if post.url in pending_urls:
                continue
            mirror = post.mirrors.get(platform)
            if mirror and mirror.get("last"):
                root = PostRef.from_dict(mirror.get("root") or mirror["last"])
                return root, PostRef.from_dict(mirror["last"])
        return None, None

    # ---------- high-level API ----------
    def publish_thread(
        self,
        thread: Thread,
        pending: Union[Sequence[Post], Mapping[str, Sequence[Post]]],
        platforms: Optional[Iterable[str]] = None,
    ) -> Dict[str, ThreadOutcome]:
        """
        Publish the not-yet-mirrored posts of `thread` to each target platform.

        `pending` is either one list of posts for every platform, or a mapping of platform
        to the posts that platform still has to receive. Best-effort per platform: one
        platform failing never affects another.
        """
        if isinstance(pending, dict):
            backlog = {name: list(posts) for name, posts in pending.items()}
            candidates = platforms if platforms is not None else backlog.keys()
        else:
            candidates = platforms if platforms is not None else self.platforms
            backlog = {name: list(pending) for name in candidates}
        targets = [p for p in candidates if p in self._composers and backlog.get(p)]
        if not targets:
            return {}

        def _run(name: str) -> ThreadOutcome:
            root, parent = self.anchor_for(thread, backlog[name], name)
            try:
                return self._composers[name].compose_thread(backlog[name], root=root, parent=parent)
            except Exception as e:
                logger.exception("SocialPublisher.publish_thread: %s raised; skipping this platform.", name)
                return ThreadOutcome(platform=name, error=e)

        with ThreadPoolExecutor(max_workers=len(targets)) as pool:
            outcomes = dict(zip(targets, pool.map(_run, targets)))

        for name, outcome in outcomes.items():
            logger.info(
                "%s: published %d/%d post(s) for thread %s%s",
                name,
                len(outcome.published),
                len(backlog[name]),
                thread[0].url if thread else "?",
                "" if outcome.ok else f" (error: {outcome.error})",
            )
        return outcomes
