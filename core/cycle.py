# core/cycle.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Protocol, Sequence

import pytz

from core.models import Post, Thread
from core.reconciler import pending_by_platform, pending_posts, reconcile, serialize_threads
from core.source import FetchFailure, ThreadSource
from core.store import StoreError, ThreadStore
from utils.others import next_run_time

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    nosocial: bool
    platforms: List[str]

    def login_all(self) -> List[str]: ...

    def publish_thread(self, thread: Thread, pending: Mapping[str, Sequence[Post]]) -> Dict[str, Any]: ...


@dataclass
class CycleReport:
    observed: int = 0
    new_posts: int = 0
    published: int = 0
    committed: int = 0
    saved: bool = False
    skipped: bool = False


def commit_thread(
    thread: Thread,
    new: Sequence[Post],
    outcomes: Dict[str, Any],
    platforms: Sequence[str] = (),
) -> Thread:
    """
    The part of `thread` that may be stored after a publish pass.

    A new post is kept only if at least one platform published it and every new post
    before it was kept. Kept posts record each platform's chain in `mirrors`; every other
    platform in `platforms` gets a pending marker so it receives the post in a later
    cycle. Stored posts are always kept; a platform that now published one of them
    replaces its pending marker. Dropped posts will be observed again next cycle.
    """
    published: Dict[str, Dict[str, Any]] = {}
    for platform, outcome in outcomes.items():
        for post, result in outcome.published:
            published.setdefault(post.url, {})[platform] = result

    new_urls = {p.url for p in new}
    kept: Thread = []
    blocked = False
    for post in thread:
        results = published.get(post.url) or {}
        if post.url in new_urls:
            if blocked or not results:
                blocked = True
                continue
            for platform in platforms:
                if platform not in results:
                    post = post.with_pending(platform)
        for platform, result in results.items():
            post = post.with_mirror(platform, result.root.to_dict(), result.last.to_dict())
        kept.append(post)
    return kept


class MirrorCycle:
    """
    One observe → reconcile → publish → commit pass.

    Not reentrant: if a cycle is still running (e.g. stuck on a remote call), a second
    invocation returns immediately. `run_once` never raises.
    """

    def __init__(self, source: ThreadSource, store: ThreadStore, publisher: Publisher, persist: bool = True):
        self.source = source
        self.store = store
        self.publisher = publisher
        self.persist = persist
        self._lock = threading.Lock()

    def run_once(self) -> CycleReport:
        report = CycleReport()
        if not self._lock.acquire(blocking=False):
            logger.warning("Previous cycle still running; skipping this one.")
            report.skipped = True
            return report

        try:
            self._run(report)
        except Exception as e:
            logger.exception("Cycle failed: %s", e)
        finally:
            self._lock.release()
        return report

    def _run(self, report: CycleReport) -> None:
        try:
            observed = self.source.fetch_threads()
        except FetchFailure as e:
            logger.error("Source unavailable; store untouched: %s", e)
            return
        report.observed = len(observed)

        try:
            stored = self.store.load()
        except StoreError as e:
            logger.error("Thread store unreadable; skipping this cycle: %s", e)
            return

        result = reconcile(observed, stored)
        registered = list(self.publisher.platforms)
        new = pending_posts(result.merged, stored)
        backlogs = [pending_by_platform(thread, {p.url for p in todo}, registered) for thread, todo in zip(result.merged, new)]

        report.new_posts = sum(len(todo) for todo in new)
        retries = sum(1 for thread in stored for p in thread for name in registered if p.pending_on(name))
        if not result.changed and not retries:
            logger.info("No new posts to mirror.")
            return

        logger.info("New posts found: %d across %d thread(s).", report.new_posts, sum(1 for todo in new if todo))
        if retries:
            logger.info("Retrying %d post(s) a platform missed in an earlier cycle.", retries)

        ready = self.publisher.login_all()
        if not ready:
            logger.warning("No destination platform is available; nothing will be committed this cycle.")

        final: List[Thread] = []
        for thread, todo, backlog in zip(result.merged, new, backlogs):
            targets = {name: posts for name, posts in backlog.items() if posts and name in ready}
            if not todo and not targets:
                final.append(thread)
                continue

            try:
                outcomes = self.publisher.publish_thread(thread, targets) if targets else {}
            except Exception:
                logger.exception("Publishing thread %s failed; leaving its posts pending.", thread[0].url)
                outcomes = {}

            kept = commit_thread(thread, todo, outcomes, registered)
            new_urls = {p.url for p in todo}
            report.committed += sum(1 for p in kept if p.url in new_urls)
            report.published += sum(len(o.published) for o in outcomes.values())
            if kept:
                final.append(kept)

        if serialize_threads(final) == serialize_threads(stored):
            logger.info("Nothing was published; store unchanged.")
            return

        if not self.persist:
            logger.info("[NOSOCIAL] Not writing the thread store (%d post(s) would be committed).", report.committed)
            return

        report.saved = self.store.compare_and_swap(stored, final)


def run_forever(cycle: MirrorCycle, interval_seconds: float, tz=None) -> None:
    """Run `cycle` every `interval_seconds` until interrupted."""
    tz = tz or pytz.utc
    try:
        while True:
            started = time.monotonic()
            report = cycle.run_once()
            logger.info(
                "Cycle done: observed=%d new=%d published=%d committed=%d saved=%s",
                report.observed,
                report.new_posts,
                report.published,
                report.committed,
                report.saved,
            )
            wait = max(0.0, interval_seconds - (time.monotonic() - started))
            logger.info("Next run scheduled at: %s", next_run_time(wait, tz))
            time.sleep(wait)
    except KeyboardInterrupt:
        logger.info("Interrupted; exiting.")
