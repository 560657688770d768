# core/reconciler.py
"""
Merge freshly observed threads into the record of already-mirrored threads.

Thread identity is url overlap: an observed thread and a stored thread are the same
thread if they share at least one post url. Stored posts are never rewritten or
reordered; observed posts that are new get appended to the thread they belong to, and
observed threads that match nothing become new threads at the front of the record.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set

from core.models import Post, Thread, thread_urls, threads_to_json

logger = logging.getLogger(__name__)


@dataclass
class ReconcileAnomaly:
    """An observed thread that overlaps more than one stored thread."""

    observed_index: int
    stored_indexes: List[int]
    urls: List[str]


@dataclass
class ReconcileResult:
    merged: List[Thread]
    changed: bool
    anomalies: List[ReconcileAnomaly] = field(default_factory=list)


def serialize_threads(threads: Sequence[Thread]) -> str:
    """Canonical serialization used for change detection."""
    return json.dumps(threads_to_json(list(threads)), ensure_ascii=False, sort_keys=True)


def reconcile(observed: Sequence[Thread], stored: Sequence[Thread]) -> ReconcileResult:
    """
    Reconcile `observed` against `stored`.

    - Every observed thread overlapping a stored thread is merged into the FIRST stored
      thread it overlaps; if it overlaps more than one, that is recorded and logged as an
      anomaly rather than raised.
    - Observed threads matching no stored thread but overlapping each other are joined
      into a single new thread, in observed order.
    - Posts are appended in observed order, skipping urls already present anywhere in the
      output, so no url ever occurs twice.
    - `changed` is True iff the serialized output differs from the serialized store.
    """
    stored_url_sets = [thread_urls(t) for t in stored]
    seen: Set[str] = set().union(*stored_url_sets) if stored_url_sets else set()

    extensions: Dict[int, List[Post]] = {}
    new_threads: List[Thread] = []
    new_url_sets: List[Set[str]] = []
    anomalies: List[ReconcileAnomaly] = []

    for obs_index, obs_thread in enumerate(observed):
        obs_urls = thread_urls(obs_thread)
        matches = [i for i, urls in enumerate(stored_url_sets) if urls & obs_urls]

        if len(matches) > 1:
            anomaly = ReconcileAnomaly(
                observed_index=obs_index,
                stored_indexes=matches,
                urls=sorted(obs_urls),
            )
            anomalies.append(anomaly)
            logger.warning(
                "Observed thread #%d overlaps %d stored threads (%s); merging into stored thread #%d only.",
                obs_index,
                len(matches),
                matches,
                matches[0],
            )

        fresh: List[Post] = []
        for post in obs_thread:
            if post.url in seen:
                continue
            seen.add(post.url)
            fresh.append(post)

        if matches:
            # Later observed threads match on anything merged so far, not just stored urls.
            stored_url_sets[matches[0]] |= obs_urls
            if fresh:
                extensions.setdefault(matches[0], []).extend(fresh)
            continue

        # Overlap between observed threads (e.g. an older and a newer capture of the same
        # conversation) joins them into one new thread.
        joined = next((i for i, urls in enumerate(new_url_sets) if urls & obs_urls), None)
        if joined is not None:
            new_url_sets[joined] |= obs_urls
            new_threads[joined].extend(fresh)
        elif fresh:
            new_url_sets.append(set(obs_urls))
            new_threads.append(fresh)

    merged_stored = [list(thread) + extensions.get(i, []) for i, thread in enumerate(stored)]
    merged = new_threads + merged_stored

    changed = serialize_threads(merged) != serialize_threads(stored)
    if changed:
        logger.info(
            "Reconciled: %d new thread(s), %d extended thread(s).",
            len(new_threads),
            len(extensions),
        )
    return ReconcileResult(merged=merged, changed=changed, anomalies=anomalies)


def pending_posts(merged: Sequence[Thread], stored: Sequence[Thread]) -> List[List[Post]]:
    """
    Posts of each merged thread that are not yet in the store (same indexing as `merged`).
    """
    stored_urls: Set[str] = set()
    for thread in stored:
        stored_urls |= thread_urls(thread)
    return [[p for p in thread if p.url not in stored_urls] for thread in merged]


def pending_by_platform(thread: Thread, new_urls: Set[str], platforms: Sequence[str]) -> Dict[str, List[Post]]:
    """
    Per platform, the posts of `thread` it still has to receive, in thread order: the new
    posts plus stored posts marked pending for that platform by an earlier cycle.
    """
    return {name: [p for p in thread if p.url in new_urls or p.pending_on(name)] for name in platforms}
