# core/source.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Protocol, Union

from core.models import Thread, threads_from_json
from core.timeline import apply_conversation_details, classify_payload, parse_tweet_detail, parse_user_tweets

logger = logging.getLogger(__name__)


class FetchFailure(Exception):
    """The source feed could not be read this cycle; nothing downstream should change."""


class ThreadSource(Protocol):
    def fetch_threads(self) -> List[Thread]: ...


class CaptureSource:
    """
    Reads threads from a directory of captured timeline responses.

    Each `*.json` file (read in name order) is one of:
      - a list of threads already in store format,
      - a UserTweets GraphQL response,
      - a TweetDetail GraphQL response (replaces the matching timeline thread).
    """

    def __init__(self, capture_dir: Union[str, Path], username: str):
        self.capture_dir = Path(capture_dir)
        self.username = username

    def fetch_threads(self) -> List[Thread]:
        if not self.capture_dir.is_dir():
            raise FetchFailure(f"Capture directory {self.capture_dir} does not exist.")

        threads: List[Thread] = []
        details: List[Thread] = []
        saw_timeline = False

        for path in sorted(self.capture_dir.glob("*.json")):
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise FetchFailure(f"Unreadable capture {path}: {e}") from e

            kind = classify_payload(payload)
            if kind == "threads":
                try:
                    threads.extend(threads_from_json(payload))
                except ValueError as e:
                    raise FetchFailure(f"Invalid thread list in {path}: {e}") from e
                saw_timeline = True
            elif kind == "user_tweets":
                threads.extend(parse_user_tweets(payload, self.username))
                saw_timeline = True
            elif kind == "tweet_detail":
                details.append(parse_tweet_detail(payload, self.username))
            else:
                logger.warning("Ignoring capture %s: unrecognized payload.", path)

        if not saw_timeline:
            raise FetchFailure(f"No timeline capture found in {self.capture_dir}.")

        threads = apply_conversation_details(threads, details)
        logger.info("Observed %d thread(s) from %s", len(threads), self.capture_dir)
        return threads
