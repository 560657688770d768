"""Shared pytest fixtures and configuration

This file contains fixtures that can be used across all test files.
Pytest automatically discovers this file and makes fixtures available.
"""

import json
from unittest.mock import Mock

import pytest

from core.models import Post
from socials.base import PostFailure
from socials.types import PostRef

# ==================== Factories ====================


def status(n):
    """Canonical url for test tweet number n"""
    return f"https://x.com/example/status/{n}"


def make_post(n, text=None, **kwargs):
    """Build a Post whose url is derived from n"""
    return Post(url=status(n), text=text if text is not None else f"post {n}", **kwargs)


class FakeClient:
    """In-memory SocialClient that records every call.

    fail_on: 1-based index of the post() call that should raise PostFailure
    """

    accepts_hosted_media = False

    def __init__(self, platform="bluesky", fail_on=None, hosted=False):
        self.platform = platform
        self.fail_on = fail_on
        self.accepts_hosted_media = hosted
        self.calls = []
        self.uploads = []
        self.logins = 0

    def login_or_restore(self):
        self.logins += 1

    def upload_image(self, data, alt_text=""):
        handle = f"blob:{data.decode()}"
        self.uploads.append(data)
        return handle

    def post(self, post, reply=None):
        self.calls.append((post, reply))
        if self.fail_on is not None and len(self.calls) == self.fail_on:
            raise PostFailure("rejected", platform=self.platform)
        n = len(self.calls)
        return PostRef(platform=self.platform, id=f"{self.platform}-{n}", uri=f"at://{self.platform}/{n}", cid=f"cid{n}")


# ==================== Fixtures ====================


@pytest.fixture
def fake_client():
    """A recording fake client for the bluesky platform"""
    return FakeClient()


@pytest.fixture
def fetch_image():
    """Image fetcher returning the url itself as bytes"""
    return Mock(side_effect=lambda url: url.encode())


@pytest.fixture
def base_config():
    """Minimal config with every social disabled"""
    return {
        "script": {"log_file_name": "test", "interval_seconds": 60, "nosocial": False, "mode": "prod"},
        "source": {"username": "example", "capture_dir": "captures"},
        "store": {"path": "postedTweets.json"},
        "socials": {"bluesky": False, "tumblr": False},
    }


@pytest.fixture
def capture_dir(tmp_path):
    """An empty capture directory"""
    d = tmp_path / "captures"
    d.mkdir()
    return d


@pytest.fixture
def write_json():
    """Helper that writes a JSON document to a path"""

    def _write(path, data):
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


# ==================== Sample payloads ====================


def tweet_result(tweet_id, text, media=None, urls=None, quote=None, retweet_of=None, wrap=False):
    """A GraphQL tweet result in the shape the timeline endpoints return"""
    legacy = {"full_text": text, "id_str": str(tweet_id), "entities": {"urls": urls or []}}
    if media:
        legacy["extended_entities"] = {"media": media}
    if quote:
        legacy["quoted_status_permalink"] = {"expanded": quote}
    if retweet_of:
        user, original_id = retweet_of
        legacy["retweeted_status_result"] = {
            "result": {
                "__typename": "Tweet",
                "rest_id": str(original_id),
                "core": {"user_results": {"result": {"legacy": {"screen_name": user}}}},
                "legacy": {"full_text": "original"},
            }
        }
    result = {"__typename": "Tweet", "rest_id": str(tweet_id), "legacy": legacy}
    if wrap:
        return {"__typename": "TweetWithVisibilityResults", "tweet": result}
    return result


def tweet_item(result):
    return {"itemContent": {"tweet_results": {"result": result}}}


def user_tweets_payload(entries):
    return {
        "data": {
            "user": {
                "result": {
                    "timeline_v2": {
                        "timeline": {
                            "instructions": [
                                {"type": "TimelinePinEntry"},
                                {"type": "TimelineAddEntries", "entries": entries},
                            ]
                        }
                    }
                }
            }
        }
    }


def tweet_entry(tweet_id, result):
    return {"entryId": f"tweet-{tweet_id}", "content": tweet_item(result)}


def conversation_entry(key, results):
    return {
        "entryId": f"profile-conversation-{key}",
        "content": {"items": [{"item": tweet_item(r)} for r in results]},
    }


def tweet_detail_payload(results):
    entries = [{"entryId": f"tweet-{r['rest_id']}", "content": tweet_item(r)} for r in results]
    entries.append({"entryId": "cursor-bottom-1", "content": {}})
    return {
        "data": {
            "threaded_conversation_with_injections_v2": {
                "instructions": [{"type": "TimelineAddEntries", "entries": entries}]
            }
        }
    }
