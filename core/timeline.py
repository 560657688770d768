# core/timeline.py
"""
Normalize captured X GraphQL responses (UserTweets / TweetDetail) into Threads.

The capture itself (browser session, request interception) happens outside this
package; this module only understands the JSON shapes and is the validation boundary
between loosely-typed source data and `core.models.Post`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from core.models import Post, Thread, thread_urls

logger = logging.getLogger(__name__)

ENTRY_KINDS = ("profile-conversation", "tweet")
X_BASE_URL = "https://x.com"


def status_url(username: str, tweet_id: str) -> str:
    return f"{X_BASE_URL}/{username}/status/{tweet_id}"


def _dig(data: Any, *path: Any) -> Any:
    for key in path:
        if isinstance(data, dict):
            data = data.get(key)
        elif isinstance(data, list) and isinstance(key, int) and -len(data) <= key < len(data):
            data = data[key]
        else:
            return None
    return data


def _entry_type(entry: Dict[str, Any]) -> str:
    entry_id = str(entry.get("entryId", ""))
    return next((kind for kind in ENTRY_KINDS if entry_id.startswith(kind + "-")), "")


def _unwrap(result: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if isinstance(result, dict) and result.get("__typename") == "TweetWithVisibilityResults":
        return result.get("tweet")
    return result


def _screen_name(result: Dict[str, Any]) -> Optional[str]:
    user = _dig(result, "core", "user_results", "result") or {}
    return _dig(user, "legacy", "screen_name") or _dig(user, "core", "screen_name")


def _media_urls(legacy: Dict[str, Any]) -> List[str]:
    """Photo urls; videos and GIFs contribute their poster image."""
    urls: List[str] = []
    for media in _dig(legacy, "extended_entities", "media") or []:
        url = media.get("media_url_https")
        if url:
            urls.append(url)
    return urls


def _entry_tweet(container: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return _unwrap(_dig(container, "itemContent", "tweet_results", "result"))


def parse_tweet(result: Optional[Dict[str, Any]], username: str) -> Optional[Post]:
    """Turn one GraphQL tweet result into a Post (None if unusable)."""
    result = _unwrap(result)
    if not isinstance(result, dict):
        return None

    legacy = result.get("legacy") or {}
    tweet_id = result.get("rest_id") or legacy.get("id_str")
    if not tweet_id:
        return None

    quote = _dig(legacy, "quoted_status_permalink", "expanded")
    retweeted = _unwrap(_dig(legacy, "retweeted_status_result", "result"))

    if retweeted is not None:
        original_user = _screen_name(retweeted) or "i"
        original_id = retweeted.get("rest_id") or tweet_id
        profile = f"{X_BASE_URL}/{original_user}"
        original = status_url(original_user, original_id)

        head = "Retweet from "
        middle = "\n\nOriginal Tweet: "
        text = f"{head}{profile}{middle}{original}"
        profile_start = len(head)
        original_start = profile_start + len(profile) + len(middle)
        raw = {
            "text": text,
            "images": [],
            "url": status_url(username, tweet_id),
            "retweeted": True,
            "quote_retweeted": bool(quote),
            "quote": quote,
            "urls": [
                {
                    "display_url": profile.replace("https://", ""),
                    "expanded_url": profile,
                    "url": profile,
                    "indices": [profile_start, profile_start + len(profile)],
                },
                {
                    "display_url": original.replace("https://", ""),
                    "expanded_url": original,
                    "url": original,
                    "indices": [original_start, original_start + len(original)],
                },
            ],
        }
    else:
        raw = {
            "text": legacy.get("full_text") or "",
            "images": _media_urls(legacy),
            "url": status_url(username, tweet_id),
            "retweeted": False,
            "quote_retweeted": bool(quote),
            "quote": quote,
            "urls": _dig(legacy, "entities", "urls") or [],
        }

    try:
        return Post.from_dict(raw)
    except ValueError as e:
        logger.warning("Skipping tweet %s: %s", tweet_id, e)
        return None


def _timeline_entries(instructions: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    for instruction in instructions or []:
        if instruction.get("type") == "TimelineAddEntries":
            entries.extend(instruction.get("entries") or [])
    return entries


def parse_user_tweets(payload: Dict[str, Any], username: str) -> List[Thread]:
    """Threads from a UserTweets response: single tweets and profile conversations."""
    timeline = _dig(payload, "data", "user", "result", "timeline_v2", "timeline") or _dig(
        payload, "data", "user", "result", "timeline", "timeline"
    )
    threads: List[Thread] = []

    for entry in _timeline_entries(_dig(timeline, "instructions") or []):
        kind = _entry_type(entry)
        content = entry.get("content") or {}

        if kind == "tweet":
            post = parse_tweet(_entry_tweet(content), username)
            if post:
                threads.append([post])
        elif kind == "profile-conversation":
            thread = [parse_tweet(_entry_tweet(item.get("item") or {}), username) for item in content.get("items") or []]
            thread = [p for p in thread if p]
            if thread:
                threads.append(thread)

    logger.debug("Parsed %d thread(s) from UserTweets payload.", len(threads))
    return threads


def parse_tweet_detail(payload: Dict[str, Any], username: str) -> Thread:
    """The author's conversation from a TweetDetail response, in timeline order."""
    instructions = _dig(payload, "data", "threaded_conversation_with_injections_v2", "instructions") or []
    thread: Thread = []
    for entry in _timeline_entries(instructions):
        if _entry_type(entry) != "tweet":
            continue
        post = parse_tweet(_entry_tweet(entry.get("content") or {}), username)
        if post:
            thread.append(post)
    return thread


def apply_conversation_details(threads: List[Thread], details: Iterable[Thread]) -> List[Thread]:
    """Replace each timeline thread with the full conversation that shares a url with it."""
    out = list(threads)
    for detail in details:
        if not detail:
            continue
        detail_urls = thread_urls(detail)
        for i, thread in enumerate(out):
            if thread_urls(thread) & detail_urls:
                out[i] = detail
                break
        else:
            logger.debug("TweetDetail conversation %s matches no timeline thread.", detail[0].url)
    return out


def classify_payload(payload: Any) -> str:
    """'threads' | 'user_tweets' | 'tweet_detail' | 'unknown'"""
    if isinstance(payload, list):
        return "threads"
    if _dig(payload, "data", "user") is not None:
        return "user_tweets"
    if _dig(payload, "data", "threaded_conversation_with_injections_v2") is not None:
        return "tweet_detail"
    return "unknown"
