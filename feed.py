"""Public feed: live like/comment counts, trending, search and site stats."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from database import COMMENTS, LIKES, SNIPPETS, get_documents, to_utc

logger = logging.getLogger("snipshare.feed")

TRENDING_LIMIT = 3

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def author_label(user_id: str) -> str:
    """Public placeholder for a snippet owner; emails are never exposed."""
    return f"user_{user_id[:8]}"


def _item(row: dict, like_counts: Counter, comment_counts: Counter) -> dict:
    item = dict(row)
    item["id"] = str(item.pop("_id"))
    item["created_at"] = to_utc(item.get("created_at"))
    item["updated_at"] = to_utc(item.get("updated_at"))
    item["author"] = author_label(item.get("user_id", ""))
    item["like_count"] = like_counts.get(item["id"], 0)
    item["comment_count"] = comment_counts.get(item["id"], 0)
    return item


def build_feed(snippets: Iterable[dict], likes: Iterable[dict], comments: Iterable[dict] = ()) -> List[dict]:
    """Join counts onto snippet rows, newest first."""
    like_counts = Counter(like["snippet_id"] for like in likes)
    comment_counts = Counter(comment["snippet_id"] for comment in comments)
    items = [_item(row, like_counts, comment_counts) for row in snippets]
    items.sort(key=lambda i: i["created_at"] or _EPOCH, reverse=True)
    return items


def trending(items: List[dict], limit: int = TRENDING_LIMIT) -> List[dict]:
    # sorted() is stable, so equal like counts keep feed order
    return sorted(items, key=lambda i: i["like_count"], reverse=True)[:limit]


def filter_feed(items: List[dict], query: str = "", category: str = "all") -> List[dict]:
    """Case-insensitive search over title/description/code plus a language category."""
    needle = (query or "").strip().lower()
    category = (category or "all").lower()

    def matches(item: dict) -> bool:
        if category != "all" and item.get("language", "").lower() != category:
            return False
        if not needle:
            return True
        haystacks = (item.get("title"), item.get("description"), item.get("code"))
        return any(needle in h.lower() for h in haystacks if h)

    return [item for item in items if matches(item)]


def site_stats(snippets: Iterable[dict], total_likes: int) -> Dict:
    snippets = list(snippets)
    languages = Counter(s.get("language", "").lower() for s in snippets)
    return {
        "total_snippets": len(snippets),
        "total_likes": total_likes,
        "total_users": len({s.get("user_id") for s in snippets}),
        "total_languages": len(languages),
        "languages": dict(languages),
    }


def empty_feed() -> Dict:
    return {"items": [], "trending": [], "stats": site_stats([], 0)}


def load_feed(db, query: str = "", category: str = "all") -> Dict:
    """Read the public feed. Any read or aggregation failure degrades to an empty feed."""
    try:
        snippets = get_documents(SNIPPETS, target=db)
        likes = get_documents(LIKES, target=db)
        comments = get_documents(COMMENTS, target=db)
        items = build_feed(snippets, likes, comments)
        return {
            "items": filter_feed(items, query, category),
            "trending": trending(items),
            "stats": site_stats(snippets, len(likes)),
        }
    except Exception:
        logger.exception("Error fetching feed")
        return empty_feed()
