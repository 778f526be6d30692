"""Personal dashboard: per-snippet counts, today's activity and language usage.

The "than usual" deltas are display policy driven by fixed thresholds, not a
statistical trend. On any read failure the dashboard is rebuilt from a fixed
placeholder so the language chart never renders empty.
"""

from __future__ import annotations

import logging
import os
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Dict, Iterable, List

from database import COMMENTS, LIKES, SNIPPETS, get_documents, to_utc

logger = logging.getLogger("snipshare.dashboard")

LANGUAGE_LIMIT = 10

PLACEHOLDER_LANGUAGES = [
    {"language": "JavaScript", "count": 5},
    {"language": "Python", "count": 4},
    {"language": "TypeScript", "count": 3},
    {"language": "HTML/CSS", "count": 2},
    {"language": "SQL", "count": 2},
    {"language": "Java", "count": 1},
    {"language": "C++", "count": 1},
    {"language": "PHP", "count": 1},
    {"language": "Ruby", "count": 1},
    {"language": "Go", "count": 1},
]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s: %s", name, raw)
        return default


@dataclass(frozen=True)
class ChangePolicy:
    """Threshold heuristics behind the "than usual" indicators."""

    likes_threshold: int = 14
    likes_up: int = 4
    likes_down: int = -2
    comments_threshold: int = 20
    comments_up: int = 6
    comments_down: int = -3
    snippets_threshold: int = 3
    snippets_up: int = 2
    snippets_down: int = -1

    @classmethod
    def from_env(cls) -> "ChangePolicy":
        return cls(
            likes_threshold=_int_env("DASHBOARD_LIKES_THRESHOLD", cls.likes_threshold),
            comments_threshold=_int_env("DASHBOARD_COMMENTS_THRESHOLD", cls.comments_threshold),
            snippets_threshold=_int_env("DASHBOARD_SNIPPETS_THRESHOLD", cls.snippets_threshold),
        )

    def changes(self, likes_today: int, comments_today: int, snippets_today: int) -> Dict[str, int]:
        return {
            "likes_change": self.likes_up if likes_today > self.likes_threshold else self.likes_down,
            "comments_change": self.comments_up if comments_today > self.comments_threshold else self.comments_down,
            "snippets_change": self.snippets_up if snippets_today > self.snippets_threshold else self.snippets_down,
        }


def local_midnight(now: datetime | None = None) -> datetime:
    """Start of the current day as an aware datetime.

    Naive values and the fixed offsets produced by ``astimezone()`` are read in
    the server's local zone, and the offset is taken at midnight itself so a
    daylight-saving change later in the day does not shift the boundary.
    UTC and named zones keep their own rules.
    """
    if now is None:
        now = datetime.now()
    elif now.tzinfo is not None and (not isinstance(now.tzinfo, timezone) or not now.utcoffset()):
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif now.tzinfo is not None:
        now = now.astimezone()
    return datetime.combine(now.date(), time.min).astimezone()


def count_since(rows: Iterable[dict], since: datetime) -> int:
    count = 0
    for row in rows:
        created = to_utc(row.get("created_at"))
        if created is not None and created >= since:
            count += 1
    return count


def language_stats(snippets: Iterable[dict], limit: int = LANGUAGE_LIMIT) -> List[Dict]:
    counts = Counter(s["language"] for s in snippets)
    # most_common keeps first-seen order among equal counts
    return [{"language": lang, "count": n} for lang, n in counts.most_common(limit)]


def attach_counts(snippets: Iterable[dict], likes: Iterable[dict] | None, comments: Iterable[dict]) -> List[Dict]:
    """Count reference rows per snippet.

    ``likes=None`` means the like rows could not be read and the stored
    ``likes_count`` is used instead.
    """
    like_counts = Counter(l["snippet_id"] for l in likes) if likes is not None else None
    comment_counts = Counter(c["snippet_id"] for c in comments)
    items = []
    for row in snippets:
        item = dict(row)
        item["id"] = str(item.pop("_id"))
        item["created_at"] = to_utc(item.get("created_at"))
        item["updated_at"] = to_utc(item.get("updated_at"))
        item["comments_count"] = comment_counts.get(item["id"], 0)
        if like_counts is not None:
            item["likes_count"] = like_counts.get(item["id"], 0)
        else:
            item["likes_count"] = max(0, int(item.get("likes_count") or 0))
        items.append(item)
    items.sort(key=lambda i: i["created_at"] or _EPOCH, reverse=True)
    return items


def filter_snippets(items: List[dict], query: str = "") -> List[dict]:
    needle = (query or "").strip().lower()
    if not needle:
        return items
    return [i for i in items if needle in i["title"].lower() or needle in i["language"].lower()]


def build_dashboard(snippets, likes, comments, user_likes, policy: ChangePolicy, now: datetime | None = None) -> Dict:
    since = local_midnight(now)
    items = attach_counts(snippets, likes, comments)

    likes_today = count_since(likes or (), since)
    comments_today = count_since(comments, since)
    snippets_today = count_since(items, since)

    stats = {
        "likes_today": likes_today,
        "comments_today": comments_today,
        "snippets_today": snippets_today,
    }
    stats.update(policy.changes(likes_today, comments_today, snippets_today))

    return {
        "snippets": items,
        "liked_snippet_ids": sorted({l["snippet_id"] for l in user_likes}),
        "stats": stats,
        "language_data": language_stats(items) or list(PLACEHOLDER_LANGUAGES),
    }


def fallback_dashboard() -> Dict:
    return {
        "snippets": [],
        "liked_snippet_ids": [],
        "stats": {
            "likes_today": 0,
            "comments_today": 0,
            "snippets_today": 0,
            "likes_change": 0,
            "comments_change": 0,
            "snippets_change": 0,
        },
        "language_data": list(PLACEHOLDER_LANGUAGES),
    }


def _read_optional(db, collection: str, ids: List[str]):
    if not ids:
        return []
    try:
        return list(db[collection].find({"snippet_id": {"$in": ids}}))
    except Exception:
        logger.exception("Error fetching %s for dashboard", collection)
        return None


def load_dashboard(db, user_id: str, policy: ChangePolicy | None = None, query: str = "",
                   now: datetime | None = None) -> Dict:
    """Aggregate the viewer's own snippets. Read failures fall back to the placeholder."""
    policy = policy or ChangePolicy()
    try:
        snippets = get_documents(SNIPPETS, {"user_id": user_id}, target=db)
    except Exception:
        logger.exception("Error fetching dashboard data for user %s", user_id)
        return fallback_dashboard()

    ids = [str(s["_id"]) for s in snippets]
    likes = _read_optional(db, LIKES, ids)
    comments = _read_optional(db, COMMENTS, ids) or []

    try:
        user_likes = list(db[LIKES].find({"user_id": user_id}))
    except Exception:
        logger.exception("Error fetching user likes for %s", user_id)
        user_likes = []

    result = build_dashboard(snippets, likes, comments, user_likes, policy, now=now)
    result["snippets"] = filter_snippets(result["snippets"], query)
    return result
