"""Like toggle with an optimistic local mirror.

The mirror is updated before the store call. There is no rollback: if the
insert/delete fails the mirror stays ahead of the store until the next
:func:`load_like_state`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bson import ObjectId

from database import LIKES, SNIPPETS, create_document
from schemas import Like

logger = logging.getLogger("snipshare.likes")


@dataclass
class LikeState:
    snippet_id: str
    liked: bool
    count: int


def load_like_state(db, snippet_id: str, user_id: str | None) -> LikeState:
    """Reconcile the mirror from like rows, the only source of truth."""
    count = db[LIKES].count_documents({"snippet_id": snippet_id})
    liked = False
    if user_id:
        liked = db[LIKES].find_one({"snippet_id": snippet_id, "user_id": user_id}) is not None
    return LikeState(snippet_id=snippet_id, liked=liked, count=count)


def _refresh_denormalized_count(db, snippet_id: str):
    count = db[LIKES].count_documents({"snippet_id": snippet_id})
    db[SNIPPETS].update_one({"_id": ObjectId(snippet_id)}, {"$set": {"likes_count": count}})


def toggle_like(db, state: LikeState, user_id: str) -> LikeState:
    if state.liked:
        state.liked = False
        state.count = max(0, state.count - 1)
        try:
            db[LIKES].delete_one({"snippet_id": state.snippet_id, "user_id": user_id})
            _refresh_denormalized_count(db, state.snippet_id)
        except Exception:
            logger.exception("Error removing like on %s", state.snippet_id)
    else:
        state.liked = True
        state.count += 1
        try:
            if db[LIKES].find_one({"snippet_id": state.snippet_id, "user_id": user_id}) is None:
                create_document(LIKES, Like(snippet_id=state.snippet_id, user_id=user_id), target=db)
            _refresh_denormalized_count(db, state.snippet_id)
        except Exception:
            logger.exception("Error adding like on %s", state.snippet_id)
    return state
