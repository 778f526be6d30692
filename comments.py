"""Append-only comments on snippets."""

from __future__ import annotations

import logging
from typing import List

from bson import ObjectId
from bson.errors import InvalidId

from auth import Session
from database import COMMENTS, SNIPPETS, create_document, to_utc
from schemas import Comment

logger = logging.getLogger("snipshare.comments")


class CommentRejected(Exception):
    """Comment refused; the message is user facing."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def list_comments(db, snippet_id: str) -> List[dict]:
    """All comments on a snippet, newest first."""
    cursor = db[COMMENTS].find({"snippet_id": snippet_id}).sort([("created_at", -1)])
    rows = []
    for doc in cursor:
        doc["id"] = str(doc.pop("_id"))
        doc["created_at"] = to_utc(doc.get("created_at"))
        doc["updated_at"] = to_utc(doc.get("updated_at"))
        rows.append(doc)
    return rows


def submit_comment(db, session: Session | None, snippet_id: str, content: str) -> List[dict]:
    """Insert a comment and return the refetched list.

    Content and session are checked before any store access; the snippet
    must exist before the comment row is written.
    """
    if session is None:
        raise CommentRejected("You must be logged in to comment", status_code=401)
    content = (content or "").strip()
    if not content:
        raise CommentRejected("Comment cannot be empty")

    try:
        snippet = db[SNIPPETS].find_one({"_id": ObjectId(snippet_id)})
    except InvalidId:
        raise CommentRejected("Invalid id")
    if snippet is None:
        raise CommentRejected("Snippet not found", status_code=404)

    create_document(COMMENTS, Comment(snippet_id=snippet_id, user_id=session.user_id, content=content), target=db)
    logger.debug("Comment added to %s by %s", snippet_id, session.user_id)
    return list_comments(db, snippet_id)
