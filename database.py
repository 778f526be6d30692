"""
Database Helper Functions

MongoDB helper functions with graceful fallback.
- Primary: real MongoDB via DATABASE_URL + DATABASE_NAME
- Fallback: Mongita (embedded MongoDB-compatible) so the app fully works without external DB

Collections: snippets, comments, likes, users, sessions
"""

from datetime import datetime, timezone
from typing import Union
import logging
import os

from pydantic import BaseModel
from dotenv import load_dotenv

# Load environment variables from .env file (noop if not present)
load_dotenv()

logger = logging.getLogger("snipshare.database")

SNIPPETS = "snippets"
COMMENTS = "comments"
LIKES = "likes"
USERS = "users"
SESSIONS = "sessions"

# Try real MongoDB first
_db = None
_client = None
_is_mongo = False

try:
    from pymongo import ASCENDING, MongoClient
    from pymongo.errors import PyMongoError
except Exception:  # pragma: no cover
    MongoClient = None  # type: ignore
    PyMongoError = Exception  # type: ignore

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name and MongoClient is not None:
    try:
        _client = MongoClient(database_url, serverSelectionTimeoutMS=2000)
        _client.admin.command("ping")  # ensure reachable now
        _db = _client[database_name]
        _is_mongo = True
    except PyMongoError as exc:
        logger.warning("MongoDB at DATABASE_URL unreachable, using embedded store: %s", exc)
        _client = None
        _db = None

# Fallback to Mongita (embedded) if real DB isn't configured/reachable
if _db is None:
    try:
        from mongita import MongitaClientDisk  # type: ignore
        _client = MongitaClientDisk()
        _db = _client[database_name or "snipshare_local"]
    except Exception:
        logger.exception("Embedded Mongita store could not be opened")
        _client = None
        _db = None

# Export name expected by application

db = _db


def ensure_indexes():
    """Create the unique (snippet_id, user_id) index on likes.

    Only real MongoDB enforces it; Mongita has no compound unique indexes.
    """
    if db is None or not _is_mongo:
        return
    try:
        db[LIKES].create_index([("snippet_id", ASCENDING), ("user_id", ASCENDING)], unique=True)
        db[COMMENTS].create_index([("snippet_id", ASCENDING), ("created_at", ASCENDING)])
    except PyMongoError as exc:
        # duplicate like rows block the unique index; the toggle still checks before insert
        logger.error("Could not create indexes: %s", exc)


def to_utc(value):
    """Interpret a stored timestamp as an aware UTC datetime.

    pymongo and Mongita hand back naive datetimes; ISO strings are accepted too.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, dict], target=None):
    """Insert a single document with timestamps"""
    target = db if target is None else target
    if target is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)

    now = datetime.now(timezone.utc)
    data_dict.setdefault('created_at', now)
    data_dict.setdefault('updated_at', data_dict['created_at'])

    result = target[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: dict | None = None, limit: int | None = None, target=None):
    """Get documents from a collection"""
    target = db if target is None else target
    if target is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    cursor = target[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
