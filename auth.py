"""Accounts and bearer sessions.

The viewer is always passed around as an explicit :class:`Session`; nothing
here keeps a "current user" global.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from bson import ObjectId
from bson.errors import InvalidId
from passlib.context import CryptContext

from database import SESSIONS, USERS, create_document
from schemas import Session as SessionRow, User

logger = logging.getLogger("snipshare.auth")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


class AuthError(Exception):
    """Raised when sign-up or sign-in is refused; the message is user facing."""


@dataclass(slots=True)
class Session:
    token: str
    user_id: str
    email: str


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _open_session(db, user_id: str, email: str) -> Session:
    token = secrets.token_urlsafe(32)
    create_document(SESSIONS, SessionRow(token=token, user_id=user_id), target=db)
    return Session(token=token, user_id=user_id, email=email)


def sign_up(db, email: str, password: str, confirm_password: str) -> Session:
    if password != confirm_password:
        raise AuthError("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    email = _normalize_email(email)
    if "@" not in email:
        raise AuthError("Invalid email address")
    if db[USERS].find_one({"email": email}) is not None:
        raise AuthError("User already registered")

    user_id = create_document(USERS, User(email=email, password_hash=pwd_context.hash(password)), target=db)
    logger.info("Registered user %s", user_id)
    return _open_session(db, user_id, email)


def sign_in(db, email: str, password: str) -> Session:
    email = _normalize_email(email)
    user = db[USERS].find_one({"email": email})
    if user is None or not pwd_context.verify(password, user["password_hash"]):
        raise AuthError("Invalid login credentials")
    return _open_session(db, str(user["_id"]), email)


def sign_out(db, token: str) -> None:
    db[SESSIONS].delete_one({"token": token})


def resolve_session(db, token: str | None) -> Session | None:
    """Look up a bearer token; ``None`` when absent or unknown."""
    if not token:
        return None
    row = db[SESSIONS].find_one({"token": token})
    if row is None:
        return None
    try:
        user = db[USERS].find_one({"_id": ObjectId(row["user_id"])})
    except InvalidId:
        logger.warning("Session %s... points at malformed user id", token[:6])
        return None
    if user is None:
        return None
    return Session(token=token, user_id=row["user_id"], email=user["email"])
