import logging
import os
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from typing import Optional
from bson import ObjectId
from bson.errors import InvalidId
from datetime import datetime, timezone

import database
from auth import AuthError, Session, resolve_session, sign_in, sign_out, sign_up
from comments import CommentRejected, list_comments, submit_comment
from dashboard import ChangePolicy, load_dashboard
from database import COMMENTS, LIKES, SNIPPETS, create_document
from feed import author_label, load_feed
from likes import load_like_state, toggle_like
from schemas import LANGUAGES, Snippet

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("snipshare")

app = FastAPI(title="SnipShare API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

bearer = HTTPBearer(auto_error=False)

# Helpers

def get_db():
    if database.db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return database.db


def get_policy() -> ChangePolicy:
    return ChangePolicy.from_env()


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db=Depends(get_db),
) -> Optional[Session]:
    token = credentials.credentials if credentials else None
    return resolve_session(db, token)


def require_session(session: Optional[Session] = Depends(get_session)) -> Session:
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})
    return session


def to_object_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id")


def serialize(doc: dict):
    if not doc:
        return doc
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    # Convert datetimes to isoformat
    for k, v in list(doc.items()):
        if hasattr(v, "isoformat"):
            doc[k] = database.to_utc(v).isoformat()
        elif isinstance(v, list):
            doc[k] = [serialize(i) if isinstance(i, dict) else i for i in v]
        elif isinstance(v, dict):
            doc[k] = serialize(v)
    return doc


def get_owned_snippet(db, snippet_id: str, session: Session) -> dict:
    doc = db[SNIPPETS].find_one({"_id": to_object_id(snippet_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Snippet not found")
    if doc.get("user_id") != session.user_id:
        raise HTTPException(status_code=403, detail="You can only edit your own snippets")
    return doc


def session_payload(session: Session) -> dict:
    return {"access_token": session.token, "token_type": "bearer",
            "user": {"id": session.user_id, "email": session.email}}


# Schemas for requests
class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., max_length=128)
    confirm_password: str = Field(..., max_length=128)

class SignInRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., max_length=128)

class SnippetCreate(BaseModel):
    title: str = Field(..., max_length=200)
    language: str = Field("javascript", max_length=40)
    code: str
    description: Optional[str] = Field(None, max_length=2000)

class SnippetUpdate(SnippetCreate):
    pass

class CommentCreate(BaseModel):
    content: str = Field(..., max_length=2000)


@app.on_event("startup")
def create_indexes():
    if database.db is None:
        logger.warning("No database available; API calls will fail until one is configured")
        return
    database.ensure_indexes()


@app.get("/")
def read_root():
    return {"message": "SnipShare API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "running",
        "database": "not available",
        "database_url": "set" if os.getenv("DATABASE_URL") else "not set",
        "database_name": "set" if os.getenv("DATABASE_NAME") else "not set",
        "collections": [],
    }
    if database.db is None:
        return response
    try:
        response["collections"] = database.db.list_collection_names()[:10]
        response["database"] = "connected"
    except Exception as e:
        logger.exception("Database connection test failed")
        response["database"] = f"error: {str(e)[:50]}"
    return response


@app.get("/api/languages")
def list_languages():
    return LANGUAGES


# Auth

@app.post("/api/auth/signup", status_code=201)
def signup(payload: SignUpRequest, db=Depends(get_db)):
    try:
        session = sign_up(db, payload.email, payload.password, payload.confirm_password)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session_payload(session)


@app.post("/api/auth/login")
def login(payload: SignInRequest, db=Depends(get_db)):
    try:
        session = sign_in(db, payload.email, payload.password)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session_payload(session)


@app.post("/api/auth/logout", status_code=204)
def logout(session: Session = Depends(require_session), db=Depends(get_db)):
    sign_out(db, session.token)


@app.get("/api/auth/session")
def current_session(session: Optional[Session] = Depends(get_session)):
    if session is None:
        return None
    return {"user": {"id": session.user_id, "email": session.email}}


# Snippets

@app.get("/api/snippets")
def list_snippets(
    q: str = Query("", max_length=200),
    category: str = Query("all", max_length=40),
    db=Depends(get_db),
):
    return serialize(load_feed(db, q, category))


@app.post("/api/snippets", status_code=201)
def create_snippet(payload: SnippetCreate, session: Optional[Session] = Depends(get_session), db=Depends(get_db)):
    if session is None:
        raise HTTPException(status_code=401, detail="You must be logged in to create a snippet")
    title, code = payload.title.strip(), payload.code.strip()
    if not title or not code:
        raise HTTPException(status_code=400, detail="Title and code are required")

    snippet = Snippet(
        title=title,
        language=payload.language.strip() or "javascript",
        code=code,
        description=(payload.description or "").strip() or None,
        user_id=session.user_id,
    )
    try:
        snippet_id = create_document(SNIPPETS, snippet, target=db)
    except Exception as e:
        logger.exception("Error creating snippet")
        raise HTTPException(status_code=500, detail=str(e) or "An error occurred")
    return serialize(db[SNIPPETS].find_one({"_id": ObjectId(snippet_id)}))


@app.get("/api/snippets/{snippet_id}")
def get_snippet(snippet_id: str, session: Optional[Session] = Depends(get_session), db=Depends(get_db)):
    doc = db[SNIPPETS].find_one({"_id": to_object_id(snippet_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Snippet not found")
    item = serialize(doc)
    item["author"] = author_label(item.get("user_id", ""))
    state = load_like_state(db, snippet_id, session.user_id if session else None)
    item["like_count"] = state.count
    item["liked"] = state.liked
    item["comment_count"] = db[COMMENTS].count_documents({"snippet_id": snippet_id})
    return item


@app.put("/api/snippets/{snippet_id}")
def update_snippet(snippet_id: str, payload: SnippetUpdate,
                   session: Session = Depends(require_session), db=Depends(get_db)):
    doc = get_owned_snippet(db, snippet_id, session)
    title, code = payload.title.strip(), payload.code.strip()
    if not title or not code:
        raise HTTPException(status_code=400, detail="Title and code are required")

    changes = {
        "title": title,
        "language": payload.language.strip() or doc["language"],
        "code": code,
        "description": (payload.description or "").strip() or None,
        "updated_at": datetime.now(timezone.utc),
    }
    try:
        db[SNIPPETS].update_one({"_id": doc["_id"], "user_id": session.user_id}, {"$set": changes})
    except Exception:
        logger.exception("Error updating snippet %s", snippet_id)
        raise HTTPException(status_code=500, detail="Failed to update snippet")
    return serialize(db[SNIPPETS].find_one({"_id": doc["_id"]}))


@app.delete("/api/snippets/{snippet_id}", status_code=204)
def delete_snippet(snippet_id: str, session: Session = Depends(require_session), db=Depends(get_db)):
    doc = get_owned_snippet(db, snippet_id, session)
    try:
        db[SNIPPETS].delete_one({"_id": doc["_id"]})
        db[LIKES].delete_many({"snippet_id": snippet_id})
        db[COMMENTS].delete_many({"snippet_id": snippet_id})
    except Exception:
        logger.exception("Error deleting snippet %s", snippet_id)
        raise HTTPException(status_code=500, detail="Failed to delete snippet")
    logger.info("Snippet %s deleted by %s", snippet_id, session.user_id)


@app.post("/api/snippets/{snippet_id}/like")
def like_snippet(snippet_id: str, session: Optional[Session] = Depends(get_session), db=Depends(get_db)):
    """
    Toggle the viewer's like on this snippet. One like per user per snippet.
    Returns the mirror state after the toggle.
    """
    if session is None:
        raise HTTPException(status_code=401, detail="You must be logged in to like snippets")
    if db[SNIPPETS].find_one({"_id": to_object_id(snippet_id)}) is None:
        raise HTTPException(status_code=404, detail="Snippet not found")

    state = toggle_like(db, load_like_state(db, snippet_id, session.user_id), session.user_id)
    return {"snippet_id": state.snippet_id, "liked": state.liked, "like_count": state.count}


@app.get("/api/snippets/{snippet_id}/comments")
def get_comments(snippet_id: str, db=Depends(get_db)):
    return [serialize(c) for c in list_comments(db, snippet_id)]


@app.post("/api/snippets/{snippet_id}/comments", status_code=201)
def add_comment(snippet_id: str, payload: CommentCreate,
                session: Optional[Session] = Depends(get_session), db=Depends(get_db)):
    to_object_id(snippet_id)
    try:
        comments = submit_comment(db, session, snippet_id, payload.content)
    except CommentRejected as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception:
        logger.exception("Error adding comment to snippet %s", snippet_id)
        raise HTTPException(status_code=500, detail="Failed to add comment")
    return [serialize(c) for c in comments]


# Dashboard

@app.get("/api/dashboard")
def get_dashboard(
    q: str = Query("", max_length=200),
    session: Session = Depends(require_session),
    policy: ChangePolicy = Depends(get_policy),
    db=Depends(get_db),
):
    return serialize(load_dashboard(db, session.user_id, policy=policy, query=q))


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
