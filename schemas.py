"""
Database Schemas for SnipShare (code snippet sharing)

Each Pydantic model corresponds to a MongoDB collection.
Collection name is the lowercase plural of the class name.
"""

from pydantic import BaseModel, Field
from typing import Optional

LANGUAGES = [
    'javascript', 'typescript', 'python', 'java', 'cpp', 'csharp', 'php', 'ruby',
    'go', 'rust', 'swift', 'kotlin', 'scala', 'html', 'css', 'sql', 'bash', 'json',
    'yaml', 'markdown', 'xml', 'jsx', 'tsx',
]

class Snippet(BaseModel):
    """
    Code snippets posted by users
    Collection: "snippets"
    """
    title: str = Field(..., min_length=1, max_length=200, description="Snippet title")
    language: str = Field(..., min_length=1, max_length=40, description="Language tag, e.g. 'python'")
    code: str = Field(..., min_length=1, description="Source code")
    description: Optional[str] = Field(None, max_length=2000, description="Optional explanation")
    user_id: str = Field(..., description="ID of the owning user")
    likes_count: int = Field(0, ge=0, description="Denormalized like count, fallback only")

class Comment(BaseModel):
    """
    Comments on snippets (append-only)
    Collection: "comments"
    """
    snippet_id: str = Field(..., description="ID of the snippet this comment belongs to")
    user_id: str = Field(..., description="ID of the commenting user")
    content: str = Field(..., min_length=1, max_length=2000, description="Comment text")

class Like(BaseModel):
    """
    One like per (snippet, user) pair
    Collection: "likes"
    """
    snippet_id: str = Field(..., description="ID of the liked snippet")
    user_id: str = Field(..., description="ID of the liking user")

class User(BaseModel):
    """
    Registered accounts
    Collection: "users"
    """
    email: str = Field(..., min_length=3, max_length=254)
    password_hash: str

class Session(BaseModel):
    """
    Opaque bearer tokens issued at sign-in
    Collection: "sessions"
    """
    token: str
    user_id: str
