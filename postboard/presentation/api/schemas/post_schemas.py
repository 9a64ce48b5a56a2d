"""Pydantic schemas for post and reply endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CreatePostRequest(BaseModel):
    title: str = Field(..., max_length=200)
    content: str


class CreateReplyRequest(BaseModel):
    content: str
    is_anonymous: bool = False


class PostResponse(BaseModel):
    id: int
    user_id: int
    title: str
    content: str
    status: str
    created_at: datetime


class ReplyResponse(BaseModel):
    id: int
    post_id: int
    user_id: Optional[int]
    content: str
    is_anonymous: bool
    created_at: datetime
