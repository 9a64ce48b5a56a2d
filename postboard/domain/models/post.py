from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class Post:
    id: int
    user_id: int
    title: str
    content: str
    status: str
    created_at: datetime


@dataclass(slots=True)
class Reply:
    id: int
    post_id: int
    user_id: Optional[int]
    content: str
    is_anonymous: bool
    created_at: datetime
