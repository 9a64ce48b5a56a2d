from __future__ import annotations

import logging

from ..domain.errors import NotFoundError
from ..domain.models import Post, Reply
from ..domain.ports.persistence import ContentRepository
from .entitlement_gate import EntitlementGate

logger = logging.getLogger(__name__)


class PostService:
    """Content creation guarded by the entitlement gate."""

    def __init__(self, content: ContentRepository, gate: EntitlementGate) -> None:
        self._content = content
        self._gate = gate

    def create_post(self, user_id: int, title: str, content: str) -> Post:
        clean_title = title.strip()
        clean_content = content.strip()
        if not clean_title:
            raise ValueError("Title is required.")
        if not clean_content:
            raise ValueError("Content is required.")

        self._gate.require(user_id)
        post = self._content.create_post(user_id, clean_title, clean_content)
        logger.info("Post %s created by user %s", post.id, user_id)
        return post

    def create_reply(self, user_id: int, post_id: int, content: str, *, is_anonymous: bool = False) -> Reply:
        clean_content = content.strip()
        if not clean_content:
            raise ValueError("Content is required.")

        self._gate.require(user_id)
        if self._content.get_post(post_id) is None:
            raise NotFoundError(f"Post {post_id} not found.")
        author_id = None if is_anonymous else user_id
        reply = self._content.create_reply(post_id, author_id, clean_content, is_anonymous)
        logger.info("Reply %s created on post %s", reply.id, post_id)
        return reply
