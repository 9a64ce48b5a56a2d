"""Domain models for the Postboard application."""

from .post import Post, Reply
from .subscription import Subscription, SubscriptionStatus
from .user import User

__all__ = [
    "Post",
    "Reply",
    "Subscription",
    "SubscriptionStatus",
    "User",
]
