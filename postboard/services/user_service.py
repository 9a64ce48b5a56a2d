"""Service for resolving authenticated users from bearer tokens."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from ..domain.models import User
from ..domain.ports.persistence import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Service for token verification and user lookup."""

    def __init__(
        self,
        user_repository: UserRepository,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        jwt_expiration_hours: int = 24,
    ):
        if jwt_secret == "change-me":
            logger.warning("JWT_SECRET is using the default value. Configure a secure secret in production.")
        self.user_repository = user_repository
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_expiration_hours = jwt_expiration_hours

    def create_token(self, user: User) -> str:
        """
        Create JWT token for user.

        Args:
            user: User entity

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "exp": now + timedelta(hours=self.jwt_expiration_hours),
            "iat": now,
        }
        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def verify_token(self, token: str) -> Optional[dict]:
        """
        Verify and decode JWT token.

        Args:
            token: JWT token string

        Returns:
            Decoded payload if valid, None otherwise
        """
        try:
            return jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    def get_user_from_token(self, token: str) -> Optional[User]:
        payload = self.verify_token(token)
        if not payload:
            return None
        try:
            user_id = int(payload.get("sub", ""))
        except (TypeError, ValueError):
            return None
        return self.user_repository.get_user_by_id(user_id)
