"""
Authentication service: bearer token handling for the identity provider.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models.user import User

logger = logging.getLogger(__name__)

settings = get_settings()


class AuthService:
    """Service for token and user lookup operations."""

    def __init__(self):
        """Initialize auth service with settings."""
        self.secret_key = settings.jwt_secret_key
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire_minutes = settings.access_token_expire_minutes

    # Token operations
    def create_access_token(self, user_id: str, email: str) -> str:
        """Create a new access token."""
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.access_token_expire_minutes)
        to_encode = {
            "sub": user_id,
            "email": email,
            "exp": expire,
            "type": "access"
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> Optional[dict]:
        """
        Decode and validate a JWT token.

        Returns:
            Decoded token payload or None if invalid
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return payload
        except JWTError as e:
            logger.warning(f"Token decode error: {e}")
            return None

    def verify_access_token(self, token: str) -> Optional[dict]:
        """Verify an access token and return payload if valid."""
        payload = self.decode_token(token)
        if payload and payload.get("type") == "access":
            return payload
        return None

    # User operations
    def get_user_by_id(self, db: Session, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        return db.query(User).filter(User.id == user_id).first()


# Singleton instance
_auth_service = None


def get_auth_service() -> AuthService:
    """Get the singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
