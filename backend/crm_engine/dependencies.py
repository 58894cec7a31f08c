"""
FastAPI dependencies for authentication and engine wiring.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from .database import get_db
from .models.user import User
from .schemas.common import ActingUser
from .services.auth_service import get_auth_service
from .services.record_store import SQLAlchemyRecordStore

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for JWT tokens
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user.

    Extracts JWT token from Authorization header, validates it,
    and returns the corresponding user.

    Raises:
        HTTPException 401: If token is missing, invalid, or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    auth_service = get_auth_service()

    # Verify the access token
    payload = auth_service.verify_access_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    user = auth_service.get_user_by_id(db, user_id)
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    return user


def get_acting_user(current_user: User = Depends(get_current_user)) -> ActingUser:
    """The explicit user context handed to every engine call."""
    return ActingUser.model_validate(current_user)


def get_record_store(db: Session = Depends(get_db)) -> SQLAlchemyRecordStore:
    """Record store bound to the request's database session."""
    return SQLAlchemyRecordStore(db)
