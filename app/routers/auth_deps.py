"""
RBAC Dependencies.
Provides bearer-token authentication and role-based access control for FastAPI endpoints.
"""
import logging
from typing import Callable, List

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.exceptions import AuthenticationError
from app.database import get_db
from app.models.user import User, UserRole
from app.services import auth as auth_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Extracts and validates the current user from the JWT token.
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = auth_service.decode_access_token(credentials.credentials)

    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise AuthenticationError("Could not validate credentials")

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise AuthenticationError("TOKEN_EXPIRED")

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise AuthenticationError("Invalid token type")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        logger.warning("Authentication failed: Missing subject in token")
        raise AuthenticationError("Missing subject in token")

    user = db.get(User, user_id)
    if user is None:
        logger.warning(f"Authentication failed: User {user_id} not found in database")
        raise AuthenticationError("User not found")
    if not user.is_active:
        logger.warning(f"Authentication failed: User {user_id} is {user.status}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive"
        )
    return user


def require_role(allowed_roles: List[UserRole]) -> Callable:
    """
    Dependency factory that checks if the user has one of the allowed roles.

    Usage:
        @router.delete("/{salary_id}")
        def delete_salary(user: User = Depends(require_role([UserRole.ADMIN]))):
            ...
    """
    def role_checker(current_user: User = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_user
    return role_checker


def require_hr():
    """Shorthand for requiring HR or admin."""
    return require_role([UserRole.ADMIN, UserRole.HR])


def require_manager():
    """Shorthand for requiring anyone who may review leave."""
    return require_role([UserRole.ADMIN, UserRole.HR, UserRole.MANAGER])


def require_admin():
    return require_role([UserRole.ADMIN])
