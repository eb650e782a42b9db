"""
Authentication dependencies
"""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from jobtrail.core.database import get_db
from jobtrail.core.exceptions import APIError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import ErrorCode
from jobtrail.models.user import User
from jobtrail.services.auth_service import AuthService

logger = LoggingConfig.get_logger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)

SESSION_COOKIE = "session_token"


def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """Bearer header first, then the session cookie"""
    if credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Get current user from request (from token or cookie)

    Returns:
        The session's user (active or not) if the token is valid, None otherwise
    """
    token = extract_token(request, credentials)
    if not token:
        return None
    user = AuthService(db).resolve_session_user(token)
    if user:
        LoggingConfig.set_context(user_id=str(user.id))
    return user


async def get_current_user_required(
    user: Optional[User] = Depends(get_current_user),
) -> User:
    """
    Require an authenticated, active user

    Raises:
        APIError: 401 without a valid session, 403 for a deactivated account
    """
    if user is None:
        raise APIError(
            401, "Authentication required", ErrorCode.UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        logger.warning(f"Rejected request from deactivated user {user.id}")
        raise APIError(403, "Account has been deactivated", ErrorCode.FORBIDDEN)
    return user


async def require_admin(user: User = Depends(get_current_user_required)) -> User:
    """Require an authenticated admin"""
    if not user.is_admin:
        raise APIError(403, "Administrator access required", ErrorCode.FORBIDDEN)
    return user
