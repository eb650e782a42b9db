"""
Authentication API routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from jobtrail.core.auth import (SESSION_COOKIE, extract_token,
                                get_current_user_required, security)
from jobtrail.core.config import get_settings
from jobtrail.core.database import get_db
from jobtrail.core.exceptions import APIError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import ErrorCode, success_response
from jobtrail.models.user import User
from jobtrail.services.auth_service import AuthService

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    """User registration request"""
    username: str = Field(..., min_length=3, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)


class LoginRequest(BaseModel):
    """User login request"""
    username: str  # Can be username or email
    password: str


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Register a new account"""
    user = AuthService(db).register_user(
        username=request.username.strip(),
        email=request.email,
        password=request.password,
    )
    return success_response(user.to_dict(), "User registered")


@router.post("/login")
async def login(request: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """Login and create a session"""
    settings = get_settings()
    auth_service = AuthService(db)

    user = auth_service.authenticate(request.username, request.password)
    if not user:
        raise APIError(401, "Invalid username or password", ErrorCode.UNAUTHORIZED)

    session = auth_service.create_session(user.id)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session.token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.session_duration_hours * 60 * 60,
    )
    return success_response({
        "token": session.token,
        "user": user.to_dict(),
        "expires_at": session.expires_at.isoformat(),
    }, "Login successful")


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
):
    """Logout and invalidate the session"""
    token = extract_token(request, credentials)
    if token:
        AuthService(db).logout(token)
    response.delete_cookie(key=SESSION_COOKIE)
    return None


@router.get("/me")
async def get_current_user_info(user: User = Depends(get_current_user_required)):
    """Get current user information"""
    return success_response(user.to_dict())
