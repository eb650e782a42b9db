"""
Account and profile routes for the signed-in user
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from jobtrail.core.auth import get_current_user_required
from jobtrail.core.database import get_db
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import success_response
from jobtrail.models.user import User
from jobtrail.services.auth_service import AuthService
from jobtrail.services.profile_service import ProfileService

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


class ProfileFields(BaseModel):
    """Editable profile fields; all optional"""
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=255)
    picture_url: Optional[str] = Field(None, max_length=1024)
    linkedin_url: Optional[str] = Field(None, max_length=1024)
    github_url: Optional[str] = Field(None, max_length=1024)
    website_url: Optional[str] = Field(None, max_length=1024)
    headline: Optional[str] = Field(None, max_length=255)
    bio: Optional[str] = None
    industry: Optional[str] = Field(None, max_length=100)
    experience_level: Optional[str] = Field(None, max_length=50)


@router.get("/me")
async def get_my_profile(
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """
    Get the caller's profile

    A 404 tells the client that the account exists but the profile has
    not been created yet.
    """
    profile = ProfileService(db).require_profile(user.id)
    return success_response(profile.to_dict())


@router.post("/register", status_code=201)
async def register_profile(
    request: Optional[ProfileFields] = None,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Create the caller's profile, pre-filled with account name and email"""
    data = request.model_dump(exclude_none=True) if request else {}
    profile = ProfileService(db).create_profile(user, data)
    return success_response(profile.to_dict(), "Profile created")


@router.put("/me")
async def update_my_profile(
    request: ProfileFields,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    profile = ProfileService(db).update_profile(user.id, request.model_dump(exclude_unset=True))
    return success_response(profile.to_dict(), "Profile updated")


@router.delete("/me")
async def delete_my_account(
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Deactivate the caller's account"""
    AuthService(db).deactivate_user(user)
    logger.info(f"User {user.id} deactivated their account")
    return success_response(message="Account deactivated")


@router.get("/me/completeness")
async def get_my_completeness(
    industry: Optional[str] = Query(None, description="Industry to benchmark against"),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    report = ProfileService(db).get_completeness(user.id, industry=industry)
    return success_response(report)
