"""
Profile completeness scoring and profile entry collections
"""
from datetime import date
from typing import Any, Dict, List, Optional, Type
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from jobtrail.core.auth import get_current_user_required
from jobtrail.core.database import get_db
from jobtrail.core.exceptions import APIError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import ErrorCode, success_response
from jobtrail.models.user import User
from jobtrail.services.profile_completeness import \
    calculate_profile_completeness
from jobtrail.services.profile_service import ProfileService

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/profile", tags=["profile"])


class EmploymentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    company: str = Field(..., min_length=1, max_length=255)
    location: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: bool = False
    description: Optional[str] = None


class EmploymentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    company: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: Optional[bool] = None
    description: Optional[str] = None


class EducationCreate(BaseModel):
    institution: str = Field(..., min_length=1, max_length=255)
    degree: Optional[str] = None
    field_of_study: Optional[str] = None
    graduation_date: Optional[date] = None
    gpa: Optional[float] = Field(None, ge=0)
    achievements: Optional[str] = None


class EducationUpdate(BaseModel):
    institution: Optional[str] = Field(None, min_length=1, max_length=255)
    degree: Optional[str] = None
    field_of_study: Optional[str] = None
    graduation_date: Optional[date] = None
    gpa: Optional[float] = Field(None, ge=0)
    achievements: Optional[str] = None


class SkillCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = None
    proficiency: Optional[str] = None


class SkillUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = None
    proficiency: Optional[str] = None


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    role: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    project_url: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    role: Optional[str] = None
    technologies: Optional[List[str]] = None
    project_url: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class CertificationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    organization: Optional[str] = None
    issue_date: Optional[date] = None
    expiration_date: Optional[date] = None
    credential_id: Optional[str] = None
    credential_url: Optional[str] = None


class CertificationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    organization: Optional[str] = None
    issue_date: Optional[date] = None
    expiration_date: Optional[date] = None
    credential_id: Optional[str] = None
    credential_url: Optional[str] = None


# URL segment -> (create model, update model)
ENTRY_SCHEMAS: Dict[str, tuple] = {
    "employment": (EmploymentCreate, EmploymentUpdate),
    "education": (EducationCreate, EducationUpdate),
    "skills": (SkillCreate, SkillUpdate),
    "projects": (ProjectCreate, ProjectUpdate),
    "certifications": (CertificationCreate, CertificationUpdate),
}


@router.post("/completeness")
async def score_profile(record: Optional[Dict[str, Any]] = Body(default=None)):
    """Score an arbitrary profile record without storing anything"""
    try:
        return success_response(calculate_profile_completeness(record))
    except TypeError as e:
        raise APIError(400, str(e), ErrorCode.INVALID_FORMAT)


def _register_entry_routes(kind: str, create_model: Type[BaseModel], update_model: Type[BaseModel]):
    """Attach list/create/update/delete routes for one entry collection"""

    @router.get(f"/{kind}", name=f"list_{kind}")
    async def list_entries(
        user: User = Depends(get_current_user_required),
        db: Session = Depends(get_db),
    ):
        entries = ProfileService(db).list_entries(user.id, kind)
        return success_response([entry.to_dict() for entry in entries])

    @router.post(f"/{kind}", name=f"create_{kind}", status_code=201)
    async def create_entry(
        request: create_model,
        user: User = Depends(get_current_user_required),
        db: Session = Depends(get_db),
    ):
        entry = ProfileService(db).add_entry(user.id, kind, request.model_dump())
        return success_response(entry.to_dict(), "Entry created")

    @router.put(f"/{kind}/{{entry_id}}", name=f"update_{kind}")
    async def update_entry(
        entry_id: UUID,
        request: update_model,
        user: User = Depends(get_current_user_required),
        db: Session = Depends(get_db),
    ):
        entry = ProfileService(db).update_entry(user.id, kind, entry_id, request.model_dump(exclude_unset=True))
        return success_response(entry.to_dict(), "Entry updated")

    @router.delete(f"/{kind}/{{entry_id}}", name=f"delete_{kind}")
    async def delete_entry(
        entry_id: UUID,
        user: User = Depends(get_current_user_required),
        db: Session = Depends(get_db),
    ):
        ProfileService(db).delete_entry(user.id, kind, entry_id)
        return success_response(message="Entry deleted")


for _kind, (_create, _update) in ENTRY_SCHEMAS.items():
    _register_entry_routes(_kind, _create, _update)
