"""
Profile management service
"""
from typing import Any, Dict, List, Optional, Type
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from jobtrail.core.exceptions import ConflictError, NotFoundError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.models.profile import (Certification, EducationEntry,
                                     EmploymentEntry, Profile, Project, Skill)
from jobtrail.models.user import User
from jobtrail.services.profile_completeness import \
    calculate_profile_completeness

logger = LoggingConfig.get_logger(__name__)

PROFILE_FIELDS = {
    "name", "email", "phone", "location", "picture_url", "linkedin_url",
    "github_url", "website_url", "headline", "bio", "industry", "experience_level",
}

# URL path segment -> entry model
ENTRY_MODELS: Dict[str, Type] = {
    "employment": EmploymentEntry,
    "education": EducationEntry,
    "skills": Skill,
    "projects": Project,
    "certifications": Certification,
}


class ProfileService:
    """Service for the caller's profile and its entry collections"""

    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, user_id: UUID) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.user_id == user_id).first()

    def require_profile(self, user_id: UUID) -> Profile:
        profile = self.get_profile(user_id)
        if not profile:
            raise NotFoundError("Profile not found. Please complete registration.")
        return profile

    def create_profile(self, user: User, data: Optional[Dict[str, Any]] = None) -> Profile:
        """
        Create the user's profile, pre-filled from the account

        Raises:
            ConflictError: If the user already has a profile
        """
        if self.get_profile(user.id):
            raise ConflictError("Profile already exists")

        values = {key: value for key, value in (data or {}).items() if key in PROFILE_FIELDS}
        values.setdefault("email", user.email)
        values.setdefault("name", user.username)

        profile = Profile(user_id=user.id, **values)
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        logger.info(f"Created profile for user {user.id}")
        return profile

    def update_profile(self, user_id: UUID, data: Dict[str, Any]) -> Profile:
        """Apply a partial update; unknown keys are ignored"""
        profile = self.require_profile(user_id)
        for key, value in data.items():
            if key in PROFILE_FIELDS:
                setattr(profile, key, value)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def get_completeness(self, user_id: UUID, industry: Optional[str] = None) -> Dict[str, Any]:
        """Score the stored profile; ``industry`` overrides the benchmark industry only"""
        record = self.require_profile(user_id).to_completeness_record()
        report = calculate_profile_completeness(record)
        if industry:
            benchmark_record = dict(record, industry=industry)
            industry_report = calculate_profile_completeness(benchmark_record)
            report["industry"] = industry_report["industry"]
            report["benchmark"] = industry_report["benchmark"]
            report["industry_comparison"] = industry_report["industry_comparison"]
        return report

    # ------------------------------------------------------------------
    # Entry collections
    # ------------------------------------------------------------------

    def list_entries(self, user_id: UUID, kind: str) -> List[Any]:
        profile = self.require_profile(user_id)
        return list(getattr(profile, kind))

    def add_entry(self, user_id: UUID, kind: str, data: Dict[str, Any]):
        profile = self.require_profile(user_id)
        model = ENTRY_MODELS[kind]
        next_position = self.db.query(func.coalesce(func.max(model.position), -1) + 1).filter(
            model.profile_id == profile.id
        ).scalar()
        entry = model(profile_id=profile.id, position=next_position, **data)
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info(f"Added {kind} entry {entry.id} to profile {profile.id}")
        return entry

    def _owned_entry(self, user_id: UUID, kind: str, entry_id: UUID):
        profile = self.require_profile(user_id)
        model = ENTRY_MODELS[kind]
        entry = self.db.query(model).filter(
            model.id == entry_id,
            model.profile_id == profile.id,
        ).first()
        if not entry:
            raise NotFoundError(f"{kind.capitalize()} entry not found")
        return entry

    def update_entry(self, user_id: UUID, kind: str, entry_id: UUID, data: Dict[str, Any]):
        entry = self._owned_entry(user_id, kind, entry_id)
        for key, value in data.items():
            setattr(entry, key, value)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def delete_entry(self, user_id: UUID, kind: str, entry_id: UUID):
        entry = self._owned_entry(user_id, kind, entry_id)
        self.db.delete(entry)
        self.db.commit()
        logger.info(f"Deleted {kind} entry {entry_id}")
