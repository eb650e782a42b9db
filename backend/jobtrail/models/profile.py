"""
Profile model and its ordered entry collections
"""
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import (JSON, Boolean, Column, Date, DateTime, Float,
                        ForeignKey, Integer, String, Text, Uuid)
from sqlalchemy.orm import relationship

from jobtrail.core.database import Base
from jobtrail.utils.datetime_utils import isoformat, utc_now


def _date(value):
    return value.isoformat() if value else None


class Profile(Base):
    """Job seeker profile; one per user"""
    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True, nullable=False, index=True)

    # Basic information
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    location = Column(String(255), nullable=True)
    picture_url = Column(String(1024), nullable=True)
    linkedin_url = Column(String(1024), nullable=True)
    github_url = Column(String(1024), nullable=True)
    website_url = Column(String(1024), nullable=True)

    # Professional information
    headline = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    industry = Column(String(100), nullable=True)
    experience_level = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    user = relationship("User", back_populates="profile")
    employment = relationship("EmploymentEntry", back_populates="profile",
                              cascade="all, delete-orphan", order_by="EmploymentEntry.position")
    education = relationship("EducationEntry", back_populates="profile",
                             cascade="all, delete-orphan", order_by="EducationEntry.position")
    skills = relationship("Skill", back_populates="profile",
                          cascade="all, delete-orphan", order_by="Skill.position")
    projects = relationship("Project", back_populates="profile",
                            cascade="all, delete-orphan", order_by="Project.position")
    certifications = relationship("Certification", back_populates="profile",
                                  cascade="all, delete-orphan", order_by="Certification.position")

    def to_dict(self, include_entries: bool = True) -> Dict[str, Any]:
        data = {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "location": self.location,
            "picture_url": self.picture_url,
            "linkedin_url": self.linkedin_url,
            "github_url": self.github_url,
            "website_url": self.website_url,
            "headline": self.headline,
            "bio": self.bio,
            "industry": self.industry,
            "experience_level": self.experience_level,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_entries:
            data["employment"] = [e.to_dict() for e in self.employment]
            data["education"] = [e.to_dict() for e in self.education]
            data["skills"] = [s.to_dict() for s in self.skills]
            data["projects"] = [p.to_dict() for p in self.projects]
            data["certifications"] = [c.to_dict() for c in self.certifications]
        return data

    def to_completeness_record(self) -> Dict[str, Any]:
        """Flatten into the record shape the completeness calculator scores"""
        return {
            "name": self.name,
            "email": self.email,
            "picture": self.picture_url,
            "phone": self.phone,
            "location": self.location,
            "linkedin": self.linkedin_url,
            "github": self.github_url,
            "website": self.website_url,
            "headline": self.headline,
            "bio": self.bio,
            "industry": self.industry,
            "experience_level": self.experience_level,
            "employment": [e.to_dict() for e in self.employment],
            "education": [e.to_dict() for e in self.education],
            "skills": [s.to_dict() for s in self.skills],
            "projects": [p.to_dict() for p in self.projects],
            "certifications": [c.to_dict() for c in self.certifications],
        }

    def __repr__(self):
        return f"<Profile(id={self.id}, user_id={self.user_id}, name={self.name})>"


class EmploymentEntry(Base):
    __tablename__ = "employment_entries"

    id = Column(Uuid, primary_key=True, default=uuid4)
    profile_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    title = Column(String(255), nullable=False)
    company = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_current = Column(Boolean, default=False, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    profile = relationship("Profile", back_populates="employment")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "start_date": _date(self.start_date),
            "end_date": _date(self.end_date),
            "is_current": self.is_current,
            "description": self.description,
        }


class EducationEntry(Base):
    __tablename__ = "education_entries"

    id = Column(Uuid, primary_key=True, default=uuid4)
    profile_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    institution = Column(String(255), nullable=False)
    degree = Column(String(255), nullable=True)
    field_of_study = Column(String(255), nullable=True)
    graduation_date = Column(Date, nullable=True)
    gpa = Column(Float, nullable=True)
    achievements = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    profile = relationship("Profile", back_populates="education")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "institution": self.institution,
            "degree": self.degree,
            "field_of_study": self.field_of_study,
            "graduation_date": _date(self.graduation_date),
            "gpa": self.gpa,
            "achievements": self.achievements,
        }


class Skill(Base):
    __tablename__ = "skills"

    id = Column(Uuid, primary_key=True, default=uuid4)
    profile_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    proficiency = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    profile = relationship("Profile", back_populates="skills")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "category": self.category,
            "proficiency": self.proficiency,
        }


class Project(Base):
    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid4)
    profile_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    role = Column(String(255), nullable=True)
    technologies = Column(JSON, nullable=False, default=list)
    project_url = Column(String(1024), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    profile = relationship("Profile", back_populates="projects")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "role": self.role,
            "technologies": self.technologies or [],
            "project_url": self.project_url,
            "start_date": _date(self.start_date),
            "end_date": _date(self.end_date),
        }


class Certification(Base):
    __tablename__ = "certifications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    profile_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    organization = Column(String(255), nullable=True)
    issue_date = Column(Date, nullable=True)
    expiration_date = Column(Date, nullable=True)
    credential_id = Column(String(255), nullable=True)
    credential_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    profile = relationship("Profile", back_populates="certifications")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "organization": self.organization,
            "issue_date": _date(self.issue_date),
            "expiration_date": _date(self.expiration_date),
            "credential_id": self.credential_id,
            "credential_url": self.credential_url,
        }
