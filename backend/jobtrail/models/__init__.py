"""
SQLAlchemy models
"""
from jobtrail.core.database import Base
# Import all models here so Base.metadata knows every table
from jobtrail.models.advisor import (AdvisorBilling,  # noqa: F401
                                     AdvisorEvaluation, AdvisorMessage,
                                     AdvisorPayment, AdvisorRecommendation,
                                     AdvisorRelationship, AdvisorSession,
                                     RelationshipStatus)
from jobtrail.models.api_usage import (AlertSeverity, AlertType,  # noqa: F401
                                       ApiAlert, ApiErrorLog, ApiUsage)
from jobtrail.models.job_application import (ApplicationStatus,  # noqa: F401
                                             JobApplication)
from jobtrail.models.profile import (Certification,  # noqa: F401
                                     EducationEntry, EmploymentEntry, Profile,
                                     Project, Skill)
from jobtrail.models.report import ReportConfig, SharedReport  # noqa: F401
from jobtrail.models.user import AuthSession, User, UserRole  # noqa: F401

__all__ = [
    "Base",
    "User",
    "UserRole",
    "AuthSession",
    "Profile",
    "EmploymentEntry",
    "EducationEntry",
    "Skill",
    "Project",
    "Certification",
    "JobApplication",
    "ApplicationStatus",
    "ReportConfig",
    "SharedReport",
    "AdvisorRelationship",
    "AdvisorSession",
    "AdvisorBilling",
    "AdvisorPayment",
    "AdvisorRecommendation",
    "AdvisorEvaluation",
    "AdvisorMessage",
    "RelationshipStatus",
    "ApiUsage",
    "ApiErrorLog",
    "ApiAlert",
    "AlertType",
    "AlertSeverity",
]
