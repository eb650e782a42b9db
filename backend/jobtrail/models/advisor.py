"""
External advisor models: relationships and everything hanging off them
"""
from enum import Enum
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import (JSON, Boolean, Column, DateTime, Float, ForeignKey,
                        Integer, String, Text, Uuid)
from sqlalchemy.orm import relationship

from jobtrail.core.database import Base
from jobtrail.utils.datetime_utils import isoformat, utc_now


class RelationshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PAUSED = "paused"


class AdvisorType(str, Enum):
    CAREER_COACH = "career_coach"
    EXECUTIVE_COACH = "executive_coach"
    RESUME_WRITER = "resume_writer"
    INTERVIEW_COACH = "interview_coach"
    SALARY_NEGOTIATOR = "salary_negotiator"
    INDUSTRY_EXPERT = "industry_expert"
    LINKEDIN_SPECIALIST = "linkedin_specialist"
    RECRUITER_ADVISOR = "recruiter_advisor"
    OTHER = "other"


class FocusArea(str, Enum):
    JOB_SEARCH_STRATEGY = "job_search_strategy"
    RESUME_OPTIMIZATION = "resume_optimization"
    COVER_LETTER_WRITING = "cover_letter_writing"
    INTERVIEW_PREPARATION = "interview_preparation"
    SALARY_NEGOTIATION = "salary_negotiation"
    CAREER_TRANSITION = "career_transition"
    EXECUTIVE_POSITIONING = "executive_positioning"
    PERSONAL_BRANDING = "personal_branding"
    LINKEDIN_OPTIMIZATION = "linkedin_optimization"
    NETWORKING_STRATEGY = "networking_strategy"
    INDUSTRY_INSIGHTS = "industry_insights"
    SKILL_DEVELOPMENT = "skill_development"
    WORK_LIFE_BALANCE = "work_life_balance"
    LEADERSHIP_DEVELOPMENT = "leadership_development"
    GENERAL_CAREER_ADVICE = "general_career_advice"


class SessionType(str, Enum):
    INITIAL_CONSULTATION = "initial_consultation"
    FOLLOW_UP = "follow_up"
    RESUME_REVIEW = "resume_review"
    MOCK_INTERVIEW = "mock_interview"
    STRATEGY_SESSION = "strategy_session"
    GOAL_SETTING = "goal_setting"
    PROGRESS_REVIEW = "progress_review"
    SALARY_NEGOTIATION = "salary_negotiation"
    FINAL_REVIEW = "final_review"
    OTHER = "other"


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


class MeetingType(str, Enum):
    VIDEO = "video"
    PHONE = "phone"
    IN_PERSON = "in_person"
    CHAT = "chat"


class BillingType(str, Enum):
    FREE = "free"
    PER_SESSION = "per_session"
    PACKAGE = "package"
    SUBSCRIPTION = "subscription"
    RETAINER = "retainer"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class RecommendationPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DISMISSED = "dismissed"
    DEFERRED = "deferred"


DEFAULT_SHARED_DATA = {
    "share_resume": True,
    "share_cover_letters": True,
    "share_applications": True,
    "share_interview_prep": True,
    "share_goals": True,
    "share_skill_gaps": True,
    "share_progress": True,
    "share_salary_info": False,
    "share_network_contacts": False,
}


class AdvisorRelationship(Base):
    """Connection between a job seeker and an external advisor"""
    __tablename__ = "advisor_relationships"

    id = Column(Uuid, primary_key=True, default=uuid4)

    # Seeker side
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    sender_name = Column(String(255), nullable=True)
    sender_email = Column(String(255), nullable=False)

    # Advisor side; advisor_id is set on acceptance
    advisor_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    advisor_name = Column(String(255), nullable=True)
    advisor_email = Column(String(255), nullable=False, index=True)
    advisor_type = Column(String(50), nullable=False, default=AdvisorType.CAREER_COACH.value)

    status = Column(String(20), nullable=False, default=RelationshipStatus.PENDING.value, index=True)
    invitation_message = Column(Text, nullable=True)
    invitation_token = Column(String(128), unique=True, nullable=False, index=True)
    invitation_expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    end_reason = Column(Text, nullable=True)

    focus_areas = Column(JSON, nullable=False, default=list)
    shared_data = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_SHARED_DATA))

    completed_sessions = Column(Integer, default=0, nullable=False)
    total_sessions = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    billing = relationship("AdvisorBilling", back_populates="relationship_record", uselist=False,
                           cascade="all, delete-orphan")

    def is_participant(self, user_id) -> bool:
        return user_id in (self.user_id, self.advisor_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "sender_name": self.sender_name,
            "sender_email": self.sender_email,
            "advisor_id": str(self.advisor_id) if self.advisor_id else None,
            "advisor_name": self.advisor_name,
            "advisor_email": self.advisor_email,
            "advisor_type": self.advisor_type,
            "status": self.status,
            "invitation_message": self.invitation_message,
            "invitation_expires_at": isoformat(self.invitation_expires_at),
            "accepted_at": isoformat(self.accepted_at),
            "ended_at": isoformat(self.ended_at),
            "end_reason": self.end_reason,
            "focus_areas": self.focus_areas or [],
            "shared_data": self.shared_data or {},
            "completed_sessions": self.completed_sessions,
            "total_sessions": self.total_sessions,
            "notes": self.notes,
            "tags": self.tags or [],
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<AdvisorRelationship(id={self.id}, advisor={self.advisor_email}, status={self.status})>"


class AdvisorSession(Base):
    """Scheduled coaching session within a relationship"""
    __tablename__ = "advisor_sessions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    relationship_id = Column(Uuid, ForeignKey("advisor_relationships.id"), nullable=False, index=True)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    session_type = Column(String(50), nullable=False, default=SessionType.FOLLOW_UP.value)
    scheduled_at = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=60)
    meeting_type = Column(String(20), nullable=False, default=MeetingType.VIDEO.value)
    meeting_link = Column(String(1024), nullable=True)
    meeting_location = Column(String(255), nullable=True)
    agenda_items = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value, index=True)
    advisor_notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Uuid, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def to_dict(self, include_advisor_notes: bool = True) -> Dict[str, Any]:
        data = {
            "id": str(self.id),
            "relationship_id": str(self.relationship_id),
            "created_by": str(self.created_by),
            "title": self.title,
            "description": self.description,
            "session_type": self.session_type,
            "scheduled_at": isoformat(self.scheduled_at),
            "duration_minutes": self.duration_minutes,
            "meeting_type": self.meeting_type,
            "meeting_link": self.meeting_link,
            "meeting_location": self.meeting_location,
            "agenda_items": self.agenda_items or [],
            "status": self.status,
            "completed_at": isoformat(self.completed_at),
            "cancelled_at": isoformat(self.cancelled_at),
            "cancelled_by": str(self.cancelled_by) if self.cancelled_by else None,
            "cancellation_reason": self.cancellation_reason,
            "created_at": isoformat(self.created_at),
        }
        if include_advisor_notes:
            data["advisor_notes"] = self.advisor_notes
        return data


class AdvisorBilling(Base):
    """Billing arrangement for a relationship; created as free on acceptance"""
    __tablename__ = "advisor_billing"

    id = Column(Uuid, primary_key=True, default=uuid4)
    relationship_id = Column(Uuid, ForeignKey("advisor_relationships.id"), unique=True, nullable=False)
    billing_type = Column(String(20), nullable=False, default=BillingType.FREE.value)
    currency = Column(String(3), nullable=False, default="USD")
    session_rate = Column(Float, nullable=False, default=0.0)
    total_paid = Column(Float, nullable=False, default=0.0)
    total_outstanding = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    relationship_record = relationship("AdvisorRelationship", back_populates="billing")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "relationship_id": str(self.relationship_id),
            "billing_type": self.billing_type,
            "currency": self.currency,
            "session_rate": self.session_rate,
            "total_paid": self.total_paid,
            "total_outstanding": self.total_outstanding,
            "is_active": self.is_active,
            "updated_at": isoformat(self.updated_at),
        }


class AdvisorPayment(Base):
    __tablename__ = "advisor_payments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    billing_id = Column(Uuid, ForeignKey("advisor_billing.id"), nullable=False, index=True)
    relationship_id = Column(Uuid, ForeignKey("advisor_relationships.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    description = Column(String(500), nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    paid_at = Column(DateTime, nullable=True)
    recorded_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "billing_id": str(self.billing_id),
            "relationship_id": str(self.relationship_id),
            "amount": self.amount,
            "currency": self.currency,
            "description": self.description,
            "status": self.status,
            "paid_at": isoformat(self.paid_at),
            "created_at": isoformat(self.created_at),
        }


class AdvisorRecommendation(Base):
    __tablename__ = "advisor_recommendations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    relationship_id = Column(Uuid, ForeignKey("advisor_relationships.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    priority = Column(String(20), nullable=False, default=RecommendationPriority.MEDIUM.value)
    status = Column(String(20), nullable=False, default=RecommendationStatus.PENDING.value)
    due_date = Column(DateTime, nullable=True)
    client_notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "relationship_id": str(self.relationship_id),
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "due_date": isoformat(self.due_date),
            "client_notes": self.client_notes,
            "completed_at": isoformat(self.completed_at),
            "created_at": isoformat(self.created_at),
        }


class AdvisorEvaluation(Base):
    __tablename__ = "advisor_evaluations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    relationship_id = Column(Uuid, ForeignKey("advisor_relationships.id"), nullable=False, index=True)
    client_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    advisor_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    # {"overall": 1-5, "communication": .., "expertise": .., "responsiveness": ..}
    ratings = Column(JSON, nullable=False)
    feedback = Column(Text, nullable=True)
    nps_score = Column(Integer, nullable=True)
    is_public = Column(Boolean, default=False, nullable=False)
    advisor_response = Column(Text, nullable=True)
    responded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "relationship_id": str(self.relationship_id),
            "client_id": str(self.client_id),
            "advisor_id": str(self.advisor_id),
            "ratings": self.ratings,
            "feedback": self.feedback,
            "nps_score": self.nps_score,
            "is_public": self.is_public,
            "advisor_response": self.advisor_response,
            "responded_at": isoformat(self.responded_at),
            "created_at": isoformat(self.created_at),
        }


class AdvisorMessage(Base):
    __tablename__ = "advisor_messages"

    id = Column(Uuid, primary_key=True, default=uuid4)
    relationship_id = Column(Uuid, ForeignKey("advisor_relationships.id"), nullable=False, index=True)
    sender_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    recipient_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "relationship_id": str(self.relationship_id),
            "sender_id": str(self.sender_id),
            "recipient_id": str(self.recipient_id),
            "content": self.content,
            "is_read": self.is_read,
            "read_at": isoformat(self.read_at),
            "created_at": isoformat(self.created_at),
        }
