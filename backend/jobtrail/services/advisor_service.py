"""
External advisor service

Covers the relationship lifecycle (invite, accept, reject, cancel, pause),
shared data, coaching sessions, billing and payments, recommendations and
evaluations. Messaging lives in ``advisor_messaging_service``.
"""
import secrets
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from jobtrail.core.config import get_settings
from jobtrail.core.exceptions import (ConflictError, NotFoundError,
                                      PermissionDeniedError,
                                      ValidationFailedError)
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.metrics import advisor_relationship_transitions_total
from jobtrail.core.responses import ErrorCode
from jobtrail.models.advisor import (DEFAULT_SHARED_DATA, AdvisorBilling,
                                     AdvisorEvaluation, AdvisorPayment,
                                     AdvisorRecommendation,
                                     AdvisorRelationship, AdvisorSession,
                                     AdvisorType, BillingType, PaymentStatus,
                                     RecommendationStatus, RelationshipStatus,
                                     SessionStatus)
from jobtrail.models.job_application import JobApplication
from jobtrail.models.profile import Profile
from jobtrail.models.user import User
from jobtrail.services.application_service import ApplicationService
from jobtrail.utils.datetime_utils import utc_now
from jobtrail.utils.numbers import round_half_up

logger = LoggingConfig.get_logger(__name__)

ACTIVE_STATUSES = [RelationshipStatus.PENDING.value, RelationshipStatus.ACCEPTED.value]
OPEN_STATUSES = ACTIVE_STATUSES + [RelationshipStatus.PAUSED.value]
# Relationships that were accepted at some point and can be evaluated
EVALUABLE_STATUSES = [
    RelationshipStatus.ACCEPTED.value,
    RelationshipStatus.PAUSED.value,
    RelationshipStatus.CANCELLED.value,
]

SESSION_FIELDS = {
    "title", "description", "session_type", "scheduled_at", "duration_minutes",
    "meeting_type", "meeting_link", "meeting_location", "agenda_items",
    "cancellation_reason",
}
BILLING_FIELDS = {"billing_type", "session_rate", "currency", "is_active"}
RECOMMENDATION_FIELDS = {
    "title", "description", "category", "priority", "status", "due_date", "client_notes",
}
SEEKER_RECOMMENDATION_FIELDS = {"status", "client_notes"}
RATING_KEYS = ("communication", "expertise", "responsiveness")

MIN_SESSION_MINUTES = 15
MAX_SESSION_MINUTES = 240


def _invalid(message: str) -> ValidationFailedError:
    return ValidationFailedError(message, error_code=ErrorCode.INVALID_INPUT)


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


def _average(values: Iterable[float]) -> Optional[float]:
    values = list(values)
    if not values:
        return None
    return float(round_half_up(sum(values) / len(values), 1))


class AdvisorService:
    """Relationship lifecycle and the records attached to a relationship"""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------

    def get_relationship(self, relationship_id: UUID) -> AdvisorRelationship:
        relationship = self.db.query(AdvisorRelationship).filter(
            AdvisorRelationship.id == relationship_id
        ).first()
        if not relationship:
            raise NotFoundError("Advisor relationship not found")
        return relationship

    @staticmethod
    def is_invited_advisor(relationship: AdvisorRelationship, user: User) -> bool:
        return (user.email or "").lower() == (relationship.advisor_email or "").lower()

    def participant_relationship(self, user: User, relationship_id: UUID) -> AdvisorRelationship:
        relationship = self.get_relationship(relationship_id)
        if not relationship.is_participant(user.id):
            raise PermissionDeniedError("Not authorized to access this relationship")
        return relationship

    def seeker_relationship(self, user: User, relationship_id: UUID) -> AdvisorRelationship:
        relationship = self.get_relationship(relationship_id)
        if relationship.user_id != user.id:
            raise PermissionDeniedError("Only the job seeker can perform this action")
        return relationship

    def advisor_relationship(self, user: User, relationship_id: UUID) -> AdvisorRelationship:
        relationship = self.get_relationship(relationship_id)
        if relationship.advisor_id != user.id:
            raise PermissionDeniedError("Only the advisor can perform this action")
        return relationship

    @staticmethod
    def require_accepted(relationship: AdvisorRelationship):
        if relationship.status != RelationshipStatus.ACCEPTED.value:
            raise _invalid("Advisor relationship is not active")

    def _transition(self, relationship: AdvisorRelationship, status: RelationshipStatus):
        previous = relationship.status
        relationship.status = status.value
        advisor_relationship_transitions_total.labels(status=status.value).inc()
        logger.info(
            "Advisor relationship status changed",
            extra={
                "relationship_id": str(relationship.id),
                "from_status": previous,
                "to_status": status.value,
            },
        )

    # ------------------------------------------------------------------
    # Invitations and lifecycle
    # ------------------------------------------------------------------

    def invite(self, user: User, data: Dict[str, Any]) -> AdvisorRelationship:
        """
        Invite an advisor by email

        Raises:
            ValidationFailedError: If advisor_email is missing
            ConflictError: If a pending or accepted relationship already exists
        """
        advisor_email = (data.get("advisor_email") or "").strip().lower()
        if not advisor_email:
            raise ValidationFailedError(
                "Advisor email is required",
                error_code=ErrorCode.MISSING_REQUIRED_FIELD,
                errors=[{"field": "advisor_email", "message": "Advisor email is required"}],
            )

        existing = self.db.query(AdvisorRelationship).filter(
            AdvisorRelationship.user_id == user.id,
            AdvisorRelationship.advisor_email == advisor_email,
            AdvisorRelationship.status.in_(ACTIVE_STATUSES),
        ).first()
        if existing:
            if existing.status == RelationshipStatus.PENDING.value:
                raise ConflictError("Pending invitation already exists for this advisor")
            raise ConflictError("You already have an active relationship with this advisor")

        profile = self.db.query(Profile).filter(Profile.user_id == user.id).first()
        shared_data = dict(DEFAULT_SHARED_DATA)
        shared_data.update({
            key: bool(value) for key, value in (data.get("shared_data") or {}).items()
            if key in DEFAULT_SHARED_DATA
        })

        relationship = AdvisorRelationship(
            user_id=user.id,
            sender_name=(profile.name if profile and profile.name else None) or user.username,
            sender_email=user.email,
            advisor_email=advisor_email,
            advisor_name=data.get("advisor_name"),
            advisor_type=data.get("advisor_type") or AdvisorType.CAREER_COACH.value,
            invitation_message=data.get("invitation_message"),
            invitation_token=secrets.token_hex(32),
            invitation_expires_at=utc_now() + timedelta(days=self.settings.invitation_expiration_days),
            focus_areas=list(data.get("focus_areas") or []),
            shared_data=shared_data,
            status=RelationshipStatus.PENDING.value,
        )
        self.db.add(relationship)
        self.db.commit()
        self.db.refresh(relationship)
        advisor_relationship_transitions_total.labels(status=RelationshipStatus.PENDING.value).inc()
        logger.info(
            "Advisor invitation created",
            extra={"relationship_id": str(relationship.id), "user_id": str(user.id)},
        )
        return relationship

    def _accept(self, user: User, relationship: AdvisorRelationship) -> AdvisorRelationship:
        if not self.is_invited_advisor(relationship, user):
            raise PermissionDeniedError("You are not authorized to accept this invitation")
        if relationship.status != RelationshipStatus.PENDING.value:
            raise _invalid(f"Cannot accept invitation with status: {relationship.status}")
        now = utc_now()
        if relationship.invitation_expires_at < now:
            self._transition(relationship, RelationshipStatus.EXPIRED)
            self.db.commit()
            raise _invalid("Invitation has expired")

        relationship.advisor_id = user.id
        relationship.accepted_at = now
        self._transition(relationship, RelationshipStatus.ACCEPTED)
        if relationship.billing is None:
            relationship.billing = AdvisorBilling(billing_type=BillingType.FREE.value)
        self.db.commit()
        self.db.refresh(relationship)
        return relationship

    def accept(self, user: User, relationship_id: UUID) -> AdvisorRelationship:
        return self._accept(user, self.get_relationship(relationship_id))

    def accept_by_token(self, user: User, token: str) -> AdvisorRelationship:
        relationship = self.db.query(AdvisorRelationship).filter(
            AdvisorRelationship.invitation_token == token
        ).first()
        if not relationship:
            raise NotFoundError("Invitation not found")
        return self._accept(user, relationship)

    def reject(self, user: User, relationship_id: UUID, reason: Optional[str] = None) -> AdvisorRelationship:
        relationship = self.get_relationship(relationship_id)
        if not self.is_invited_advisor(relationship, user):
            raise PermissionDeniedError("You are not authorized to decline this invitation")
        if relationship.status != RelationshipStatus.PENDING.value:
            raise _invalid(f"Cannot reject invitation with status: {relationship.status}")
        relationship.ended_at = utc_now()
        if reason:
            relationship.end_reason = reason
            relationship.notes = _append_note(relationship.notes, f"Rejection reason: {reason}")
        self._transition(relationship, RelationshipStatus.REJECTED)
        self.db.commit()
        self.db.refresh(relationship)
        return relationship

    def cancel(self, user: User, relationship_id: UUID, reason: Optional[str] = None) -> AdvisorRelationship:
        relationship = self.participant_relationship(user, relationship_id)
        if relationship.status not in OPEN_STATUSES:
            raise _invalid(f"Cannot cancel relationship with status: {relationship.status}")
        relationship.ended_at = utc_now()
        if reason:
            relationship.end_reason = reason
            relationship.notes = _append_note(relationship.notes, f"Cancellation reason: {reason}")
        self._transition(relationship, RelationshipStatus.CANCELLED)
        self.db.commit()
        self.db.refresh(relationship)
        return relationship

    def pause(self, user: User, relationship_id: UUID) -> AdvisorRelationship:
        relationship = self.participant_relationship(user, relationship_id)
        if relationship.status != RelationshipStatus.ACCEPTED.value:
            raise _invalid("Only an accepted relationship can be paused")
        self._transition(relationship, RelationshipStatus.PAUSED)
        self.db.commit()
        self.db.refresh(relationship)
        return relationship

    def resume(self, user: User, relationship_id: UUID) -> AdvisorRelationship:
        relationship = self.participant_relationship(user, relationship_id)
        if relationship.status != RelationshipStatus.PAUSED.value:
            raise _invalid("Only a paused relationship can be resumed")
        self._transition(relationship, RelationshipStatus.ACCEPTED)
        self.db.commit()
        self.db.refresh(relationship)
        return relationship

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_my_advisors(self, user: User, status: Optional[str] = None) -> List[AdvisorRelationship]:
        statuses = [status] if status else ACTIVE_STATUSES
        return self.db.query(AdvisorRelationship).filter(
            AdvisorRelationship.user_id == user.id,
            AdvisorRelationship.status.in_(statuses),
        ).order_by(AdvisorRelationship.created_at.desc()).all()

    def list_my_clients(self, user: User, status: Optional[str] = None) -> List[AdvisorRelationship]:
        statuses = [status] if status else ACTIVE_STATUSES
        return self.db.query(AdvisorRelationship).filter(
            or_(
                AdvisorRelationship.advisor_id == user.id,
                AdvisorRelationship.advisor_email == (user.email or "").lower(),
            ),
            AdvisorRelationship.status.in_(statuses),
        ).order_by(AdvisorRelationship.created_at.desc()).all()

    def list_pending(self, user: User) -> Dict[str, List[AdvisorRelationship]]:
        pending = RelationshipStatus.PENDING.value
        sent = self.db.query(AdvisorRelationship).filter(
            AdvisorRelationship.user_id == user.id,
            AdvisorRelationship.status == pending,
        ).order_by(AdvisorRelationship.created_at.desc()).all()
        received = self.db.query(AdvisorRelationship).filter(
            AdvisorRelationship.advisor_email == (user.email or "").lower(),
            AdvisorRelationship.status == pending,
        ).order_by(AdvisorRelationship.created_at.desc()).all()
        return {"sent": sent, "received": received}

    def get_for_user(self, user: User, relationship_id: UUID) -> AdvisorRelationship:
        """Participants, or the invited advisor while the invitation is pending"""
        relationship = self.get_relationship(relationship_id)
        if relationship.is_participant(user.id) or self.is_invited_advisor(relationship, user):
            return relationship
        raise PermissionDeniedError("Not authorized to access this relationship")

    def update_shared_data(self, user: User, relationship_id: UUID, flags: Dict[str, Any]) -> AdvisorRelationship:
        relationship = self.seeker_relationship(user, relationship_id)
        shared_data = dict(relationship.shared_data or DEFAULT_SHARED_DATA)
        shared_data.update({
            key: bool(value) for key, value in flags.items() if key in DEFAULT_SHARED_DATA
        })
        relationship.shared_data = shared_data
        self.db.commit()
        self.db.refresh(relationship)
        return relationship

    def get_shared_data(self, user: User, relationship_id: UUID) -> Dict[str, Any]:
        """
        The seeker's data the advisor may see, according to the share flags

        Raises:
            PermissionDeniedError: If the caller is not the relationship's advisor
            ValidationFailedError: If the relationship is not accepted
        """
        relationship = self.advisor_relationship(user, relationship_id)
        self.require_accepted(relationship)
        flags = relationship.shared_data or {}
        seeker_id = relationship.user_id
        data: Dict[str, Any] = {
            "shared_data": flags,
            "focus_areas": relationship.focus_areas or [],
        }

        profile = self.db.query(Profile).filter(Profile.user_id == seeker_id).first()
        if flags.get("share_resume") and profile:
            data["profile"] = profile.to_dict(include_entries=True)
        if flags.get("share_skill_gaps") and profile:
            data["skills"] = [skill.to_dict() for skill in profile.skills]
        if flags.get("share_applications"):
            applications = self.db.query(JobApplication).filter(
                JobApplication.user_id == seeker_id,
                JobApplication.archived.is_(False),
            ).order_by(JobApplication.created_at.desc()).all()
            rows = [a.to_dict() for a in applications]
            if not flags.get("share_salary_info"):
                for row in rows:
                    row.pop("salary_min", None)
                    row.pop("salary_max", None)
            data["applications"] = rows
        if flags.get("share_progress"):
            data["progress"] = ApplicationService(self.db).get_stats(seeker_id)
        return data

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _validate_duration(self, duration: Optional[int]):
        if duration is not None and not MIN_SESSION_MINUTES <= duration <= MAX_SESSION_MINUTES:
            raise _invalid(
                f"duration_minutes must be between {MIN_SESSION_MINUTES} and {MAX_SESSION_MINUTES}"
            )

    def create_session(self, user: User, relationship_id: UUID, data: Dict[str, Any]) -> AdvisorSession:
        relationship = self.participant_relationship(user, relationship_id)
        self.require_accepted(relationship)
        if not data.get("title") or not data.get("scheduled_at"):
            raise ValidationFailedError(
                "title and scheduled_at are required",
                error_code=ErrorCode.MISSING_REQUIRED_FIELD,
            )
        self._validate_duration(data.get("duration_minutes"))

        values = {key: value for key, value in data.items() if key in SESSION_FIELDS and value is not None}
        session = AdvisorSession(relationship_id=relationship.id, created_by=user.id, **values)
        relationship.total_sessions = (relationship.total_sessions or 0) + 1
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"Scheduled advisor session {session.id}", extra={"relationship_id": str(relationship.id)})
        return session

    def list_sessions(
        self,
        user: User,
        relationship_id: Optional[UUID] = None,
        status: Optional[str] = None,
        upcoming: bool = False,
    ) -> List[AdvisorSession]:
        query = self.db.query(AdvisorSession).join(
            AdvisorRelationship, AdvisorSession.relationship_id == AdvisorRelationship.id
        ).filter(
            or_(AdvisorRelationship.user_id == user.id, AdvisorRelationship.advisor_id == user.id)
        )
        if relationship_id:
            query = query.filter(AdvisorSession.relationship_id == relationship_id)
        if status:
            query = query.filter(AdvisorSession.status == status)
        if upcoming:
            query = query.filter(
                AdvisorSession.scheduled_at >= utc_now(),
                AdvisorSession.status.in_([SessionStatus.SCHEDULED.value, SessionStatus.CONFIRMED.value]),
            )
            return query.order_by(AdvisorSession.scheduled_at.asc()).all()
        return query.order_by(AdvisorSession.scheduled_at.desc()).all()

    def _session_with_relationship(self, user: User, session_id: UUID):
        session = self.db.query(AdvisorSession).filter(AdvisorSession.id == session_id).first()
        if not session:
            raise NotFoundError("Session not found")
        relationship = self.get_relationship(session.relationship_id)
        if not relationship.is_participant(user.id):
            raise PermissionDeniedError("Not authorized to access this session")
        return session, relationship

    def serialize_session(self, user: User, session: AdvisorSession) -> Dict[str, Any]:
        """Advisor notes are only shown to the advisor"""
        relationship = self.get_relationship(session.relationship_id)
        return session.to_dict(include_advisor_notes=relationship.advisor_id == user.id)

    def update_session(self, user: User, session_id: UUID, data: Dict[str, Any]) -> AdvisorSession:
        session, relationship = self._session_with_relationship(user, session_id)
        self._validate_duration(data.get("duration_minutes"))

        new_status = data.get("status")
        if new_status:
            if new_status not in {s.value for s in SessionStatus}:
                raise _invalid(f"Invalid session status: {new_status}")
            now = utc_now()
            if new_status == SessionStatus.COMPLETED.value and session.status != SessionStatus.COMPLETED.value:
                session.completed_at = now
                relationship.completed_sessions = (relationship.completed_sessions or 0) + 1
            if new_status == SessionStatus.CANCELLED.value and session.status != SessionStatus.CANCELLED.value:
                session.cancelled_at = now
                session.cancelled_by = user.id
            session.status = new_status

        for key, value in data.items():
            if key in SESSION_FIELDS and value is not None:
                setattr(session, key, value)
        self.db.commit()
        self.db.refresh(session)
        return session

    def add_session_notes(self, user: User, session_id: UUID, notes: str) -> AdvisorSession:
        session, relationship = self._session_with_relationship(user, session_id)
        if relationship.advisor_id != user.id:
            raise PermissionDeniedError("Only the advisor can add session notes")
        session.advisor_notes = notes
        self.db.commit()
        self.db.refresh(session)
        return session

    # ------------------------------------------------------------------
    # Billing and payments
    # ------------------------------------------------------------------

    @staticmethod
    def _require_billing(relationship: AdvisorRelationship) -> AdvisorBilling:
        if relationship.billing is None:
            raise NotFoundError("Billing information not found")
        return relationship.billing

    def get_billing(self, user: User, relationship_id: UUID) -> AdvisorBilling:
        return self._require_billing(self.participant_relationship(user, relationship_id))

    def update_billing(self, user: User, relationship_id: UUID, data: Dict[str, Any]) -> AdvisorBilling:
        billing = self._require_billing(self.advisor_relationship(user, relationship_id))
        if data.get("billing_type") and data["billing_type"] not in {b.value for b in BillingType}:
            raise _invalid(f"Invalid billing type: {data['billing_type']}")
        if data.get("session_rate") is not None and data["session_rate"] < 0:
            raise _invalid("session_rate cannot be negative")
        for key, value in data.items():
            if key in BILLING_FIELDS and value is not None:
                setattr(billing, key, value)
        self.db.commit()
        self.db.refresh(billing)
        return billing

    def create_payment(
        self,
        user: User,
        relationship_id: UUID,
        amount: float,
        currency: Optional[str] = None,
        description: Optional[str] = None,
    ) -> AdvisorPayment:
        """Add a pending payment to the relationship's outstanding balance"""
        if amount is None or amount <= 0:
            raise _invalid("Valid amount is required")
        relationship = self.participant_relationship(user, relationship_id)
        billing = self._require_billing(relationship)
        payment = AdvisorPayment(
            billing_id=billing.id,
            relationship_id=relationship.id,
            amount=float(amount),
            currency=currency or billing.currency,
            description=description or "Payment",
            status=PaymentStatus.PENDING.value,
        )
        billing.total_outstanding = (billing.total_outstanding or 0.0) + float(amount)
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def record_payment(self, user: User, payment_id: UUID) -> AdvisorPayment:
        """Mark a payment completed and move its amount from outstanding to paid"""
        payment = self.db.query(AdvisorPayment).filter(AdvisorPayment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        relationship = self.participant_relationship(user, payment.relationship_id)
        if payment.status == PaymentStatus.COMPLETED.value:
            raise _invalid("Payment has already been recorded")
        billing = self._require_billing(relationship)

        payment.status = PaymentStatus.COMPLETED.value
        payment.paid_at = utc_now()
        payment.recorded_by = user.id
        billing.total_outstanding = max(0.0, (billing.total_outstanding or 0.0) - payment.amount)
        billing.total_paid = (billing.total_paid or 0.0) + payment.amount
        self.db.commit()
        self.db.refresh(payment)
        logger.info(
            "Advisor payment recorded",
            extra={"payment_id": str(payment.id), "amount": payment.amount},
        )
        return payment

    def list_payments(self, user: User, relationship_id: UUID) -> List[AdvisorPayment]:
        relationship = self.participant_relationship(user, relationship_id)
        return self.db.query(AdvisorPayment).filter(
            AdvisorPayment.relationship_id == relationship.id
        ).order_by(AdvisorPayment.created_at.desc()).all()

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def create_recommendation(self, user: User, relationship_id: UUID, data: Dict[str, Any]) -> AdvisorRecommendation:
        relationship = self.advisor_relationship(user, relationship_id)
        self.require_accepted(relationship)
        if not data.get("title"):
            raise ValidationFailedError("title is required", error_code=ErrorCode.MISSING_REQUIRED_FIELD)
        values = {key: value for key, value in data.items() if key in RECOMMENDATION_FIELDS and value is not None}
        recommendation = AdvisorRecommendation(relationship_id=relationship.id, **values)
        self.db.add(recommendation)
        self.db.commit()
        self.db.refresh(recommendation)
        return recommendation

    def list_recommendations(
        self,
        user: User,
        relationship_id: UUID,
        status: Optional[str] = None,
    ) -> List[AdvisorRecommendation]:
        relationship = self.participant_relationship(user, relationship_id)
        query = self.db.query(AdvisorRecommendation).filter(
            AdvisorRecommendation.relationship_id == relationship.id
        )
        if status:
            query = query.filter(AdvisorRecommendation.status == status)
        return query.order_by(AdvisorRecommendation.created_at.desc()).all()

    def update_recommendation(self, user: User, recommendation_id: UUID, data: Dict[str, Any]) -> AdvisorRecommendation:
        """The advisor edits everything; the seeker only status and client_notes"""
        recommendation = self.db.query(AdvisorRecommendation).filter(
            AdvisorRecommendation.id == recommendation_id
        ).first()
        if not recommendation:
            raise NotFoundError("Recommendation not found")
        relationship = self.participant_relationship(user, recommendation.relationship_id)

        updates = {key: value for key, value in data.items() if key in RECOMMENDATION_FIELDS and value is not None}
        if relationship.advisor_id != user.id:
            forbidden = set(updates) - SEEKER_RECOMMENDATION_FIELDS
            if forbidden:
                raise PermissionDeniedError(
                    f"Only the advisor can change: {', '.join(sorted(forbidden))}"
                )

        new_status = updates.get("status")
        if new_status:
            if new_status not in {s.value for s in RecommendationStatus}:
                raise _invalid(f"Invalid recommendation status: {new_status}")
            if new_status == RecommendationStatus.COMPLETED.value and recommendation.status != new_status:
                recommendation.completed_at = utc_now()
        for key, value in updates.items():
            setattr(recommendation, key, value)
        self.db.commit()
        self.db.refresh(recommendation)
        return recommendation

    # ------------------------------------------------------------------
    # Evaluations
    # ------------------------------------------------------------------

    def create_evaluation(self, user: User, relationship_id: UUID, data: Dict[str, Any]) -> AdvisorEvaluation:
        """
        Rate the advisor of a relationship

        Raises:
            PermissionDeniedError: If the caller is not the job seeker
            ValidationFailedError: If the relationship was never accepted or
                ``ratings.overall`` is missing
        """
        relationship = self.seeker_relationship(user, relationship_id)
        if relationship.advisor_id is None or relationship.status not in EVALUABLE_STATUSES:
            raise _invalid("Cannot evaluate - advisor has not accepted the invitation")
        ratings = dict(data.get("ratings") or {})
        if not ratings.get("overall"):
            raise ValidationFailedError(
                "Overall rating is required",
                error_code=ErrorCode.MISSING_REQUIRED_FIELD,
                errors=[{"field": "ratings.overall", "message": "Overall rating is required"}],
            )

        evaluation = AdvisorEvaluation(
            relationship_id=relationship.id,
            client_id=user.id,
            advisor_id=relationship.advisor_id,
            ratings=ratings,
            feedback=data.get("feedback"),
            nps_score=data.get("nps_score"),
            is_public=bool(data.get("is_public", False)),
        )
        self.db.add(evaluation)
        self.db.commit()
        self.db.refresh(evaluation)
        return evaluation

    def list_evaluations(self, user: User, relationship_id: UUID) -> List[AdvisorEvaluation]:
        relationship = self.participant_relationship(user, relationship_id)
        return self.db.query(AdvisorEvaluation).filter(
            AdvisorEvaluation.relationship_id == relationship.id
        ).order_by(AdvisorEvaluation.created_at.desc()).all()

    def respond_to_evaluation(self, user: User, evaluation_id: UUID, response: str) -> AdvisorEvaluation:
        evaluation = self.db.query(AdvisorEvaluation).filter(AdvisorEvaluation.id == evaluation_id).first()
        if not evaluation:
            raise NotFoundError("Evaluation not found")
        if evaluation.advisor_id != user.id:
            raise PermissionDeniedError("Only the evaluated advisor can respond")
        evaluation.advisor_response = response
        evaluation.responded_at = utc_now()
        self.db.commit()
        self.db.refresh(evaluation)
        return evaluation

    def get_advisor_ratings(self, advisor_id: UUID) -> Dict[str, Any]:
        """Average ratings across every evaluation of an advisor"""
        evaluations = self.db.query(AdvisorEvaluation).filter(
            AdvisorEvaluation.advisor_id == advisor_id
        ).all()
        rated = [e for e in evaluations if (e.ratings or {}).get("overall")]
        if not rated:
            return {"average_rating": None, "total_reviews": 0, "breakdown": None, "average_nps": None}

        return {
            "average_rating": _average(e.ratings["overall"] for e in rated),
            "total_reviews": len(rated),
            "breakdown": {
                key: _average(e.ratings[key] for e in rated if e.ratings.get(key))
                for key in RATING_KEYS
            },
            "average_nps": _average(e.nps_score for e in rated if e.nps_score is not None),
        }
