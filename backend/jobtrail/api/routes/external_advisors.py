"""
External advisor routes: invitations, sessions, billing, recommendations,
evaluations and messaging
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from jobtrail.core.auth import get_current_user_required
from jobtrail.core.database import get_db
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.responses import success_response
from jobtrail.models.user import User
from jobtrail.services.advisor_messaging_service import \
    AdvisorMessagingService
from jobtrail.services.advisor_service import AdvisorService
from jobtrail.utils.datetime_utils import to_naive_utc

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/external-advisors", tags=["external-advisors"])


# Request models
class InviteRequest(BaseModel):
    """Invite an advisor by email"""
    advisor_email: Optional[EmailStr] = None
    advisor_name: Optional[str] = Field(None, max_length=255)
    advisor_type: Optional[str] = None
    invitation_message: Optional[str] = None
    focus_areas: List[str] = Field(default_factory=list)
    shared_data: Dict[str, bool] = Field(default_factory=dict)


class ReasonRequest(BaseModel):
    reason: Optional[str] = None


class SessionFields(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    session_type: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    meeting_type: Optional[str] = None
    meeting_link: Optional[str] = None
    meeting_location: Optional[str] = None
    agenda_items: Optional[List[str]] = None

    @field_validator("scheduled_at")
    @classmethod
    def normalize_datetime(cls, value):
        return to_naive_utc(value)


class SessionCreate(SessionFields):
    relationship_id: UUID


class SessionUpdate(SessionFields):
    status: Optional[str] = None
    cancellation_reason: Optional[str] = None


class SessionNotesRequest(BaseModel):
    notes: str


class BillingUpdate(BaseModel):
    billing_type: Optional[str] = None
    session_rate: Optional[float] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    is_active: Optional[bool] = None


class PaymentCreate(BaseModel):
    amount: Optional[float] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    description: Optional[str] = Field(None, max_length=500)


class RecommendationFields(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    due_date: Optional[datetime] = None
    client_notes: Optional[str] = None

    @field_validator("due_date")
    @classmethod
    def normalize_datetime(cls, value):
        return to_naive_utc(value)


class EvaluationCreate(BaseModel):
    ratings: Dict[str, float] = Field(default_factory=dict)
    feedback: Optional[str] = None
    nps_score: Optional[int] = Field(None, ge=0, le=10)
    is_public: bool = False


class EvaluationResponseRequest(BaseModel):
    response: str = Field(..., min_length=1)


class MessageCreate(BaseModel):
    content: str = ""


def _relationships(items) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in items]


# ----------------------------------------------------------------------
# Invitations and listings
# ----------------------------------------------------------------------

@router.post("/invite", status_code=201)
async def invite_advisor(
    request: InviteRequest,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Invite an advisor; the returned token backs the accept link"""
    relationship = AdvisorService(db).invite(user, request.model_dump())
    data = relationship.to_dict()
    data["invitation_token"] = relationship.invitation_token
    return success_response(data, "Invitation sent")


@router.get("/my-advisors")
async def list_my_advisors(
    status: Optional[str] = Query(None),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    return success_response(_relationships(AdvisorService(db).list_my_advisors(user, status)))


@router.get("/my-clients")
async def list_my_clients(
    status: Optional[str] = Query(None),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    return success_response(_relationships(AdvisorService(db).list_my_clients(user, status)))


@router.get("/pending")
async def list_pending_invitations(
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Invitations the caller sent and received that are still pending"""
    pending = AdvisorService(db).list_pending(user)
    return success_response({
        "sent": _relationships(pending["sent"]),
        "received": _relationships(pending["received"]),
    })


@router.post("/accept-token/{token}")
async def accept_invitation_by_token(
    token: str,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    relationship = AdvisorService(db).accept_by_token(user, token)
    return success_response(relationship.to_dict(), "Invitation accepted")


# ----------------------------------------------------------------------
# Sessions
# ----------------------------------------------------------------------

@router.post("/sessions", status_code=201)
async def create_session(
    request: SessionCreate,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    service = AdvisorService(db)
    data = request.model_dump(exclude={"relationship_id"})
    session = service.create_session(user, request.relationship_id, data)
    return success_response(service.serialize_session(user, session), "Session scheduled")


@router.get("/sessions")
async def list_sessions(
    relationship_id: Optional[UUID] = Query(None),
    status: Optional[str] = Query(None),
    upcoming: bool = Query(False),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    service = AdvisorService(db)
    sessions = service.list_sessions(user, relationship_id, status, upcoming)
    return success_response([service.serialize_session(user, s) for s in sessions])


@router.put("/sessions/{session_id}")
async def update_session(
    session_id: UUID,
    request: SessionUpdate,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """Reschedule, confirm, complete or cancel a session"""
    service = AdvisorService(db)
    session = service.update_session(user, session_id, request.model_dump(exclude_unset=True))
    return success_response(service.serialize_session(user, session), "Session updated")


@router.put("/sessions/{session_id}/notes")
async def add_session_notes(
    session_id: UUID,
    request: SessionNotesRequest,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    service = AdvisorService(db)
    session = service.add_session_notes(user, session_id, request.notes)
    return success_response(service.serialize_session(user, session), "Session notes saved")


# ----------------------------------------------------------------------
# Payments, recommendations, evaluations, messages (by child id)
# ----------------------------------------------------------------------

@router.post("/payments/{payment_id}/record")
async def record_payment(
    payment_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    payment = AdvisorService(db).record_payment(user, payment_id)
    return success_response(payment.to_dict(), "Payment recorded")


@router.put("/recommendations/{recommendation_id}")
async def update_recommendation(
    recommendation_id: UUID,
    request: RecommendationFields,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    recommendation = AdvisorService(db).update_recommendation(
        user, recommendation_id, request.model_dump(exclude_unset=True)
    )
    return success_response(recommendation.to_dict(), "Recommendation updated")


@router.post("/evaluations/{evaluation_id}/respond")
async def respond_to_evaluation(
    evaluation_id: UUID,
    request: EvaluationResponseRequest,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    evaluation = AdvisorService(db).respond_to_evaluation(user, evaluation_id, request.response)
    return success_response(evaluation.to_dict(), "Response saved")


@router.get("/advisors/{advisor_id}/ratings")
async def get_advisor_ratings(
    advisor_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    return success_response(AdvisorService(db).get_advisor_ratings(advisor_id))


@router.get("/messages/unread-count")
async def get_unread_message_count(
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    return success_response({"unread_count": AdvisorMessagingService(db).unread_count(user)})


# ----------------------------------------------------------------------
# Single relationship
# ----------------------------------------------------------------------

@router.get("/{relationship_id}")
async def get_relationship(
    relationship_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    return success_response(AdvisorService(db).get_for_user(user, relationship_id).to_dict())


@router.post("/{relationship_id}/accept")
async def accept_invitation(
    relationship_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    relationship = AdvisorService(db).accept(user, relationship_id)
    return success_response(relationship.to_dict(), "Invitation accepted")


@router.post("/{relationship_id}/reject")
async def reject_invitation(
    relationship_id: UUID,
    request: Optional[ReasonRequest] = None,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    reason = request.reason if request else None
    relationship = AdvisorService(db).reject(user, relationship_id, reason)
    return success_response(relationship.to_dict(), "Invitation declined")


@router.post("/{relationship_id}/cancel")
async def cancel_relationship(
    relationship_id: UUID,
    request: Optional[ReasonRequest] = None,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    reason = request.reason if request else None
    relationship = AdvisorService(db).cancel(user, relationship_id, reason)
    return success_response(relationship.to_dict(), "Relationship cancelled")


@router.post("/{relationship_id}/pause")
async def pause_relationship(
    relationship_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    relationship = AdvisorService(db).pause(user, relationship_id)
    return success_response(relationship.to_dict(), "Relationship paused")


@router.post("/{relationship_id}/resume")
async def resume_relationship(
    relationship_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    relationship = AdvisorService(db).resume(user, relationship_id)
    return success_response(relationship.to_dict(), "Relationship resumed")


@router.get("/{relationship_id}/shared-data")
async def get_shared_data(
    relationship_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """The seeker's data visible to the advisor under the current share flags"""
    return success_response(AdvisorService(db).get_shared_data(user, relationship_id))


@router.put("/{relationship_id}/shared-data")
async def update_shared_data(
    relationship_id: UUID,
    flags: Dict[str, bool],
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    relationship = AdvisorService(db).update_shared_data(user, relationship_id, flags)
    return success_response(relationship.to_dict(), "Sharing preferences updated")


@router.get("/{relationship_id}/billing")
async def get_billing(
    relationship_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    return success_response(AdvisorService(db).get_billing(user, relationship_id).to_dict())


@router.put("/{relationship_id}/billing")
async def update_billing(
    relationship_id: UUID,
    request: BillingUpdate,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    billing = AdvisorService(db).update_billing(user, relationship_id, request.model_dump(exclude_unset=True))
    return success_response(billing.to_dict(), "Billing updated")


@router.post("/{relationship_id}/payments", status_code=201)
async def create_payment(
    relationship_id: UUID,
    request: PaymentCreate,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    payment = AdvisorService(db).create_payment(
        user, relationship_id, request.amount, request.currency, request.description
    )
    return success_response(payment.to_dict(), "Payment created")


@router.get("/{relationship_id}/payments")
async def list_payments(
    relationship_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    payments = AdvisorService(db).list_payments(user, relationship_id)
    return success_response([p.to_dict() for p in payments])


@router.post("/{relationship_id}/recommendations", status_code=201)
async def create_recommendation(
    relationship_id: UUID,
    request: RecommendationFields,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    recommendation = AdvisorService(db).create_recommendation(user, relationship_id, request.model_dump())
    return success_response(recommendation.to_dict(), "Recommendation created")


@router.get("/{relationship_id}/recommendations")
async def list_recommendations(
    relationship_id: UUID,
    status: Optional[str] = Query(None),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    recommendations = AdvisorService(db).list_recommendations(user, relationship_id, status)
    return success_response([r.to_dict() for r in recommendations])


@router.post("/{relationship_id}/evaluations", status_code=201)
async def create_evaluation(
    relationship_id: UUID,
    request: EvaluationCreate,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    evaluation = AdvisorService(db).create_evaluation(user, relationship_id, request.model_dump())
    return success_response(evaluation.to_dict(), "Evaluation submitted")


@router.get("/{relationship_id}/evaluations")
async def list_evaluations(
    relationship_id: UUID,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    evaluations = AdvisorService(db).list_evaluations(user, relationship_id)
    return success_response([e.to_dict() for e in evaluations])


@router.post("/{relationship_id}/messages", status_code=201)
async def send_message(
    relationship_id: UUID,
    request: MessageCreate,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    message = AdvisorMessagingService(db).send_message(user, relationship_id, request.content)
    return success_response(message.to_dict(), "Message sent")


@router.get("/{relationship_id}/messages")
async def get_messages(
    relationship_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    before: Optional[datetime] = Query(None),
    since: Optional[datetime] = Query(None),
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """
    Conversation in chronological order

    Clients poll with ``since`` set to the ``server_time`` of the previous
    response, every ``poll_interval_seconds``.
    """
    result = AdvisorMessagingService(db).get_messages(
        user,
        relationship_id,
        limit=limit,
        before=to_naive_utc(before),
        since=to_naive_utc(since),
    )
    return success_response(result)
