"""
Poll-based messaging between a job seeker and their advisor
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from jobtrail.core.config import get_settings
from jobtrail.core.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.metrics import advisor_messages_total
from jobtrail.core.responses import ErrorCode
from jobtrail.models.advisor import AdvisorMessage, AdvisorRelationship, RelationshipStatus
from jobtrail.models.user import User
from jobtrail.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)

MAX_PAGE_SIZE = 200


class AdvisorMessagingService:
    """Send, fetch and count messages within an advisor relationship"""

    def __init__(self, db: Session):
        self.db = db
        self.poll_interval_seconds = get_settings().message_poll_interval_seconds

    def _relationship(self, user: User, relationship_id: UUID) -> AdvisorRelationship:
        relationship = self.db.query(AdvisorRelationship).filter(
            AdvisorRelationship.id == relationship_id
        ).first()
        if not relationship:
            raise NotFoundError("Advisor relationship not found")
        if not relationship.is_participant(user.id):
            raise PermissionDeniedError("Not authorized to access these messages")
        return relationship

    def send_message(self, user: User, relationship_id: UUID, content: str) -> AdvisorMessage:
        """
        Send a message to the other side of the relationship

        In a self-relationship an ``Echo:`` reply is stored as well, so the
        conversation view has something to show.

        Raises:
            NotFoundError: Unknown relationship
            PermissionDeniedError: Caller is not a participant
            ValidationFailedError: Relationship not accepted, or empty content
        """
        relationship = self._relationship(user, relationship_id)
        if relationship.status != RelationshipStatus.ACCEPTED.value:
            raise ValidationFailedError("Advisor relationship is not active", error_code=ErrorCode.INVALID_INPUT)
        content = (content or "").strip()
        if not content:
            raise ValidationFailedError("Message content is required", error_code=ErrorCode.MISSING_REQUIRED_FIELD)

        recipient_id = relationship.advisor_id if user.id == relationship.user_id else relationship.user_id
        now = utc_now()
        message = AdvisorMessage(
            relationship_id=relationship.id,
            sender_id=user.id,
            recipient_id=recipient_id,
            content=content,
            created_at=now,
        )
        self.db.add(message)

        if recipient_id == user.id:
            self.db.add(AdvisorMessage(
                relationship_id=relationship.id,
                sender_id=user.id,
                recipient_id=user.id,
                content=f"Echo: {content}",
                # strictly after the original so chronological order holds
                created_at=now + timedelta(microseconds=1),
            ))

        self.db.commit()
        self.db.refresh(message)
        advisor_messages_total.inc()
        logger.debug(
            "Advisor message sent",
            extra={"relationship_id": str(relationship.id), "message_id": str(message.id)},
        )
        return message

    def get_messages(
        self,
        user: User,
        relationship_id: UUID,
        limit: int = 50,
        before: Optional[datetime] = None,
        since: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Fetch messages in chronological order and mark received ones read

        Args:
            limit: Page size, capped at ``MAX_PAGE_SIZE``
            before: Only messages older than this (scrolling back)
            since: Only messages newer than this (polling)

        Returns:
            ``{"messages", "has_more", "poll_interval_seconds", "server_time"}``;
            clients pass ``server_time`` back as ``since`` on the next poll.
            When a ``since`` page is full, ``server_time`` is the timestamp of
            its last message so the next poll resumes from there.
        """
        relationship = self._relationship(user, relationship_id)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        server_time = utc_now()

        query = self.db.query(AdvisorMessage).filter(AdvisorMessage.relationship_id == relationship.id)
        if before is not None:
            query = query.filter(AdvisorMessage.created_at < before)
        if since is not None:
            messages = query.filter(AdvisorMessage.created_at > since).order_by(
                AdvisorMessage.created_at.asc()
            ).limit(limit + 1).all()
            has_more = len(messages) > limit
            messages = messages[:limit]
            if has_more:
                server_time = messages[-1].created_at
        else:
            messages = query.order_by(AdvisorMessage.created_at.desc()).limit(limit + 1).all()
            has_more = len(messages) > limit
            messages = list(reversed(messages[:limit]))

        payload = [m.to_dict() for m in messages]
        received = [m for m in messages if m.recipient_id == user.id and not m.is_read]
        read_at = utc_now()
        for message in received:
            message.is_read = True
            message.read_at = read_at
        if received:
            self.db.commit()

        return {
            "messages": payload,
            "has_more": has_more,
            "poll_interval_seconds": self.poll_interval_seconds,
            "server_time": server_time.isoformat(),
        }

    def unread_count(self, user: User) -> int:
        return self.db.query(AdvisorMessage).filter(
            AdvisorMessage.recipient_id == user.id,
            AdvisorMessage.is_read.is_(False),
        ).count()
