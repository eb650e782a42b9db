"""
Authentication service for user management and sessions
"""
import secrets
from datetime import timedelta
from typing import Optional
from uuid import UUID

import bcrypt
from sqlalchemy.orm import Session

from jobtrail.core.config import get_settings
from jobtrail.core.exceptions import ConflictError
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.models.user import AuthSession, User, UserRole
from jobtrail.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash"""
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


class AuthService:
    """Service for user authentication and session management"""

    def __init__(self, db: Session):
        self.db = db
        self.session_duration_hours = get_settings().session_duration_hours

    def register_user(
        self,
        username: str,
        email: str,
        password: str,
        role: str = UserRole.USER.value
    ) -> User:
        """
        Register a new user

        Raises:
            ConflictError: If username or email already exists
        """
        email = email.strip().lower()
        if self.db.query(User).filter(User.username == username).first():
            raise ConflictError(f"Username '{username}' already exists")
        if self.db.query(User).filter(User.email == email).first():
            raise ConflictError(f"Email '{email}' already exists")

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=role,
            is_active=True
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Registered new user: {username} (role: {role})")
        return user

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """
        Authenticate a user by username or email and password

        Returns:
            User object if authentication successful, None otherwise
        """
        login = username.strip()
        user = self.db.query(User).filter(
            (User.username == login) | (User.email == login.lower())
        ).first()

        if not user:
            logger.warning(f"Authentication failed: user '{login}' not found")
            return None

        if not user.is_active:
            logger.warning(f"Authentication failed: user '{login}' is inactive")
            return None

        if not verify_password(password, user.password_hash):
            logger.warning(f"Authentication failed: invalid password for user '{login}'")
            return None

        user.last_login = utc_now()
        self.db.commit()

        logger.info(f"User '{login}' authenticated successfully")
        return user

    def create_session(self, user_id: UUID, duration_hours: Optional[int] = None) -> AuthSession:
        """Create a new session with a random url-safe token"""
        duration = duration_hours or self.session_duration_hours
        session = AuthSession(
            user_id=user_id,
            token=secrets.token_urlsafe(32),
            expires_at=utc_now() + timedelta(hours=duration)
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)

        logger.info(f"Created session for user {user_id}")
        return session

    def resolve_session_user(self, token: str) -> Optional[User]:
        """
        Look up the user behind a session token, active or not.

        Expired sessions are deleted and yield None. Callers decide how to
        treat deactivated users.
        """
        session = self.db.query(AuthSession).filter(AuthSession.token == token).first()
        if not session:
            return None

        now = utc_now()
        if session.expires_at < now:
            logger.info(f"Session {session.id} expired")
            self.db.delete(session)
            self.db.commit()
            return None

        session.last_activity = now
        self.db.commit()
        return session.user

    def logout(self, token: str) -> bool:
        """Invalidate a session; True if it existed"""
        session = self.db.query(AuthSession).filter(AuthSession.token == token).first()
        if not session:
            return False
        self.db.delete(session)
        self.db.commit()
        logger.info(f"Session {session.id} invalidated")
        return True

    def deactivate_user(self, user: User) -> User:
        """
        Deactivate an account.

        Existing sessions are kept so requests carrying them are answered
        with 403 (signed out) rather than 401 (never signed in).
        """
        user.is_active = False
        user.deactivated_at = utc_now()
        self.db.commit()
        logger.info(f"Deactivated user {user.id}")
        return user

    def cleanup_expired_sessions(self) -> int:
        """Remove all expired sessions from the database"""
        count = self.db.query(AuthSession).filter(AuthSession.expires_at < utc_now()).delete()
        self.db.commit()
        if count > 0:
            logger.info(f"Cleaned up {count} expired sessions")
        return count
