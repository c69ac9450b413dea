"""User accounts: registration, login, admin edits and activity."""
from datetime import datetime, timedelta, timezone
from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizmaster.core.auth import hash_password, verify_password
from quizmaster.core.config import settings
from quizmaster.core.database import transaction
from quizmaster.core.errors import Conflict, NotFound, Unauthorized
from quizmaster.models.orm import (
    AccessRequest, QuizAttempt, User, UserRole, UserStatus, utcnow
)

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found")
    return user


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.scalar(select(User).where(User.username == username))


def list_users(db: Session) -> List[User]:
    return list(db.scalars(select(User).order_by(User.id)))


def is_online(user: User, now: Optional[datetime] = None) -> bool:
    if user.last_activity is None:
        return False
    now = now or datetime.now(timezone.utc)
    last = user.last_activity
    # SQLite hands back naive datetimes
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    return last > now - timedelta(minutes=settings.ONLINE_WINDOW_MINUTES)


def create_user(db: Session, username: str, password: str, role: str = UserRole.USER.value) -> User:
    if get_user_by_username(db, username):
        raise Conflict("User exists")
    with transaction(db):
        user = User(username=username, password_hash=hash_password(password), role=role,
                    status=UserStatus.ACTIVE.value)
        db.add(user)
        try:
            db.flush()
        except IntegrityError as exc:
            raise Conflict("User exists") from exc
    db.refresh(user)
    logger.info(f"Created user {user.id} ({username}, role={role})")
    return user


def authenticate(db: Session, username: str, password: str) -> Optional[User]:
    """Return the user for valid credentials, or None.

    Raises ``Unauthorized`` for a suspended account even when the password matches.
    """
    user = get_user_by_username(db, username)
    if not user or not verify_password(password, user.password_hash):
        return None
    if user.status == UserStatus.SUSPENDED.value:
        raise Unauthorized("Your account has been suspended")
    with transaction(db):
        user.last_activity = utcnow()
    db.refresh(user)
    return user


def update_user(db: Session, user_id: int, username: Optional[str] = None, password: Optional[str] = None,
                role: Optional[str] = None, status: Optional[str] = None) -> User:
    user = get_user(db, user_id)
    if username and username != user.username and get_user_by_username(db, username):
        raise Conflict("Username already exists")
    with transaction(db):
        if username:
            user.username = username
        if password:
            user.password_hash = hash_password(password)
        if role:
            user.role = role
        if status:
            user.status = status
        user.last_activity = utcnow()
        try:
            db.flush()
        except IntegrityError as exc:
            raise Conflict("Username already exists") from exc
    db.refresh(user)
    logger.info(f"Updated user {user_id}")
    return user


def delete_user(db: Session, user_id: int) -> None:
    user = get_user(db, user_id)
    with transaction(db):
        db.delete(user)
    logger.info(f"Deleted user {user_id}")


def get_activity(db: Session, user_id: int) -> dict:
    """Recent attempts and access requests for one user, newest first."""
    user = get_user(db, user_id)
    limit = settings.RECENT_ACTIVITY_LIMIT
    attempts = db.scalars(
        select(QuizAttempt).where(QuizAttempt.user_id == user_id)
        .order_by(QuizAttempt.started_at.desc(), QuizAttempt.id.desc()).limit(limit)
    ).all()
    requests = db.scalars(
        select(AccessRequest).where(AccessRequest.user_id == user_id)
        .order_by(AccessRequest.requested_at.desc(), AccessRequest.id.desc()).limit(limit)
    ).all()
    return {"user": user, "attempts": list(attempts), "access_requests": list(requests)}


def ensure_default_admin(db: Session) -> Optional[User]:
    """Seed the configured admin account when the database has no admin yet."""
    existing = db.scalar(select(User).where(User.role == UserRole.ADMIN.value).limit(1))
    if existing:
        return None
    admin = create_user(db, settings.DEFAULT_ADMIN_USERNAME,
                        settings.DEFAULT_ADMIN_PASSWORD.get_secret_value(), role=UserRole.ADMIN.value)
    logger.info(f"Default admin created: {admin.username}")
    return admin
