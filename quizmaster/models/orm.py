from datetime import datetime, timezone
from typing import List, Optional
import enum

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import (
    Integer, String, Text, Boolean, ForeignKey, JSON, DateTime,
    UniqueConstraint, CheckConstraint, Index, text
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase): pass


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    TEXT = "text"


class AccessRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AssignmentState(str, enum.Enum):
    """The three legal combinations of ``is_assigned`` / ``has_access``."""
    UNASSIGNED = "unassigned"
    ASSIGNED_NO_ACCESS = "assigned_no_access"
    ASSIGNED_WITH_ACCESS = "assigned_with_access"

    @classmethod
    def from_flags(cls, is_assigned: bool, has_access: bool) -> Optional["AssignmentState"]:
        """Return the state for a flag pair, or None for access without assignment."""
        if is_assigned:
            return cls.ASSIGNED_WITH_ACCESS if has_access else cls.ASSIGNED_NO_ACCESS
        return None if has_access else cls.UNASSIGNED

    @property
    def is_assigned(self) -> bool:
        return self is not AssignmentState.UNASSIGNED

    @property
    def has_access(self) -> bool:
        return self is AssignmentState.ASSIGNED_WITH_ACCESS


class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value)
    status: Mapped[str] = mapped_column(String(20), default=UserStatus.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_activity: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    attempts: Mapped[List["QuizAttempt"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    assignments: Mapped[List["QuizAssignment"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", foreign_keys="QuizAssignment.user_id"
    )
    access_requests: Mapped[List["AccessRequest"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", foreign_keys="AccessRequest.user_id"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class Quiz(Base):
    __tablename__ = "quizzes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    time_limit: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    questions: Mapped[List["Question"]] = relationship(
        back_populates="quiz", cascade="all, delete-orphan", order_by="Question.id"
    )
    attempts: Mapped[List["QuizAttempt"]] = relationship(back_populates="quiz", cascade="all, delete-orphan")
    assignments: Mapped[List["QuizAssignment"]] = relationship(back_populates="quiz", cascade="all, delete-orphan")
    access_requests: Mapped[List["AccessRequest"]] = relationship(back_populates="quiz", cascade="all, delete-orphan")


class Question(Base):
    __tablename__ = "questions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quiz_id: Mapped[int] = mapped_column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    text: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(30), default=QuestionType.MULTIPLE_CHOICE.value)
    correct_answer: Mapped[str] = mapped_column(Text)
    options: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=1)

    quiz: Mapped["Quiz"] = relationship(back_populates="questions")
    answers: Mapped[List["UserAnswer"]] = relationship(back_populates="question", cascade="all, delete-orphan")


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    quiz_id: Mapped[int] = mapped_column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    score: Mapped[int] = mapped_column(Integer, default=0)
    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship(back_populates="attempts")
    quiz: Mapped["Quiz"] = relationship(back_populates="attempts")
    answers: Mapped[List["UserAnswer"]] = relationship(
        back_populates="attempt", cascade="all, delete-orphan", order_by="UserAnswer.id"
    )

    @property
    def quiz_title(self) -> str:
        return self.quiz.title

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class UserAnswer(Base):
    __tablename__ = "user_answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_user_answers_attempt_question"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    attempt_id: Mapped[int] = mapped_column(Integer, ForeignKey("quiz_attempts.id", ondelete="CASCADE"), index=True)
    question_id: Mapped[int] = mapped_column(Integer, ForeignKey("questions.id", ondelete="CASCADE"))
    user_answer: Mapped[str] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    attempt: Mapped["QuizAttempt"] = relationship(back_populates="answers")
    question: Mapped["Question"] = relationship(back_populates="answers")


class QuizAssignment(Base):
    __tablename__ = "quiz_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", name="uq_quiz_assignments_user_quiz"),
        CheckConstraint("is_assigned OR NOT has_access", name="ck_quiz_assignments_access_requires_assignment"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    quiz_id: Mapped[int] = mapped_column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    is_assigned: Mapped[bool] = mapped_column(Boolean, default=False)
    has_access: Mapped[bool] = mapped_column(Boolean, default=False)
    assigned_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped["User"] = relationship(back_populates="assignments", foreign_keys=[user_id])
    quiz: Mapped["Quiz"] = relationship(back_populates="assignments")

    @property
    def state(self) -> AssignmentState:
        # the check constraint rules out the fourth combination
        return AssignmentState.from_flags(self.is_assigned, self.has_access)

    def apply(self, state: AssignmentState, actor_id: Optional[int]) -> None:
        self.is_assigned = state.is_assigned
        self.has_access = state.has_access
        self.assigned_by = actor_id
        self.assigned_at = utcnow()


class AccessRequest(Base):
    __tablename__ = "access_requests"
    __table_args__ = (
        Index(
            "uq_access_requests_pending", "user_id", "quiz_id", unique=True,
            sqlite_where=text("status = 'pending'"), postgresql_where=text("status = 'pending'"),
        ),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    quiz_id: Mapped[int] = mapped_column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=AccessRequestStatus.PENDING.value, index=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    reviewed_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    response_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    user: Mapped["User"] = relationship(back_populates="access_requests", foreign_keys=[user_id])
    quiz: Mapped["Quiz"] = relationship(back_populates="access_requests")

    @property
    def requester_username(self) -> str:
        return self.user.username

    @property
    def quiz_title(self) -> str:
        return self.quiz.title
