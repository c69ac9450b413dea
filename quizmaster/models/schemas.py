from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from quizmaster.models.orm import AssignmentState


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserOut(ORMModel):
    id: int
    username: str
    role: Literal["user", "admin"]
    status: Literal["active", "inactive", "suspended"]
    created_at: Optional[datetime] = None
    last_activity: Optional[datetime] = None


class UserWithPresence(UserOut):
    is_online: bool = False


class QuizOut(ORMModel):
    id: int
    title: str
    description: str = ""
    created_by: Optional[int] = None
    is_public: bool
    time_limit: int = 0
    created_at: Optional[datetime] = None


class QuestionOut(ORMModel):
    id: int
    quiz_id: int
    text: str
    type: str
    correct_answer: str
    options: Optional[List[str]] = None
    points: int = 1


class QuestionForTaker(ORMModel):
    """A question as shown to someone taking the quiz: no answer key."""
    id: int
    quiz_id: int
    text: str
    type: str
    options: Optional[List[str]] = None
    points: int = 1


class AssignmentOut(ORMModel):
    id: int
    user_id: int
    quiz_id: int
    is_assigned: bool
    has_access: bool
    state: AssignmentState
    assigned_by: Optional[int] = None
    assigned_at: Optional[datetime] = None


class AccessRequestOut(ORMModel):
    id: int
    user_id: int
    quiz_id: int
    message: Optional[str] = None
    status: Literal["pending", "approved", "rejected"]
    requested_at: datetime
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    response_message: Optional[str] = None


class AccessRequestRow(AccessRequestOut):
    requester_username: str
    quiz_title: str


class AttemptOut(ORMModel):
    id: int
    user_id: int
    quiz_id: int
    score: int
    total_questions: int
    started_at: datetime
    completed_at: Optional[datetime] = None


class AttemptRow(AttemptOut):
    quiz_title: str


class AnswerOut(ORMModel):
    id: int
    attempt_id: int
    question_id: int
    user_answer: str
    is_correct: bool
    answered_at: Optional[datetime] = None
