"""Quiz attempts and scoring.

An attempt is opened only when the assignment/access engine lets the user
start the quiz. Answers are compared trimmed and case-insensitively; the
score is the number of correct answers out of the quiz's questions.
"""
from dataclasses import dataclass
from typing import List
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from quizmaster.core.config import settings
from quizmaster.core.database import transaction
from quizmaster.core.errors import InvalidState, NotFound, Unauthorized
from quizmaster.models.orm import Question, QuizAttempt, User, UserAnswer, utcnow
from quizmaster.services.assignments import can_start
from quizmaster.services.quizzes import can_edit, get_quiz

logger = logging.getLogger(__name__)


@dataclass
class AttemptResult:
    attempt: QuizAttempt
    answers: List[UserAnswer]
    percentage: float
    passed: bool


def is_correct_answer(given: str, expected: str) -> bool:
    return str(given).strip().lower() == str(expected).strip().lower()


def get_attempt(db: Session, attempt_id: int) -> QuizAttempt:
    attempt = db.get(QuizAttempt, attempt_id)
    if not attempt:
        raise NotFound("Attempt not found")
    return attempt


def _own_attempt(db: Session, attempt_id: int, user_id: int) -> QuizAttempt:
    attempt = get_attempt(db, attempt_id)
    if attempt.user_id != user_id:
        raise Unauthorized("Attempt belongs to another user")
    return attempt


def start_attempt(db: Session, user_id: int, quiz_id: int, is_admin: bool = False) -> QuizAttempt:
    quiz = get_quiz(db, quiz_id)
    if not can_edit(quiz, user_id, is_admin) and not can_start(db, user_id, quiz_id):
        raise Unauthorized("You do not have access to this quiz")
    with transaction(db):
        attempt = QuizAttempt(user_id=user_id, quiz_id=quiz_id, started_at=utcnow())
        db.add(attempt)
    db.refresh(attempt)
    logger.info(f"Attempt {attempt.id} started: user={user_id} quiz={quiz_id}")
    return attempt


def submit_answer(db: Session, attempt_id: int, user_id: int, question_id: int, answer: str) -> UserAnswer:
    attempt = _own_attempt(db, attempt_id, user_id)
    if attempt.is_completed:
        raise InvalidState("Attempt already completed")
    question = db.get(Question, question_id)
    if not question or question.quiz_id != attempt.quiz_id:
        raise NotFound("Question not found")

    correct = is_correct_answer(answer, question.correct_answer)
    with transaction(db):
        row = db.scalar(select(UserAnswer).where(UserAnswer.attempt_id == attempt_id,
                                                 UserAnswer.question_id == question_id))
        if row is None:
            row = UserAnswer(attempt_id=attempt_id, question_id=question_id)
            db.add(row)
        row.user_answer = str(answer)
        row.is_correct = correct
        row.answered_at = utcnow()
    db.refresh(row)
    return row


def complete_attempt(db: Session, attempt_id: int, user_id: int) -> AttemptResult:
    attempt = _own_attempt(db, attempt_id, user_id)
    if attempt.is_completed:
        raise InvalidState("Attempt already completed")

    answers = list(db.scalars(select(UserAnswer).where(UserAnswer.attempt_id == attempt_id).order_by(UserAnswer.id)))
    total = db.scalar(select(func.count(Question.id)).where(Question.quiz_id == attempt.quiz_id)) or 0
    correct = sum(1 for a in answers if a.is_correct)
    with transaction(db):
        attempt.score = correct
        attempt.total_questions = total
        attempt.completed_at = utcnow()
    db.refresh(attempt)

    percentage = (correct / total) * 100 if total else 0.0
    passed = percentage >= settings.PASSING_PERCENTAGE
    logger.info(f"Attempt {attempt_id} completed: {correct}/{total} ({percentage:.1f}%)")
    return AttemptResult(attempt=attempt, answers=answers, percentage=percentage, passed=passed)


def get_user_attempts(db: Session, user_id: int) -> List[QuizAttempt]:
    if db.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found")
    return list(db.scalars(
        select(QuizAttempt).options(joinedload(QuizAttempt.quiz))
        .where(QuizAttempt.user_id == user_id)
        .order_by(QuizAttempt.started_at.desc(), QuizAttempt.id.desc())
    ))
