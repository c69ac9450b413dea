from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from quizmaster.core.database import transaction
from quizmaster.core.errors import NotFound, Unauthorized
from quizmaster.models.orm import Question, QuestionType, Quiz, User

logger = logging.getLogger(__name__)

QUIZ_FIELDS = ("title", "description", "is_public", "time_limit")
QUESTION_FIELDS = ("text", "type", "correct_answer", "options", "points")


def get_quiz(db: Session, quiz_id: int) -> Quiz:
    quiz = db.get(Quiz, quiz_id)
    if not quiz:
        raise NotFound("Quiz not found")
    return quiz


def get_question(db: Session, question_id: int) -> Question:
    question = db.get(Question, question_id)
    if not question:
        raise NotFound("Question not found")
    return question


def can_edit(quiz: Quiz, user_id: int, is_admin: bool) -> bool:
    return is_admin or quiz.created_by == user_id


def ensure_can_edit(quiz: Quiz, user_id: int, is_admin: bool) -> Quiz:
    if not can_edit(quiz, user_id, is_admin):
        raise Unauthorized("Unauthorized to modify this quiz")
    return quiz


def list_quizzes(db: Session, public_only: bool = False) -> List[Quiz]:
    stmt = select(Quiz).order_by(Quiz.id)
    if public_only:
        stmt = stmt.where(Quiz.is_public.is_(True))
    return list(db.scalars(stmt))


def list_quizzes_created_by(db: Session, user_id: int) -> List[Quiz]:
    if db.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found")
    return list(db.scalars(select(Quiz).where(Quiz.created_by == user_id).order_by(Quiz.id)))


def _question_from(quiz_id: int, data: Dict[str, Any]) -> Question:
    return Question(
        quiz_id=quiz_id,
        text=data["text"],
        type=data.get("type") or QuestionType.MULTIPLE_CHOICE.value,
        correct_answer=data["correct_answer"],
        options=data.get("options"),
        points=data.get("points") or 1,
    )


def create_quiz(db: Session, created_by: Optional[int], title: str, description: str = "", is_public: bool = True,
                time_limit: int = 0, questions: Optional[List[Dict[str, Any]]] = None) -> Quiz:
    """Create the quiz and its questions in one transaction."""
    with transaction(db):
        quiz = Quiz(title=title, description=description or "", created_by=created_by,
                    is_public=is_public, time_limit=time_limit or 0)
        db.add(quiz); db.flush()
        for q in questions or []:
            db.add(_question_from(quiz.id, q))
    db.refresh(quiz)
    logger.info(f"Created quiz {quiz.id} ({title!r}) by {created_by} with {len(questions or [])} questions")
    return quiz


def update_quiz(db: Session, quiz: Quiz, changes: Dict[str, Any]) -> Quiz:
    with transaction(db):
        for key in QUIZ_FIELDS:
            if key in changes and changes[key] is not None:
                setattr(quiz, key, changes[key])
    db.refresh(quiz)
    logger.info(f"Updated quiz {quiz.id}")
    return quiz


def delete_quiz(db: Session, quiz: Quiz) -> None:
    quiz_id = quiz.id
    with transaction(db):
        db.delete(quiz)
    logger.info(f"Deleted quiz {quiz_id} with its questions, attempts, assignments and requests")


def get_questions(db: Session, quiz_id: int) -> List[Question]:
    get_quiz(db, quiz_id)
    return list(db.scalars(select(Question).where(Question.quiz_id == quiz_id).order_by(Question.id)))


def add_question(db: Session, quiz: Quiz, data: Dict[str, Any]) -> Question:
    with transaction(db):
        question = _question_from(quiz.id, data)
        db.add(question)
    db.refresh(question)
    logger.info(f"Added question {question.id} to quiz {quiz.id}")
    return question


def update_question(db: Session, question: Question, changes: Dict[str, Any]) -> Question:
    with transaction(db):
        for key in QUESTION_FIELDS:
            if key in changes and changes[key] is not None:
                setattr(question, key, changes[key])
    db.refresh(question)
    return question


def delete_question(db: Session, question: Question) -> None:
    question_id = question.id
    with transaction(db):
        db.delete(question)
    logger.info(f"Deleted question {question_id}")
