"""Per-request capability checks, resolved before a route touches a service."""
from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from quizmaster.core.auth import TokenData, get_current_user
from quizmaster.core.database import get_db
from quizmaster.models.orm import Question, Quiz
from quizmaster.services import quizzes as quiz_service


def require_self_or_admin(user_id: int, user: TokenData = Depends(get_current_user)) -> TokenData:
    if not user.is_admin and user.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not allowed to act on another user")
    return user


def editable_quiz(quiz_id: int, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)) -> Quiz:
    quiz = quiz_service.get_quiz(db, quiz_id)
    return quiz_service.ensure_can_edit(quiz, user.user_id, user.is_admin)


def editable_question(question_id: int, user: TokenData = Depends(get_current_user),
                      db: Session = Depends(get_db)) -> Question:
    question = quiz_service.get_question(db, question_id)
    quiz_service.ensure_can_edit(question.quiz, user.user_id, user.is_admin)
    return question
