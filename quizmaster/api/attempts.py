from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List
from sqlalchemy.orm import Session

from quizmaster.core.auth import TokenData, get_current_user
from quizmaster.core.database import get_db
from quizmaster.models.schemas import AnswerOut, AttemptOut
from quizmaster.services import attempts as attempt_service

router = APIRouter()


class AttemptStart(BaseModel):
    quiz_id: int


class AnswerIn(BaseModel):
    question_id: int
    answer: str


class AttemptSummary(BaseModel):
    attempt: AttemptOut
    answers: List[AnswerOut]
    score: int
    total_questions: int
    percentage: float
    passed: bool


@router.post("", response_model=AttemptOut, status_code=201)
def start_attempt(payload: AttemptStart, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return attempt_service.start_attempt(db, user.user_id, payload.quiz_id, user.is_admin)


@router.post("/{attempt_id}/answers", response_model=AnswerOut)
def submit_answer(attempt_id: int, payload: AnswerIn, user: TokenData = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    return attempt_service.submit_answer(db, attempt_id, user.user_id, payload.question_id, payload.answer)


@router.post("/{attempt_id}/complete", response_model=AttemptSummary)
def complete_attempt(attempt_id: int, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    result = attempt_service.complete_attempt(db, attempt_id, user.user_id)
    return AttemptSummary(
        attempt=AttemptOut.model_validate(result.attempt),
        answers=[AnswerOut.model_validate(a) for a in result.answers],
        score=result.attempt.score,
        total_questions=result.attempt.total_questions,
        percentage=round(result.percentage, 2),
        passed=result.passed,
    )
