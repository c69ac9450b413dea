from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, constr
from typing import List, Literal, Optional, Union
from sqlalchemy.orm import Session

from quizmaster.api.deps import editable_question, editable_quiz
from quizmaster.core.auth import TokenData, get_current_user
from quizmaster.core.database import get_db
from quizmaster.core.errors import Unauthorized
from quizmaster.models.orm import Question, Quiz
from quizmaster.models.schemas import QuestionForTaker, QuestionOut, QuizOut
from quizmaster.services import assignments as assignment_service
from quizmaster.services import quizzes as quiz_service

router = APIRouter()
questions_router = APIRouter()

QuestionKind = Literal["multiple_choice", "true_false", "text"]


class QuestionIn(BaseModel):
    text: constr(min_length=1)
    type: QuestionKind = "multiple_choice"
    correct_answer: constr(min_length=1)
    options: Optional[List[str]] = None
    points: int = Field(ge=1, default=1)


class QuestionPatch(BaseModel):
    text: Optional[constr(min_length=1)] = None
    type: Optional[QuestionKind] = None
    correct_answer: Optional[constr(min_length=1)] = None
    options: Optional[List[str]] = None
    points: Optional[int] = Field(ge=1, default=None)


class QuizCreate(BaseModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=255)
    description: str = ""
    is_public: bool = True
    time_limit: int = Field(ge=0, default=0)
    questions: List[QuestionIn] = []


class QuizPatch(BaseModel):
    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None
    time_limit: Optional[int] = Field(ge=0, default=None)


@router.get("", response_model=List[QuizOut], dependencies=[Depends(get_current_user)])
def list_quizzes(db: Session = Depends(get_db)):
    return quiz_service.list_quizzes(db)


@router.get("/public", response_model=List[QuizOut], dependencies=[Depends(get_current_user)])
def list_public_quizzes(db: Session = Depends(get_db)):
    return quiz_service.list_quizzes(db, public_only=True)


@router.get("/{quiz_id}", response_model=QuizOut, dependencies=[Depends(get_current_user)])
def get_quiz(quiz_id: int, db: Session = Depends(get_db)):
    return quiz_service.get_quiz(db, quiz_id)


@router.post("", response_model=QuizOut, status_code=201)
def create_quiz(payload: QuizCreate, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return quiz_service.create_quiz(
        db, user.user_id, payload.title, payload.description, payload.is_public, payload.time_limit,
        [q.model_dump() for q in payload.questions],
    )


@router.put("/{quiz_id}", response_model=QuizOut)
def update_quiz(payload: QuizPatch, quiz: Quiz = Depends(editable_quiz), db: Session = Depends(get_db)):
    return quiz_service.update_quiz(db, quiz, payload.model_dump(exclude_unset=True))


@router.delete("/{quiz_id}")
def delete_quiz(quiz: Quiz = Depends(editable_quiz), db: Session = Depends(get_db)):
    quiz_service.delete_quiz(db, quiz)
    return {"success": True}


@router.get("/{quiz_id}/questions", response_model=Union[List[QuestionOut], List[QuestionForTaker]])
def list_questions(quiz_id: int, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    quiz = quiz_service.get_quiz(db, quiz_id)
    questions = quiz_service.get_questions(db, quiz_id)
    if quiz_service.can_edit(quiz, user.user_id, user.is_admin):
        return [QuestionOut.model_validate(q) for q in questions]
    if not assignment_service.can_start(db, user.user_id, quiz_id):
        raise Unauthorized("You do not have access to this quiz")
    return [QuestionForTaker.model_validate(q) for q in questions]


@router.post("/{quiz_id}/questions", response_model=QuestionOut, status_code=201)
def add_question(payload: QuestionIn, quiz: Quiz = Depends(editable_quiz), db: Session = Depends(get_db)):
    return quiz_service.add_question(db, quiz, payload.model_dump())


@questions_router.put("/{question_id}", response_model=QuestionOut)
def update_question(payload: QuestionPatch, question: Question = Depends(editable_question),
                    db: Session = Depends(get_db)):
    return quiz_service.update_question(db, question, payload.model_dump(exclude_unset=True))


@questions_router.delete("/{question_id}")
def delete_question(question: Question = Depends(editable_question), db: Session = Depends(get_db)):
    quiz_service.delete_question(db, question)
    return {"success": True}
