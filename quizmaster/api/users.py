from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, constr
from typing import List, Literal, Optional
from sqlalchemy.orm import Session

from quizmaster.api.deps import require_self_or_admin
from quizmaster.core.auth import TokenData, require_roles
from quizmaster.core.database import get_db
from quizmaster.models.orm import AccessRequestStatus
from quizmaster.models.schemas import (
    AccessRequestRow, AssignmentOut, AttemptRow, QuizOut, UserOut, UserWithPresence
)
from quizmaster.services import access_requests as request_service
from quizmaster.services import assignments as assignment_service
from quizmaster.services import attempts as attempt_service
from quizmaster.services import quizzes as quiz_service
from quizmaster.services import users as user_service

router = APIRouter()


class UserUpdate(BaseModel):
    username: Optional[constr(strip_whitespace=True, min_length=1, max_length=100)] = None
    password: Optional[constr(min_length=1)] = None
    role: Optional[Literal["user", "admin"]] = None
    status: Optional[Literal["active", "inactive", "suspended"]] = None


class ActivityOut(BaseModel):
    user: UserWithPresence
    attempts: List[AttemptRow]
    access_requests: List[AccessRequestRow]


class AssignedQuiz(QuizOut):
    is_assigned: bool
    has_access: bool
    assigned_at: Optional[datetime] = None


class QuizOverviewRow(QuizOut):
    category: Literal["assigned", "public", "private"]
    assignment_status: Literal["assigned", "not_assigned"]
    access_status: Literal["has_access", "no_access", "pending_request", "rejected_request"]
    can_start: bool
    display_message: Optional[str] = None


def _with_presence(user) -> UserWithPresence:
    return UserWithPresence.model_validate(user).model_copy(update={"is_online": user_service.is_online(user)})


@router.get("", response_model=List[UserWithPresence], dependencies=[Depends(require_roles("admin"))])
def list_users(db: Session = Depends(get_db)):
    return [_with_presence(u) for u in user_service.list_users(db)]


@router.get("/{user_id}", response_model=UserWithPresence)
def get_user(user_id: int, _: TokenData = Depends(require_self_or_admin), db: Session = Depends(get_db)):
    return _with_presence(user_service.get_user(db, user_id))


@router.put("/{user_id}", response_model=UserOut)
def update_user(user_id: int, payload: UserUpdate, actor: TokenData = Depends(require_self_or_admin),
                db: Session = Depends(get_db)):
    if not actor.is_admin and (payload.role or payload.status):
        raise HTTPException(403, "Only admins may change role or status")
    return user_service.update_user(db, user_id, **payload.model_dump())


@router.delete("/{user_id}", dependencies=[Depends(require_roles("admin"))])
def delete_user(user_id: int, db: Session = Depends(get_db)):
    user_service.delete_user(db, user_id)
    return {"success": True}


@router.get("/{user_id}/activity", response_model=ActivityOut, dependencies=[Depends(require_self_or_admin)])
def user_activity(user_id: int, db: Session = Depends(get_db)):
    activity = user_service.get_activity(db, user_id)
    return ActivityOut(
        user=_with_presence(activity["user"]),
        attempts=[AttemptRow.model_validate(a) for a in activity["attempts"]],
        access_requests=[AccessRequestRow.model_validate(r) for r in activity["access_requests"]],
    )


@router.get("/{user_id}/quizzes", response_model=List[QuizOut], dependencies=[Depends(require_self_or_admin)])
def created_quizzes(user_id: int, db: Session = Depends(get_db)):
    return quiz_service.list_quizzes_created_by(db, user_id)


@router.get("/{user_id}/assigned-quizzes", response_model=List[AssignedQuiz],
            dependencies=[Depends(require_self_or_admin)])
def assigned_quizzes(user_id: int, db: Session = Depends(get_db)):
    rows = []
    for a in assignment_service.get_assigned_quizzes(db, user_id):
        quiz = QuizOut.model_validate(a.quiz).model_dump()
        rows.append(AssignedQuiz(**quiz, is_assigned=a.is_assigned, has_access=a.has_access,
                                 assigned_at=a.assigned_at))
    return rows


@router.get("/{user_id}/quiz-overview", response_model=List[QuizOverviewRow],
            dependencies=[Depends(require_self_or_admin)])
def quiz_overview(user_id: int, db: Session = Depends(get_db)):
    return [
        QuizOverviewRow(
            **QuizOut.model_validate(o.quiz).model_dump(),
            category=o.category,
            assignment_status="assigned" if o.assignment_state.is_assigned else "not_assigned",
            access_status=o.access_status,
            can_start=o.can_start,
            display_message=o.display_message,
        )
        for o in assignment_service.quiz_overview_for_user(db, user_id)
    ]


@router.get("/{user_id}/quiz-assignments", response_model=List[AssignmentOut],
            dependencies=[Depends(require_self_or_admin)])
def user_assignments(user_id: int, db: Session = Depends(get_db)):
    return assignment_service.get_assignments_for_user(db, user_id)


@router.get("/{user_id}/access-requests", response_model=List[AccessRequestRow],
            dependencies=[Depends(require_self_or_admin)])
def user_access_requests(user_id: int, status: Optional[AccessRequestStatus] = None, db: Session = Depends(get_db)):
    return request_service.get_user_access_requests(db, user_id, status)


@router.get("/{user_id}/attempts", response_model=List[AttemptRow], dependencies=[Depends(require_self_or_admin)])
def user_attempts(user_id: int, db: Session = Depends(get_db)):
    return attempt_service.get_user_attempts(db, user_id)
