from fastapi import APIRouter, Depends
from pydantic import BaseModel, constr
from typing import List, Literal, Optional
from sqlalchemy.orm import Session

from quizmaster.core.auth import TokenData, get_current_user, require_roles
from quizmaster.core.database import get_db
from quizmaster.models.orm import AccessRequestStatus
from quizmaster.models.schemas import AccessRequestOut, AccessRequestRow
from quizmaster.services import access_requests as request_service

router = APIRouter()


class AccessRequestIn(BaseModel):
    quiz_id: int
    message: Optional[constr(max_length=1000)] = None


class Review(BaseModel):
    status: Literal["approved", "rejected"]
    response_message: Optional[constr(max_length=1000)] = None


@router.post("", response_model=AccessRequestOut, status_code=201)
def request_access(payload: AccessRequestIn, user: TokenData = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    return request_service.request_access(db, user.user_id, payload.quiz_id, payload.message)


@router.get("", response_model=List[AccessRequestRow], dependencies=[Depends(require_roles("admin"))])
def list_requests(status: Optional[AccessRequestStatus] = None, db: Session = Depends(get_db)):
    return request_service.get_access_requests(db, status)


@router.put("/{request_id}", response_model=AccessRequestOut)
def review_request(request_id: int, payload: Review, admin: TokenData = Depends(require_roles("admin")),
                   db: Session = Depends(get_db)):
    return request_service.resolve_access_request(
        db, request_id, payload.status, admin.user_id, payload.response_message
    )
