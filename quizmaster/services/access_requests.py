"""Access-request half of the assignment/access engine.

A request moves ``pending -> approved`` or ``pending -> rejected`` exactly
once. Approval upserts the pair's assignment to ASSIGNED_WITH_ACCESS in the
same transaction as the status change.
"""
from typing import List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from quizmaster.core.database import transaction
from quizmaster.core.errors import DuplicateRequest, InvalidState, NotFound
from quizmaster.models.orm import (
    AccessRequest, AccessRequestStatus, AssignmentState, Quiz, User, utcnow
)
from quizmaster.services.assignments import upsert_assignment

logger = logging.getLogger(__name__)


def _status(value) -> AccessRequestStatus:
    try:
        return AccessRequestStatus(value)
    except ValueError:
        raise InvalidState(f"Unknown access request status: {value!r}")


def get_access_request(db: Session, request_id: int) -> AccessRequest:
    request = db.get(AccessRequest, request_id)
    if not request:
        raise NotFound("Access request not found")
    return request


def find_pending(db: Session, user_id: int, quiz_id: int) -> Optional[AccessRequest]:
    return db.scalar(select(AccessRequest).where(
        AccessRequest.user_id == user_id,
        AccessRequest.quiz_id == quiz_id,
        AccessRequest.status == AccessRequestStatus.PENDING.value,
    ))


def request_access(db: Session, user_id: int, quiz_id: int, message: Optional[str] = None) -> AccessRequest:
    if db.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found")
    quiz = db.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound(f"Quiz {quiz_id} not found")
    if quiz.is_public:
        raise InvalidState("Public quizzes do not need an access request")
    if find_pending(db, user_id, quiz_id):
        raise DuplicateRequest("You already have a pending request for this quiz")

    with transaction(db):
        request = AccessRequest(user_id=user_id, quiz_id=quiz_id, message=message or None,
                                status=AccessRequestStatus.PENDING.value, requested_at=utcnow())
        db.add(request)
        try:
            db.flush()
        except IntegrityError as exc:
            # lost a race against a concurrent request for the same pair
            raise DuplicateRequest("You already have a pending request for this quiz") from exc
    db.refresh(request)
    logger.info(f"Access request {request.id}: user={user_id} quiz={quiz_id}")
    return request


def _listing(status: Optional[str]):
    stmt = select(AccessRequest).options(joinedload(AccessRequest.user), joinedload(AccessRequest.quiz))
    if status is not None:
        stmt = stmt.where(AccessRequest.status == _status(status).value)
    return stmt.order_by(AccessRequest.requested_at.desc(), AccessRequest.id.desc())


def get_access_requests(db: Session, status: Optional[str] = None) -> List[AccessRequest]:
    return list(db.scalars(_listing(status)))


def get_user_access_requests(db: Session, user_id: int, status: Optional[str] = None) -> List[AccessRequest]:
    if db.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found")
    return list(db.scalars(_listing(status).where(AccessRequest.user_id == user_id)))


def resolve_access_request(db: Session, request_id: int, decision, reviewer_id: Optional[int],
                           response_message: Optional[str] = None) -> AccessRequest:
    decision = _status(decision)
    if decision is AccessRequestStatus.PENDING:
        raise InvalidState('Status must be "approved" or "rejected"')
    request = get_access_request(db, request_id)
    if request.status != AccessRequestStatus.PENDING.value:
        raise InvalidState(f"Access request {request_id} is already {request.status}")

    with transaction(db):
        result = db.execute(
            update(AccessRequest)
            .where(AccessRequest.id == request_id, AccessRequest.status == AccessRequestStatus.PENDING.value)
            .values(status=decision.value, reviewed_by=reviewer_id, reviewed_at=utcnow(),
                    response_message=response_message)
        )
        if result.rowcount != 1:
            raise InvalidState(f"Access request {request_id} was resolved concurrently")
        if decision is AccessRequestStatus.APPROVED:
            upsert_assignment(db, request.user_id, request.quiz_id,
                              AssignmentState.ASSIGNED_WITH_ACCESS, reviewer_id)
    db.refresh(request)
    logger.info(f"Access request {request_id} {decision.value} by {reviewer_id}")
    return request
