"""Assignment half of the assignment/access engine.

Each (user, quiz) pair has at most one ``QuizAssignment`` row, holding one of
three states:

    UNASSIGNED            quiz is not on the user's list
    ASSIGNED_NO_ACCESS    on the list, but the user may not start it yet
    ASSIGNED_WITH_ACCESS  on the list and startable

Rows are upserted and never deleted here; unassigning clears both flags so
``assigned_by`` / ``assigned_at`` keep the audit trail. Whether a user may
start a quiz is derived on read by ``can_start``.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Set
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from quizmaster.core.database import transaction
from quizmaster.core.errors import InvalidState, NotFound
from quizmaster.models.orm import (
    AccessRequest, AccessRequestStatus, AssignmentState, Quiz, QuizAssignment, User
)

logger = logging.getLogger(__name__)


class AssignmentUpdate(NamedTuple):
    quiz_id: int
    is_assigned: bool
    has_access: bool


@dataclass
class QuizOverview:
    quiz: Quiz
    category: str  # assigned | public | private
    assignment_state: AssignmentState
    access_status: str  # has_access | no_access | pending_request | rejected_request
    can_start: bool
    display_message: Optional[str] = None


def state_for(is_assigned: bool, has_access: bool) -> AssignmentState:
    state = AssignmentState.from_flags(is_assigned, has_access)
    if state is None:
        raise InvalidState("has_access requires is_assigned")
    return state


def _get_quiz(db: Session, quiz_id: int) -> Quiz:
    quiz = db.get(Quiz, quiz_id)
    if not quiz:
        raise NotFound(f"Quiz {quiz_id} not found")
    return quiz


def _ensure_user(db: Session, user_id: int) -> None:
    if db.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found")


def find_assignment(db: Session, user_id: int, quiz_id: int, for_update: bool = False) -> Optional[QuizAssignment]:
    stmt = select(QuizAssignment).where(QuizAssignment.user_id == user_id, QuizAssignment.quiz_id == quiz_id)
    if for_update:
        stmt = stmt.with_for_update()
    return db.scalar(stmt)


def upsert_assignment(db: Session, user_id: int, quiz_id: int, state: AssignmentState,
                      actor_id: Optional[int]) -> QuizAssignment:
    """Create or overwrite the pair's row; the caller owns the transaction."""
    _ensure_user(db, user_id)
    _get_quiz(db, quiz_id)
    assignment = find_assignment(db, user_id, quiz_id, for_update=True)
    if assignment is None:
        assignment = QuizAssignment(user_id=user_id, quiz_id=quiz_id)
        db.add(assignment)
    assignment.apply(state, actor_id)
    db.flush()
    return assignment


def get_assignments_for_user(db: Session, user_id: int) -> List[QuizAssignment]:
    _ensure_user(db, user_id)
    return list(db.scalars(
        select(QuizAssignment).where(QuizAssignment.user_id == user_id).order_by(QuizAssignment.quiz_id)
    ))


def get_all_assignments(db: Session) -> List[QuizAssignment]:
    return list(db.scalars(select(QuizAssignment).order_by(QuizAssignment.user_id, QuizAssignment.quiz_id)))


def get_assignment(db: Session, assignment_id: int) -> QuizAssignment:
    assignment = db.get(QuizAssignment, assignment_id)
    if not assignment:
        raise NotFound(f"Assignment {assignment_id} not found")
    return assignment


def set_assignment(db: Session, user_id: int, quiz_id: int, is_assigned: bool, has_access: bool,
                   actor_id: Optional[int]) -> QuizAssignment:
    state = state_for(is_assigned, has_access)
    with transaction(db):
        assignment = upsert_assignment(db, user_id, quiz_id, state, actor_id)
    db.refresh(assignment)
    logger.info(f"Assignment user={user_id} quiz={quiz_id} -> {state.value} by {actor_id}")
    return assignment


def bulk_set_assignments(db: Session, user_id: int, updates: Iterable[AssignmentUpdate],
                         actor_id: Optional[int]) -> List[QuizAssignment]:
    """Apply every update or none of them; return all of the user's rows afterwards."""
    updates = list(updates)
    with transaction(db):
        _ensure_user(db, user_id)
        for update in updates:
            state = state_for(update.is_assigned, update.has_access)
            upsert_assignment(db, user_id, update.quiz_id, state, actor_id)
    logger.info(f"Bulk assignment for user={user_id}: {len(updates)} entries by {actor_id}")
    return get_assignments_for_user(db, user_id)


def unassign(db: Session, assignment_id: int, actor_id: Optional[int]) -> QuizAssignment:
    assignment = get_assignment(db, assignment_id)
    with transaction(db):
        assignment.apply(AssignmentState.UNASSIGNED, actor_id)
    db.refresh(assignment)
    logger.info(f"Unassigned quiz={assignment.quiz_id} from user={assignment.user_id} by {actor_id}")
    return assignment


def get_assigned_quizzes(db: Session, user_id: int) -> List[QuizAssignment]:
    """Assignments that put a quiz on the user's list, with the quiz loaded."""
    _ensure_user(db, user_id)
    return list(db.scalars(
        select(QuizAssignment).join(Quiz, Quiz.id == QuizAssignment.quiz_id)
        .where(QuizAssignment.user_id == user_id, QuizAssignment.is_assigned.is_(True))
        .order_by(Quiz.title)
    ))


def _request_statuses(db: Session, user_id: int, quiz_id: Optional[int] = None) -> Dict[int, Set[str]]:
    stmt = select(AccessRequest.quiz_id, AccessRequest.status).where(AccessRequest.user_id == user_id)
    if quiz_id is not None:
        stmt = stmt.where(AccessRequest.quiz_id == quiz_id)
    statuses: Dict[int, Set[str]] = {}
    for qid, status in db.execute(stmt):
        statuses.setdefault(qid, set()).add(status)
    return statuses


def _startable(quiz: Quiz, assignment: Optional[QuizAssignment], statuses: Set[str]) -> bool:
    if quiz.is_public:
        return True
    if assignment is not None and assignment.is_assigned and assignment.has_access:
        return True
    return AccessRequestStatus.APPROVED.value in statuses


def can_start(db: Session, user_id: int, quiz_id: int) -> bool:
    quiz = _get_quiz(db, quiz_id)
    if quiz.is_public:
        return True
    assignment = find_assignment(db, user_id, quiz_id)
    statuses = _request_statuses(db, user_id, quiz_id).get(quiz_id, set())
    return _startable(quiz, assignment, statuses)


def quiz_overview_for_user(db: Session, user_id: int) -> List[QuizOverview]:
    """Every quiz with the user's display state; startable quizzes first, then by title."""
    _ensure_user(db, user_id)
    quizzes = db.scalars(select(Quiz)).all()
    assignments = {a.quiz_id: a for a in db.scalars(select(QuizAssignment).where(QuizAssignment.user_id == user_id))}
    requests = _request_statuses(db, user_id)

    overview = []
    for quiz in quizzes:
        assignment = assignments.get(quiz.id)
        state = assignment.state if assignment else AssignmentState.UNASSIGNED
        statuses = requests.get(quiz.id, set())
        startable = _startable(quiz, assignment, statuses)

        if state.is_assigned:
            overview.append(QuizOverview(
                quiz, "assigned", state,
                "has_access" if startable else "no_access", startable,
                None if startable else "Access needed - contact admin",
            ))
        elif quiz.is_public:
            overview.append(QuizOverview(quiz, "public", state, "has_access", True))
        elif AccessRequestStatus.APPROVED.value in statuses:
            overview.append(QuizOverview(quiz, "private", state, "has_access", True))
        elif AccessRequestStatus.PENDING.value in statuses:
            overview.append(QuizOverview(quiz, "private", state, "pending_request", False, "Access request pending"))
        elif AccessRequestStatus.REJECTED.value in statuses:
            overview.append(QuizOverview(quiz, "private", state, "rejected_request", False, "Access request denied"))
        else:
            overview.append(QuizOverview(quiz, "private", state, "no_access", False,
                                         "Request access to take this quiz"))

    overview.sort(key=lambda o: (not o.can_start, o.quiz.title.lower()))
    return overview
