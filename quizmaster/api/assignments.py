from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List
from sqlalchemy.orm import Session

from quizmaster.core.auth import TokenData, require_roles
from quizmaster.core.database import get_db
from quizmaster.models.schemas import AssignmentOut
from quizmaster.services import assignments as assignment_service
from quizmaster.services.assignments import AssignmentUpdate

router = APIRouter()


class AssignmentIn(BaseModel):
    user_id: int
    quiz_id: int
    is_assigned: bool
    has_access: bool = False


class AssignmentEntry(BaseModel):
    quiz_id: int
    is_assigned: bool
    has_access: bool = False


class BulkAssignment(BaseModel):
    user_id: int
    assignments: List[AssignmentEntry]


@router.get("", response_model=List[AssignmentOut], dependencies=[Depends(require_roles("admin"))])
def list_assignments(db: Session = Depends(get_db)):
    return assignment_service.get_all_assignments(db)


@router.post("", response_model=AssignmentOut)
def set_assignment(payload: AssignmentIn, admin: TokenData = Depends(require_roles("admin")),
                   db: Session = Depends(get_db)):
    return assignment_service.set_assignment(
        db, payload.user_id, payload.quiz_id, payload.is_assigned, payload.has_access, admin.user_id
    )


@router.put("/bulk", response_model=List[AssignmentOut])
def bulk_update(payload: BulkAssignment, admin: TokenData = Depends(require_roles("admin")),
                db: Session = Depends(get_db)):
    updates = [AssignmentUpdate(e.quiz_id, e.is_assigned, e.has_access) for e in payload.assignments]
    return assignment_service.bulk_set_assignments(db, payload.user_id, updates, admin.user_id)


@router.delete("/{assignment_id}", response_model=AssignmentOut)
def unassign(assignment_id: int, admin: TokenData = Depends(require_roles("admin")), db: Session = Depends(get_db)):
    return assignment_service.unassign(db, assignment_id, admin.user_id)
