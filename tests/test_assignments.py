import pytest
from sqlalchemy import func, select

from quizmaster.core.errors import InvalidState, NotFound
from quizmaster.models.orm import AssignmentState, QuizAssignment
from quizmaster.services import access_requests as request_service
from quizmaster.services import assignments as assignment_service
from quizmaster.services import quizzes as quiz_service
from quizmaster.services.assignments import AssignmentUpdate


def count_rows(db, user_id):
    return db.scalar(select(func.count(QuizAssignment.id)).where(QuizAssignment.user_id == user_id))


def test_set_assignment_twice_updates_one_row(db, admin, alice, private_quiz):
    first = assignment_service.set_assignment(db, alice.id, private_quiz.id, True, True, admin.id)
    second = assignment_service.set_assignment(db, alice.id, private_quiz.id, True, True, admin.id)
    assert first.id == second.id
    assert count_rows(db, alice.id) == 1
    assert second.state is AssignmentState.ASSIGNED_WITH_ACCESS
    assert second.assigned_by == admin.id


def test_access_without_assignment_is_rejected(db, admin, alice, private_quiz):
    with pytest.raises(InvalidState):
        assignment_service.set_assignment(db, alice.id, private_quiz.id, False, True, admin.id)
    assert count_rows(db, alice.id) == 0


def test_no_row_ever_has_access_without_assignment(db, admin, alice, bob, private_quiz, public_quiz):
    assignment_service.set_assignment(db, alice.id, private_quiz.id, True, True, admin.id)
    assignment_service.bulk_set_assignments(db, bob.id, [
        AssignmentUpdate(private_quiz.id, True, False),
        AssignmentUpdate(public_quiz.id, False, False),
    ], admin.id)
    a = assignment_service.get_assignments_for_user(db, alice.id)[0]
    assignment_service.unassign(db, a.id, admin.id)
    for row in assignment_service.get_all_assignments(db):
        assert row.is_assigned or not row.has_access


def test_assigned_without_access_cannot_start(db, admin, alice, private_quiz):
    row = assignment_service.set_assignment(db, alice.id, private_quiz.id, True, False, admin.id)
    assert row.state is AssignmentState.ASSIGNED_NO_ACCESS
    assert assignment_service.can_start(db, alice.id, private_quiz.id) is False

    overview = {o.quiz.id: o for o in assignment_service.quiz_overview_for_user(db, alice.id)}
    entry = overview[private_quiz.id]
    assert entry.category == "assigned"
    assert entry.access_status == "no_access"
    assert entry.display_message == "Access needed - contact admin"


def test_public_quiz_is_always_startable(db, admin, alice, public_quiz):
    assert assignment_service.can_start(db, alice.id, public_quiz.id)
    assignment_service.set_assignment(db, alice.id, public_quiz.id, True, False, admin.id)
    assert assignment_service.can_start(db, alice.id, public_quiz.id)
    assignment_service.set_assignment(db, alice.id, public_quiz.id, False, False, admin.id)
    assert assignment_service.can_start(db, alice.id, public_quiz.id)


def test_bulk_sets_exact_flags_and_leaves_other_rows(db, admin, alice, private_quiz, public_quiz):
    other = quiz_service.create_quiz(db, admin.id, "Other", is_public=False)
    assignment_service.set_assignment(db, alice.id, other.id, True, False, admin.id)

    rows = assignment_service.bulk_set_assignments(db, alice.id, [
        AssignmentUpdate(private_quiz.id, True, True),
        AssignmentUpdate(public_quiz.id, False, False),
    ], admin.id)

    flags = {r.quiz_id: (r.is_assigned, r.has_access) for r in rows}
    assert flags[private_quiz.id] == (True, True)
    assert flags[public_quiz.id] == (False, False)
    assert flags[other.id] == (True, False)
    assert len(rows) == 3


def test_bulk_is_all_or_nothing(db, admin, alice, private_quiz, public_quiz):
    third = quiz_service.create_quiz(db, admin.id, "Third", is_public=False)
    fourth = quiz_service.create_quiz(db, admin.id, "Fourth", is_public=False)
    with pytest.raises(InvalidState):
        assignment_service.bulk_set_assignments(db, alice.id, [
            AssignmentUpdate(private_quiz.id, True, True),
            AssignmentUpdate(public_quiz.id, False, True),
            AssignmentUpdate(third.id, True, False),
            AssignmentUpdate(fourth.id, True, True),
        ], admin.id)
    assert count_rows(db, alice.id) == 0


def test_bulk_with_unknown_quiz_persists_nothing(db, admin, alice, private_quiz):
    with pytest.raises(NotFound):
        assignment_service.bulk_set_assignments(db, alice.id, [
            AssignmentUpdate(private_quiz.id, True, True),
            AssignmentUpdate(9999, True, True),
        ], admin.id)
    assert count_rows(db, alice.id) == 0


def test_unassign_clears_flags_and_keeps_row(db, admin, alice, private_quiz):
    row = assignment_service.set_assignment(db, alice.id, private_quiz.id, True, True, admin.id)
    cleared = assignment_service.unassign(db, row.id, admin.id)
    assert cleared.id == row.id
    assert (cleared.is_assigned, cleared.has_access) == (False, False)
    assert cleared.assigned_by == admin.id
    assert count_rows(db, alice.id) == 1
    assert assignment_service.get_assigned_quizzes(db, alice.id) == []


def test_unknown_user_or_quiz(db, admin, alice, private_quiz):
    with pytest.raises(NotFound):
        assignment_service.set_assignment(db, 9999, private_quiz.id, True, True, admin.id)
    with pytest.raises(NotFound):
        assignment_service.set_assignment(db, alice.id, 9999, True, True, admin.id)
    with pytest.raises(NotFound):
        assignment_service.get_assignments_for_user(db, 9999)
    with pytest.raises(NotFound):
        assignment_service.unassign(db, 9999, admin.id)


def test_request_approval_grants_access(db, admin, alice, private_quiz):
    assert not assignment_service.can_start(db, alice.id, private_quiz.id)
    request = request_service.request_access(db, alice.id, private_quiz.id, "please")
    assert request.status == "pending"

    resolved = request_service.resolve_access_request(db, request.id, "approved", admin.id)
    assert resolved.status == "approved"
    assert resolved.reviewed_by == admin.id
    assert resolved.reviewed_at is not None

    rows = assignment_service.get_assignments_for_user(db, alice.id)
    assert [(r.quiz_id, r.is_assigned, r.has_access) for r in rows] == [(private_quiz.id, True, True)]
    assert assignment_service.can_start(db, alice.id, private_quiz.id)


def test_quiz_overview_orders_startable_first(db, admin, alice, private_quiz, public_quiz):
    pending = quiz_service.create_quiz(db, admin.id, "Awaiting", is_public=False)
    request_service.request_access(db, alice.id, pending.id)
    rejected = quiz_service.create_quiz(db, admin.id, "Blocked", is_public=False)
    req = request_service.request_access(db, alice.id, rejected.id)
    request_service.resolve_access_request(db, req.id, "rejected", admin.id, "no")

    overview = assignment_service.quiz_overview_for_user(db, alice.id)
    assert [o.quiz.title for o in overview] == ["Public Quiz", "Awaiting", "Blocked", "Private Quiz"]
    by_title = {o.quiz.title: o for o in overview}
    assert by_title["Public Quiz"].category == "public"
    assert by_title["Awaiting"].access_status == "pending_request"
    assert by_title["Awaiting"].display_message == "Access request pending"
    assert by_title["Blocked"].access_status == "rejected_request"
    assert by_title["Private Quiz"].display_message == "Request access to take this quiz"


def test_deleting_quiz_removes_its_assignments(db, admin, alice, private_quiz):
    assignment_service.set_assignment(db, alice.id, private_quiz.id, True, True, admin.id)
    request_service.request_access(db, alice.id, private_quiz.id)
    quiz_service.delete_quiz(db, private_quiz)
    assert count_rows(db, alice.id) == 0
    assert request_service.get_user_access_requests(db, alice.id) == []
