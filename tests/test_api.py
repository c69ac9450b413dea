from quizmaster.services import users as user_service


def test_register_login_and_me(client):
    r = client.post("/v1/auth/register", json={"username": "carol", "password": "pw"})
    assert r.status_code == 201
    assert r.json()["role"] == "user"

    r = client.post("/v1/auth/register", json={"username": "carol", "password": "pw"})
    assert r.status_code == 409
    assert r.json()["error"]["type"] == "conflict"

    r = client.post("/v1/auth/login", json={"username": "carol", "password": "wrong"})
    assert r.status_code == 401

    r = client.post("/v1/auth/login", json={"username": "carol", "password": "pw"})
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["last_activity"] is not None
    hdr = {"Authorization": f"Bearer {body['access_token']}"}
    assert client.get("/v1/auth/me", headers=hdr).json()["username"] == "carol"


def test_suspended_user_cannot_login(client, auth, admin, alice):
    r = client.put(f"/v1/users/{alice.id}", json={"status": "suspended"}, headers=auth(admin))
    assert r.status_code == 200
    r = client.post("/v1/auth/login", json={"username": "alice", "password": "secret"})
    assert r.status_code == 403


def test_requests_need_a_valid_token(client):
    assert client.get("/v1/quizzes").status_code in (401, 403)
    r = client.get("/v1/quizzes", headers={"Authorization": "Bearer nonsense"})
    assert r.status_code == 401


def test_user_routes_are_self_or_admin(client, auth, admin, alice, bob):
    assert client.get(f"/v1/users/{alice.id}", headers=auth(alice)).status_code == 200
    assert client.get(f"/v1/users/{alice.id}", headers=auth(bob)).status_code == 403
    assert client.get("/v1/users", headers=auth(alice)).status_code == 403

    users = client.get("/v1/users", headers=auth(admin)).json()
    assert {u["username"] for u in users} == {"admin", "alice", "bob"}
    assert all("is_online" in u for u in users)

    r = client.put(f"/v1/users/{alice.id}", json={"role": "admin"}, headers=auth(alice))
    assert r.status_code == 403
    r = client.put(f"/v1/users/{alice.id}", json={"username": "bob"}, headers=auth(alice))
    assert r.status_code == 409


def test_quiz_crud_by_owner(client, auth, alice, bob):
    payload = {
        "title": "Geography",
        "is_public": False,
        "questions": [{"text": "Capital of Italy?", "type": "text", "correct_answer": "Rome"}],
    }
    r = client.post("/v1/quizzes", json=payload, headers=auth(alice))
    assert r.status_code == 201
    quiz = r.json()
    assert quiz["created_by"] == alice.id

    r = client.put(f"/v1/quizzes/{quiz['id']}", json={"title": "Hijacked"}, headers=auth(bob))
    assert r.status_code == 403
    assert r.json()["error"]["type"] == "unauthorized"

    r = client.put(f"/v1/quizzes/{quiz['id']}", json={"title": "World Geography"}, headers=auth(alice))
    assert r.json()["title"] == "World Geography"

    r = client.post(f"/v1/quizzes/{quiz['id']}/questions",
                    json={"text": "Capital of Spain?", "type": "text", "correct_answer": "Madrid"},
                    headers=auth(alice))
    assert r.status_code == 201
    question_id = r.json()["id"]

    r = client.put(f"/v1/questions/{question_id}", json={"points": 2}, headers=auth(alice))
    assert r.json()["points"] == 2
    assert client.delete(f"/v1/questions/{question_id}", headers=auth(bob)).status_code == 403
    assert client.delete(f"/v1/questions/{question_id}", headers=auth(alice)).status_code == 200

    created = client.get(f"/v1/users/{alice.id}/quizzes", headers=auth(alice)).json()
    assert [q["title"] for q in created] == ["World Geography"]

    assert client.delete(f"/v1/quizzes/{quiz['id']}", headers=auth(alice)).status_code == 200
    r = client.get(f"/v1/quizzes/{quiz['id']}", headers=auth(alice))
    assert r.status_code == 404
    assert r.json()["error"]["type"] == "not_found"


def test_question_visibility(client, auth, admin, alice, private_quiz, public_quiz):
    full = client.get(f"/v1/quizzes/{private_quiz.id}/questions", headers=auth(admin)).json()
    assert full[0]["correct_answer"] == "4"

    r = client.get(f"/v1/quizzes/{private_quiz.id}/questions", headers=auth(alice))
    assert r.status_code == 403

    taker = client.get(f"/v1/quizzes/{public_quiz.id}/questions", headers=auth(alice)).json()
    assert len(taker) == 1
    assert "correct_answer" not in taker[0]


def test_assignment_routes_are_admin_only(client, auth, admin, alice, private_quiz, public_quiz):
    body = {"user_id": alice.id, "quiz_id": private_quiz.id, "is_assigned": True, "has_access": False}
    assert client.post("/v1/quiz-assignments", json=body, headers=auth(alice)).status_code == 403

    r = client.post("/v1/quiz-assignments", json=body, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["state"] == "assigned_no_access"

    bad = dict(body, is_assigned=False, has_access=True)
    r = client.post("/v1/quiz-assignments", json=bad, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "invalid_state"

    r = client.put("/v1/quiz-assignments/bulk", headers=auth(admin), json={
        "user_id": alice.id,
        "assignments": [
            {"quiz_id": private_quiz.id, "is_assigned": True, "has_access": True},
            {"quiz_id": public_quiz.id, "is_assigned": False, "has_access": False},
        ],
    })
    assert r.status_code == 200
    assert {a["quiz_id"]: a["state"] for a in r.json()} == {
        private_quiz.id: "assigned_with_access",
        public_quiz.id: "unassigned",
    }

    assigned = client.get(f"/v1/users/{alice.id}/assigned-quizzes", headers=auth(alice)).json()
    assert [(q["title"], q["has_access"]) for q in assigned] == [("Private Quiz", True)]

    assignment_id = r.json()[0]["id"]
    r = client.delete(f"/v1/quiz-assignments/{assignment_id}", headers=auth(admin))
    assert r.json()["state"] == "unassigned"
    assert len(client.get("/v1/quiz-assignments", headers=auth(admin)).json()) == 2


def test_access_request_workflow(client, auth, admin, alice, private_quiz):
    r = client.post("/v1/access-requests", json={"quiz_id": private_quiz.id, "message": "please"},
                    headers=auth(alice))
    assert r.status_code == 201
    request_id = r.json()["id"]

    r = client.post("/v1/access-requests", json={"quiz_id": private_quiz.id}, headers=auth(alice))
    assert r.status_code == 409
    assert r.json()["error"]["type"] == "duplicate_request"

    overview = client.get(f"/v1/users/{alice.id}/quiz-overview", headers=auth(alice)).json()
    assert overview[0]["access_status"] == "pending_request"
    assert overview[0]["can_start"] is False

    assert client.get("/v1/access-requests", headers=auth(alice)).status_code == 403
    pending = client.get("/v1/access-requests?status=pending", headers=auth(admin)).json()
    assert [(p["requester_username"], p["quiz_title"]) for p in pending] == [("alice", "Private Quiz")]

    r = client.put(f"/v1/access-requests/{request_id}", json={"status": "approved"}, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["status"] == "approved"

    r = client.put(f"/v1/access-requests/{request_id}", json={"status": "rejected"}, headers=auth(admin))
    assert r.status_code == 400

    rows = client.get(f"/v1/users/{alice.id}/quiz-assignments", headers=auth(alice)).json()
    assert [(a["quiz_id"], a["is_assigned"], a["has_access"]) for a in rows] == [(private_quiz.id, True, True)]

    questions = client.get(f"/v1/quizzes/{private_quiz.id}/questions", headers=auth(alice))
    assert questions.status_code == 200

    mine = client.get(f"/v1/users/{alice.id}/access-requests", headers=auth(alice)).json()
    assert [m["status"] for m in mine] == ["approved"]


def test_taking_a_quiz(client, auth, alice, bob, public_quiz):
    r = client.post("/v1/attempts", json={"quiz_id": public_quiz.id}, headers=auth(alice))
    assert r.status_code == 201
    attempt_id = r.json()["id"]
    question_id = public_quiz.questions[0].id

    r = client.post(f"/v1/attempts/{attempt_id}/answers", json={"question_id": question_id, "answer": "paris"},
                    headers=auth(bob))
    assert r.status_code == 403

    r = client.post(f"/v1/attempts/{attempt_id}/answers", json={"question_id": question_id, "answer": " paris"},
                    headers=auth(alice))
    assert r.json()["is_correct"] is True

    r = client.post(f"/v1/attempts/{attempt_id}/complete", headers=auth(alice))
    summary = r.json()
    assert (summary["score"], summary["total_questions"], summary["passed"]) == (1, 1, True)
    assert summary["percentage"] == 100.0

    history = client.get(f"/v1/users/{alice.id}/attempts", headers=auth(alice)).json()
    assert history[0]["quiz_title"] == "Public Quiz"
    activity = client.get(f"/v1/users/{alice.id}/activity", headers=auth(alice)).json()
    assert len(activity["attempts"]) == 1


def test_validation_errors_use_error_envelope(client, auth, alice):
    r = client.post("/v1/quizzes", json={"title": ""}, headers=auth(alice))
    assert r.status_code == 422
    assert r.json()["error"]["type"] == "validation_error"


def test_suspension_applies_to_issued_tokens(client, auth, admin, alice, private_quiz):
    hdr = auth(alice)
    assert client.get("/v1/auth/me", headers=hdr).status_code == 200
    client.put(f"/v1/users/{alice.id}", json={"status": "suspended"}, headers=auth(admin))

    r = client.post("/v1/access-requests", json={"quiz_id": private_quiz.id}, headers=hdr)
    assert r.status_code == 403
    assert r.json()["error"]["type"] == "unauthorized"


def test_demoted_admin_loses_admin_routes(client, auth, db, admin, alice, bob, private_quiz):
    user_service.update_user(db, alice.id, role="admin")
    hdr = auth(alice)
    body = {"user_id": bob.id, "quiz_id": private_quiz.id, "is_assigned": True, "has_access": True}
    assert client.post("/v1/quiz-assignments", json=body, headers=hdr).status_code == 200

    user_service.update_user(db, alice.id, role="user")
    assert client.post("/v1/quiz-assignments", json=body, headers=hdr).status_code == 403


def test_token_for_deleted_user_is_rejected(client, auth, admin, bob):
    hdr = auth(bob)
    assert client.delete(f"/v1/users/{bob.id}", headers=auth(admin)).status_code == 200
    assert client.get("/v1/auth/me", headers=hdr).status_code == 401
