import os

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from quizmaster.core.auth import create_token
from quizmaster.core.database import get_db
from quizmaster.main import app
from quizmaster.models.orm import Base
from quizmaster.services import quizzes as quiz_service
from quizmaster.services import users as user_service

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    return user_service.create_user(db, "admin", "admin123", role="admin")


@pytest.fixture
def alice(db):
    return user_service.create_user(db, "alice", "secret")


@pytest.fixture
def bob(db):
    return user_service.create_user(db, "bob", "secret")


@pytest.fixture
def private_quiz(db, admin):
    return quiz_service.create_quiz(db, admin.id, "Private Quiz", is_public=False, questions=[
        {"text": "2 + 2?", "type": "multiple_choice", "correct_answer": "4", "options": ["3", "4", "5"]},
        {"text": "Sky is blue", "type": "true_false", "correct_answer": "True", "options": ["True", "False"]},
    ])


@pytest.fixture
def public_quiz(db, admin):
    return quiz_service.create_quiz(db, admin.id, "Public Quiz", is_public=True, questions=[
        {"text": "Capital of France?", "type": "text", "correct_answer": "Paris"},
    ])


@pytest.fixture
def auth():
    def header(user) -> dict:
        return {"Authorization": f"Bearer {create_token(user.id, [user.role])}"}
    return header
