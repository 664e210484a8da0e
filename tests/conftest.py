import os
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("OPENAI_API_KEY", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from exampractice.core import cache
from exampractice.core.auth import create_token
from exampractice.core.backend import SqlBackend
from exampractice.core.database import get_db
from exampractice.main import app
from exampractice.models.orm import Base


class FakeRedis:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value
        return True


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    r = FakeRedis()
    monkeypatch.setattr(cache, "redis_client", r)
    return r


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def backend(session_factory):
    db = session_factory()
    yield SqlBackend(db)
    db.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def headers(user_id="student-1", role="student"):
        return {"Authorization": f"Bearer {create_token(user_id, role)}"}
    return headers


@pytest.fixture
def seeded(backend):
    """One subject, one topic, five questions in that topic and two without a topic."""
    subject = backend.insert("subjects", [{"name": "Anatomy"}])[0]
    topic = backend.insert("topics", [{"subject_id": subject["id"], "name": "Heart"}])[0]
    questions = backend.insert("questions", [
        {"subject_id": subject["id"], "topic_id": topic["id"], "question_text": f"Question {i}",
         "option_a": "Alpha", "option_b": "Bravo", "option_c": "Charlie", "option_d": "Delta",
         "correct_answer": "A,C" if i == 0 else "B", "qtype": "multi" if i == 0 else "single",
         "explanation": f"Because {i}"}
        for i in range(5)
    ])
    loose = backend.insert("questions", [
        {"subject_id": subject["id"], "question_text": f"Loose {i}", "option_a": "Yes", "option_b": "No",
         "correct_answer": "A", "qtype": "truefalse"}
        for i in range(2)
    ])
    return {"subject": subject, "topic": topic, "questions": questions, "loose": loose}
