import os
import tempfile

# Must run before quizdesk is imported: the engine is built at import time
_tmp_dir = tempfile.mkdtemp(prefix="quizdesk-tests-")
os.environ["QUIZDESK_DATABASE_URL"] = "sqlite:///" + os.path.join(_tmp_dir, "test.db")
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient

from quizdesk.database import Base, SessionLocal, engine
from quizdesk.main import app
from quizdesk.schemas import Option, Question, Quiz

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse"


@pytest.fixture(autouse=True)
def _fresh_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client(client):
    r = client.post("/auth/register", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    r = client.post("/auth/login", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    return client


def build_question(qtype, scores, text="Question", qid=0):
    return Question(
        id=qid,
        text=text,
        type=qtype,
        options=[Option(text=f"Option {i}", score=s) for i, s in enumerate(scores, 1)],
    )


@pytest.fixture
def draft_quiz():
    """One single question (10/5/0) and one multi question (10/5/-5), ids unassigned."""
    return Quiz(
        title="Security basics",
        description="Warm-up",
        questions=[
            build_question("single", [10, 5, 0], text="Pick the strongest password policy"),
            build_question("multi", [10, 5, -5], text="Which of these are phishing signs?"),
        ],
    )
