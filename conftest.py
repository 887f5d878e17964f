import os

# Settings are read at import time, so point them at sqlite first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["REVIEW_POLICY"] = "sm2"
os.environ["SKIP_ENROLLMENT_CHECK"] = "false"

import pytest
from fastapi.testclient import TestClient

from studyhub.auth.utils import create_access_token
from studyhub.database import Base, SessionLocal, engine
from studyhub.main import app


def auth_headers(user_id: str, role: str = "student", name: str = None) -> dict:
    claims = {"sub": user_id, "role": role}
    if name:
        claims["name"] = name
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


COURSE_PAYLOAD = {
    "title": "Biology 101",
    "description": "Cells and what they are made of",
    "sections": [
        {
            "sectionId": "s1",
            "title": "Cells",
            "chapters": [
                {
                    "chapterId": "c1",
                    "title": "Inside the cell",
                    "type": "Text",
                    "content": (
                        "Cells are small. What does DNA store? It stores genetic information. "
                        "Mitochondria is the powerhouse of the cell."
                    ),
                },
                {
                    "chapterId": "c2",
                    "title": "Cell video",
                    "type": "Video",
                    "content": "Photosynthesis is how plants make food.",
                },
            ],
        },
        {
            "sectionId": "s2",
            "title": "Water",
            "chapters": [
                {
                    "chapterId": "c3",
                    "title": "Check yourself",
                    "type": "Quiz",
                    "content": "Osmosis is the diffusion of water.",
                },
            ],
        },
    ],
}


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def student():
    return auth_headers("student-1", name="Alice")


@pytest.fixture
def other_student():
    return auth_headers("student-2", name="Bob")


@pytest.fixture
def teacher():
    return auth_headers("teacher-1", role="teacher", name="Dr. Smith")


@pytest.fixture
def admin():
    return auth_headers("admin-1", role="admin")


@pytest.fixture
def course_id(client, teacher):
    response = client.post("/courses", json=COURSE_PAYLOAD, headers=teacher)
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.fixture
def enroll(client, course_id):
    def _enroll(headers):
        response = client.post(f"/courses/{course_id}/enroll", headers=headers)
        assert response.status_code == 200
        return response.json()["data"]
    return _enroll


@pytest.fixture
def deck_id(client, student):
    response = client.post("/memory-cards/decks", json={"title": "Cell biology"}, headers=student)
    assert response.status_code == 201
    return response.json()["data"]["deckId"]
