import os

import pytest

# The service reads its configuration at import time.
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FORCE_HTTPS"] = "false"
os.environ["STUDENT_CODE"] = "student-code"
os.environ["ADMIN_CODE"] = "teacher-code"
os.environ["QUIZ_ATTEMPT_GATE"] = "default_only"
os.environ["GEMINI_API_KEY"] = ""

from classroom_portal import app as portal  # noqa: E402

STUDENT_CODE = "student-code"
ADMIN_CODE = "teacher-code"


@pytest.fixture
def app_env():
    """Fresh in-memory database per test.

    No application context is left pushed: requests must each get their own,
    otherwise flask.g (and the logged-in user) leaks between them.
    """
    with portal.app.app_context():
        portal.db.drop_all()
        portal.db.create_all()
    yield portal


@pytest.fixture
def client(app_env):
    return app_env.app.test_client()


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, email, name="Someone", code=STUDENT_CODE, password="secret123"):
    """Sign up through the API; returns (token, user dict)."""
    response = client.post("/api/signup", json={"email": email, "password": password, "name": name, "code": code})
    assert response.status_code == 201, response.get_json()
    data = response.get_json()
    return data["token"], data["user"]


@pytest.fixture
def student(client):
    return register(client, "student@example.com", name="Mei")


@pytest.fixture
def teacher(client):
    return register(client, "teacher@example.com", name="Teacher Li", code=ADMIN_CODE)


def insert(module, *rows):
    with module.app.app_context():
        module.db.session.add_all(rows)
        module.db.session.commit()
