import os
import tempfile
from pathlib import Path

# Point the app at a throwaway database before any notes_app module is imported.
_DB_DIR = tempfile.mkdtemp(prefix="notes-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ["ENV"] = "dev"
os.environ["EMAIL_BACKEND"] = "console"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from notes_app.database import engine
from notes_app.mailer import OTPMailer, get_mailer
from notes_app.main import app


class OutboxMailer(OTPMailer):
    """Keeps sent messages in memory so tests can read the codes."""

    def __init__(self):
        self.sent = []

    def send(self, to_email, subject, html, text, code):
        self.sent.append({"to": to_email, "subject": subject, "html": html, "text": text, "code": code})
        return f"msg-{len(self.sent)}"

    def last_code(self, email):
        for message in reversed(self.sent):
            if message["to"] == email:
                return message["code"]
        raise AssertionError(f"no email sent to {email}")


@pytest.fixture(autouse=True)
def reset_db():
    """Fresh tables for every test."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def outbox():
    mailer = OutboxMailer()
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield mailer
    app.dependency_overrides.pop(get_mailer, None)


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def register(outbox):
    """Return a helper that signs up a user and returns `(user, token)`."""
    client = TestClient(app)

    def _register(email="ada@example.com", name="Ada Lovelace", dob="1990-05-17"):
        r = client.post('/api/signup', json={'name': name, 'email': email, 'dateOfBirth': dob})
        assert r.status_code == 200, r.text
        code = outbox.last_code(email)
        v = client.post('/api/signup/verify', json={'email': email, 'otp': code})
        assert v.status_code == 200, v.text
        body = v.json()
        return body['user'], body['token']
    return _register
