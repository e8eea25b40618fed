import json
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("AI_GATEWAY_API_KEY", "test-key")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ai_gateway import GenerationService
from auth import UserSession, get_password_hash
from database import Base, get_db
from main import app, get_generation_service
from models import User

GATEWAY_URL = "https://gateway.test/v1/chat/completions"


def completion(content, status_code=200):
    return httpx.Response(status_code, json={"choices": [{"message": {"content": content}}]})


class FakeGateway:
    """Scripted chat-completions gateway; replies are consumed in order."""

    def __init__(self):
        self.replies = []
        self.requests = []
        self.transport = httpx.MockTransport(self.handle)

    def reply(self, content):
        self.replies.append(completion(content))
        return self

    def reply_json(self, payload):
        return self.reply(json.dumps(payload))

    def fail(self, status_code, body=None):
        self.replies.append(httpx.Response(status_code, json=body or {"error": "failed"}))
        return self

    def raise_error(self, error):
        self.replies.append(error)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if not self.replies:
            raise AssertionError("unexpected gateway call")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def user_prompt(self, index=-1) -> str:
        return self.requests[index]["messages"][1]["content"]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def generation(gateway):
    return GenerationService(api_key="test-key", url=GATEWAY_URL, transport=gateway.transport)


def make_user(db, email="candidate@example.com", full_name="Casey Candidate", password="secret123"):
    user = User(email=email, password_hash=get_password_hash(password), full_name=full_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def user_session(user):
    return UserSession(user_id=user.id, email=user.email, token_id="test-token")


@pytest.fixture
def client(session_factory, generation):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generation_service] = lambda: generation
    yield TestClient(app)
    app.dependency_overrides.clear()
