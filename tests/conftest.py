"""Shared fixtures: a migrated temporary SQLite database per test and an app wired to it."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from saasboard.auth import hash_password
from saasboard.config import get_settings
from saasboard.db import dispose_engine, get_session_factory, reset_session_factory, run_migrations
from saasboard.db.models import User
from saasboard.db.repositories import create_user
from saasboard.main import create_app
from saasboard.providers.base import BaseProvider, ChatChunk, ChatRequest

TEST_JWT_SECRET = "test-secret-key-for-unit-tests-only"
TEST_PASSWORD = "correct-horse"


class FakeClock:
    """Manually advanced stand-in for ``time.monotonic``."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubProvider(BaseProvider):
    """Provider stub that yields configured text fragments, then optionally fails."""

    def __init__(
        self,
        chunks: list[str] | None = None,
        error: Exception | None = None,
        on_call: Callable[[ChatRequest], None] | None = None,
    ):
        self.chunks = list(chunks or [])
        self.error = error
        self.on_call = on_call
        self.requests: list[ChatRequest] = []
        self.streams_closed = 0

    async def chat_stream(self, request: ChatRequest):
        self.requests.append(request)
        if self.on_call is not None:
            self.on_call(request)
        try:
            for chunk in self.chunks:
                yield ChatChunk(content=chunk)
            if self.error is not None:
                raise self.error
        finally:
            self.streams_closed += 1


def parse_events(body: str) -> list[dict[str, Any]]:
    """Split an event-stream body into decoded ``data:`` payloads."""
    events = []
    for frame in body.split("\n\n"):
        if frame.startswith("data: "):
            events.append(json.loads(frame[len("data: "):]))
    return events


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def settings_env(tmp_path, monkeypatch):
    """Point settings at a fresh SQLite file and reset cached engine state."""
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("AUTH_RATE_LIMIT", "1000")
    monkeypatch.setenv("DASHBOARD_RATE_LIMIT", "1000")
    monkeypatch.setenv("CHAT_RATE_LIMIT", "1000")
    get_settings.cache_clear()
    dispose_engine()
    reset_session_factory()

    yield get_settings()

    dispose_engine()
    reset_session_factory()
    get_settings.cache_clear()


@pytest.fixture
def session_factory(settings_env) -> sessionmaker[Session]:
    run_migrations()
    return get_session_factory()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db_session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make_user(email: str | None = None, name: str = "Test User") -> User:
        counter["n"] += 1
        return create_user(
            db_session,
            email=email or f"user{counter['n']}@example.com",
            name=name,
            password_hash=hash_password(TEST_PASSWORD),
        )

    return _make_user


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider(chunks=["Hello", ", ", "world"])


@pytest.fixture
def app(settings_env, stub_provider) -> FastAPI:
    application = create_app()
    application.state.chat_provider = stub_provider
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register(client) -> Callable[..., dict[str, Any]]:
    """Register a user through the API and return the response body."""
    counter = {"n": 0}

    def _register(email: str | None = None, name: str = "Test User") -> dict[str, Any]:
        counter["n"] += 1
        response = client.post(
            "/api/auth/register",
            json={
                "email": email or f"member{counter['n']}@example.com",
                "password": TEST_PASSWORD,
                "name": name,
            },
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register
