"""Tests for health endpoints."""

from saasboard.db import dispose_engine


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readyz_when_database_answers(client) -> None:
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


def test_readyz_when_database_unreachable(client, monkeypatch, tmp_path) -> None:
    from saasboard.config import get_settings

    blocker = tmp_path / "blocker"
    blocker.write_text("")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{blocker}/nested/db.sqlite")
    get_settings.cache_clear()
    dispose_engine()

    response = client.get("/readyz")

    assert response.status_code == 503
    assert response.json() == {"status": "not_ready"}


def test_unknown_route_uses_error_envelope(client) -> None:
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "E1002"
