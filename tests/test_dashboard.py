"""Tests for mock dashboard metrics."""

from __future__ import annotations

import random
from datetime import date, timedelta

import pytest

from conftest import auth_headers
from saasboard.core import ErrorCode
from saasboard.services import days_for_range, generate_chart_data, generate_charts, generate_metrics


@pytest.mark.parametrize(
    ("range_param", "days"),
    [("7d", 7), ("30d", 30), ("90d", 90), ("1y", 365), (None, 7), ("", 7), ("2w", 7)],
)
def test_days_for_range(range_param, days) -> None:
    assert days_for_range(range_param) == days


def test_metrics_within_expected_ranges() -> None:
    rng = random.Random(1)
    for _ in range(200):
        metrics = generate_metrics(rng)
        assert 1250 <= metrics["totalUsers"] < 1350
        assert 45678.50 <= metrics["revenue"] < 55678.50
        assert 12.5 <= metrics["growth"] < 22.5
        assert 890 <= metrics["activeUsers"] < 940


def test_chart_data_dates_end_today() -> None:
    today = date(2024, 3, 10)
    points = generate_chart_data(7, 50, 200, rng=random.Random(3), today=today)

    assert [p["date"] for p in points] == [
        (today - timedelta(days=6 - i)).isoformat() for i in range(7)
    ]


def test_chart_data_is_clamped_and_trends_upward() -> None:
    points = generate_chart_data(365, 60, 100, rng=random.Random(7), today=date(2024, 1, 1))
    values = [p["value"] for p in points]

    assert all(60 <= v <= 100 for v in values)
    assert sum(values[-30:]) / 30 > sum(values[:30]) / 30


def test_chart_data_without_noise_follows_trend() -> None:
    class Midpoint(random.Random):
        def random(self) -> float:
            return 0.5

    points = generate_chart_data(4, 0, 100, rng=Midpoint(), today=date(2024, 1, 1))
    assert [p["value"] for p in points] == [50.0, 62.5, 75.0, 87.5]


def test_same_seed_same_charts() -> None:
    today = date(2024, 5, 5)
    assert generate_charts("30d", random.Random(9), today) == generate_charts(
        "30d", random.Random(9), today
    )


def test_metrics_endpoint(client, register) -> None:
    token = register()["token"]

    response = client.get("/api/dashboard/metrics", headers=auth_headers(token))

    assert response.status_code == 200
    assert set(response.json()) == {"totalUsers", "revenue", "growth", "activeUsers"}


@pytest.mark.parametrize(("range_param", "days"), [(None, 7), ("30d", 30), ("1y", 365)])
def test_charts_endpoint(client, register, range_param, days) -> None:
    token = register()["token"]
    params = {"range": range_param} if range_param else {}

    response = client.get("/api/dashboard/charts", params=params, headers=auth_headers(token))

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"revenue", "users", "engagement"}
    assert all(len(series) == days for series in body.values())
    assert all(1000 <= p["value"] <= 5000 for p in body["revenue"])
    assert all(50 <= p["value"] <= 200 for p in body["users"])


def test_dashboard_uses_injected_random_source(app, client, register) -> None:
    token = register()["token"]
    app.state.dashboard_rng = random.Random(42)
    first = client.get("/api/dashboard/metrics", headers=auth_headers(token)).json()
    app.state.dashboard_rng = random.Random(42)
    second = client.get("/api/dashboard/metrics", headers=auth_headers(token)).json()

    assert first == second


def test_dashboard_requires_auth(client) -> None:
    for path in ("/api/dashboard/metrics", "/api/dashboard/charts"):
        response = client.get(path)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == ErrorCode.MISSING_CREDENTIAL.value
