"""Mock dashboard metrics.

The numbers are generated, not measured; they give the dashboard UI
realistic-looking data to render.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Any

from saasboard.core.time import utcnow

_random = random.Random()

DEFAULT_RANGE_DAYS = 7
RANGE_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}

# (min, max) bounds of each chart series
REVENUE_BOUNDS = (1000.0, 5000.0)
USERS_BOUNDS = (50.0, 200.0)
ENGAGEMENT_BOUNDS = (60.0, 100.0)


def days_for_range(range_param: str | None) -> int:
    """Map a ``range`` query value to a number of days (7 when unknown)."""
    return RANGE_DAYS.get(range_param or "", DEFAULT_RANGE_DAYS)


def generate_metrics(rng: random.Random | None = None) -> dict[str, Any]:
    rng = rng or _random
    return {
        "totalUsers": 1250 + rng.randrange(100),
        "revenue": 45678.50 + float(rng.randrange(10000)),
        "growth": 12.5 + float(rng.randrange(10)),
        "activeUsers": 890 + rng.randrange(50),
    }


def generate_chart_data(
    days: int,
    min_value: float,
    max_value: float,
    rng: random.Random | None = None,
    today: date | None = None,
) -> list[dict[str, Any]]:
    """
    Build one point per day for the last ``days`` days, ending today.

    Values start around the midpoint of the range, move by up to 15% of the
    range either way, drift upward over the period, and are clamped to
    ``[min_value, max_value]``.
    """
    rng = rng or _random
    today = today or utcnow().date()
    spread = max_value - min_value
    base_value = min_value + spread / 2

    points = []
    for i in range(days):
        day = today - timedelta(days=days - i - 1)
        variation = (rng.random() - 0.5) * spread * 0.3
        trend = i * spread / days * 0.5
        value = min(max(base_value + variation + trend, min_value), max_value)
        points.append({"date": day.isoformat(), "value": value})
    return points


def generate_charts(
    range_param: str | None,
    rng: random.Random | None = None,
    today: date | None = None,
) -> dict[str, list[dict[str, Any]]]:
    days = days_for_range(range_param)
    return {
        "revenue": generate_chart_data(days, *REVENUE_BOUNDS, rng=rng, today=today),
        "users": generate_chart_data(days, *USERS_BOUNDS, rng=rng, today=today),
        "engagement": generate_chart_data(days, *ENGAGEMENT_BOUNDS, rng=rng, today=today),
    }
