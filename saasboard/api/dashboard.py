"""Dashboard endpoints serving mock metrics."""

import random
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from saasboard.auth import require_subject
from saasboard.core import rate_limit
from saasboard.services import generate_charts, generate_metrics

router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(require_subject), Depends(rate_limit("dashboard"))],
)


def get_dashboard_rng(request: Request) -> random.Random | None:
    return getattr(request.app.state, "dashboard_rng", None)


@router.get("/metrics")
def metrics_route(
    rng: random.Random | None = Depends(get_dashboard_rng),
) -> dict[str, Any]:
    return generate_metrics(rng)


@router.get("/charts")
def charts_route(
    range_param: str | None = Query(None, alias="range"),
    rng: random.Random | None = Depends(get_dashboard_rng),
) -> dict[str, Any]:
    """Chart series for ``7d``, ``30d``, ``90d`` or ``1y`` (default ``7d``)."""
    return generate_charts(range_param, rng=rng)
