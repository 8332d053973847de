"""Business logic services."""

from saasboard.services.chat_service import (
    SSE_HEADERS,
    ChatService,
    RelayContext,
    format_event,
    make_title,
)
from saasboard.services.dashboard_service import (
    days_for_range,
    generate_chart_data,
    generate_charts,
    generate_metrics,
)
from saasboard.services.guard import ConversationGuard

__all__ = [
    "SSE_HEADERS",
    "ChatService",
    "ConversationGuard",
    "RelayContext",
    "days_for_range",
    "format_event",
    "generate_chart_data",
    "generate_charts",
    "generate_metrics",
    "make_title",
]
