"""agroSage API layer: routes, schemas, auth, WebSocket, and middleware."""

from src.api.auth import get_current_user_id, issue_token, verify_token
from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    ErrorResponse,
    GardenProfileRequest,
    HealthResponse,
    HistoryPageResponse,
    RunAcceptedResponse,
    RunStatusResponse,
)
from src.api.websocket import websocket_notifications

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "get_current_user_id",
    "issue_token",
    "verify_token",
    "router",
    "websocket_notifications",
    "ErrorResponse",
    "GardenProfileRequest",
    "HealthResponse",
    "HistoryPageResponse",
    "RunAcceptedResponse",
    "RunStatusResponse",
]
