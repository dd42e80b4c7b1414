"""eventkb API layer -- routes, schemas, auth, and middleware."""

from src.api.auth import create_caller_token, verify_caller_token
from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    validation_error_handler,
)
from src.api.routes import router
from src.api.schemas import ErrorResponse, HealthResponse

__all__ = [
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "RequestLoggingMiddleware",
    "configure_cors",
    "create_caller_token",
    "router",
    "validation_error_handler",
    "verify_caller_token",
]
