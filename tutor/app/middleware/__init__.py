"""Middleware package: authentication, admission control and request IDs."""

from tutor.app.middleware.auth import get_bearer_token, require_claims
from tutor.app.middleware.rate_limit import (
    AdmissionController,
    get_admission_controller,
    reset_admission_controller,
)
from tutor.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "get_bearer_token",
    "require_claims",
    "AdmissionController",
    "get_admission_controller",
    "reset_admission_controller",
    "RequestIdMiddleware",
    "get_request_id",
]
