# dbforge/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class DBForgeError(Exception):
    """Base error rendered to callers as ``{"error", "message", ...}``."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error, "message": self.message}
        if self.hint:
            body["hint"] = self.hint
        body.update(self.details)
        return body


class ConfigurationError(DBForgeError):
    status_code = 500
    error = "Configuration error"

    def __init__(self, message: str, *, missing: Optional[List[str]] = None):
        super().__init__(message, details={"missing": list(missing or [])})
        self.missing = list(missing or [])


class ValidationError(DBForgeError):
    status_code = 400
    error = "Invalid request"


class NotFoundError(DBForgeError):
    status_code = 404
    error = "Not found"


class ConflictError(DBForgeError):
    status_code = 409
    error = "Conflict"


class ForbiddenError(DBForgeError):
    status_code = 403
    error = "Forbidden"


# upstream statuses that keep their meaning locally; everything else is a bad gateway
_PASSTHROUGH_STATUSES = {400, 401, 403, 404, 409, 429}


class UpstreamError(DBForgeError):
    error = "Upstream request failed"

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        code: Optional[str] = None,
        service: str = "notion",
    ):
        status = upstream_status if upstream_status in _PASSTHROUGH_STATUSES else 502
        details: Dict[str, Any] = {"service": service}
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        if code:
            details["code"] = code
        super().__init__(message, details=details, status_code=status)
        self.upstream_status = upstream_status
        self.code = code
        self.service = service


class RetrievalError(UpstreamError):
    error = "Metadata retrieval failed"


class NoAvailableModelError(UpstreamError):
    error = "No available model"

    def __init__(self, message: str, *, tried: Optional[List[str]] = None):
        super().__init__(message, service="llm")
        self.status_code = 503
        self.details["tried"] = list(tried or [])
