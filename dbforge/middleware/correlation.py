# dbforge/middleware/correlation.py
from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Propagate (or mint) request/correlation ids and echo them on the response."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        cid = request.headers.get(CORRELATION_ID_HEADER) or rid
        rid_token = request_id_var.set(rid)
        cid_token = correlation_id_var.set(cid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(rid_token)
            correlation_id_var.reset(cid_token)
        response.headers[REQUEST_ID_HEADER] = rid
        response.headers[CORRELATION_ID_HEADER] = cid
        return response


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.correlation_id = correlation_id_var.get() or "-"
        return True


def corr_headers(extra: Optional[dict] = None) -> dict:
    """
    Standard outbound headers:
      - x-request-id / x-correlation-id (propagated or fresh)
      - plus any extras
    """
    rid = request_id_var.get()
    cid = correlation_id_var.get()
    if not rid:
        rid = str(uuid.uuid4())
    if not cid:
        cid = rid
    base = {REQUEST_ID_HEADER: rid, CORRELATION_ID_HEADER: cid}
    if extra:
        base.update(extra)
    return base
