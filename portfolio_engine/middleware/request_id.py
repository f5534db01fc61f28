# portfolio_engine/middleware/request_id.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
actor_id_ctx: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)

MAX_ID_LEN = 64


def get_request_id() -> Optional[str]:
    return request_id_ctx.get()


def get_actor_id() -> Optional[str]:
    return actor_id_ctx.get()


def _clean(v: Optional[str]) -> Optional[str]:
    v = (v or "").strip()
    return v[:MAX_ID_LEN] or None


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Binds the request id and the caller's X-Actor-Id to the log context for
    the lifetime of one request, and echoes the request id back.

    An incoming X-Request-ID is reused so a caller can correlate report
    generation requests with the worker log lines that follow them.
    """

    header_out = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = _clean(request.headers.get("X-Request-ID")) or uuid.uuid4().hex
        actor = _clean(request.headers.get("X-Actor-Id"))

        request.state.request_id = rid
        rid_token = request_id_ctx.set(rid)
        actor_token = actor_id_ctx.set(actor)
        try:
            resp = await call_next(request)
            resp.headers[self.header_out] = rid
            return resp
        finally:
            actor_id_ctx.reset(actor_token)
            request_id_ctx.reset(rid_token)
