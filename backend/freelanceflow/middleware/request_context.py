from __future__ import annotations

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.context import request_id_var


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Correlates every request with an id.

    An inbound X-Request-Id is reused (trimmed, capped at 128 chars) and
    otherwise a UUIDv4 is minted. The id lands on request.state, in the
    logging contextvar, and on the response header.
    """

    header_name = "X-Request-Id"
    max_length = 128

    async def dispatch(self, request: Request, call_next):
        inbound = str(request.headers.get("x-request-id") or "").strip()[: self.max_length]
        request_id = inbound or str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers[self.header_name] = request_id
            return response
        finally:
            request_id_var.reset(token)
