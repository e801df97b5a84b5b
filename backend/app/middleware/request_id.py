"""
TourDesk Backend: Request ID Middleware
==========================================

What:  Assigns a correlation ID to each request and echoes it in the response.
Why:   One tour update fans out into several concurrent image writes and
       deletions; the ID ties all of their log lines back to one request.
How:   Reads X-Request-ID from the client or generates a short one, stores it in
       a ContextVar (visible to every task spawned by the request) and in
       request.state, and sets it on the response.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local; asyncio.gather children inherit a copy of the context
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Use the client's X-Request-ID header if present
        2. Otherwise generate an 8-character ID (enough for log correlation)
        3. Store it in the ContextVar and request.state
        4. Add it to the response headers
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
