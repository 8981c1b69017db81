"""
Pure ASGI request-id middleware.

Reads ``X-Request-ID`` from the incoming request (or generates one), binds it
to the logging context for the lifetime of the request and echoes it back
on the response.
"""

import logging
import time

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.request_context import reset_request_id, set_request_id
from ..core.ulid_helper import generate_ulid

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddlewareASGI:
    """Bind a request id to every log line emitted while serving a request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = Headers(scope=scope).get(REQUEST_ID_HEADER)
        request_id = incoming.strip()[:64] if incoming and incoming.strip() else generate_ulid()
        token = set_request_id(request_id)
        start_time = time.time()

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers[REQUEST_ID_HEADER] = request_id
                process_time = (time.time() - start_time) * 1000
                if process_time > 500:
                    logger.warning(
                        f"Slow request: {scope.get('method', '')} {scope.get('path', '')} "
                        f"took {process_time:.2f}ms"
                    )
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            reset_request_id(token)
