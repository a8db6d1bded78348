# FILE: messboard/middleware/body_limit.py
"""
Request body size limit

Declared bodies are rejected from the Content-Length header alone. Bodies
sent without one (chunked) are buffered up to the limit, then replayed to
the app.
"""
import logging
from typing import List

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

LIMITED_METHODS = ("POST", "PUT", "PATCH")


class BodySizeLimitMiddleware:
    """Answer 413 for POST/PUT/PATCH bodies larger than max_size bytes"""

    def __init__(self, app: ASGIApp, max_size: int) -> None:
        self.app = app
        self.max_size = max_size

    async def _reject(self, scope: Scope, receive: Receive, send: Send, size) -> None:
        logger.warning(f"Request body too large: {size} > {self.max_size} ({scope.get('path', '')})")
        response = JSONResponse(status_code=413, content={"error": "Request body too large"})
        await response(scope, receive, send)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in LIMITED_METHODS:
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            if content_length.isdigit() and int(content_length) > self.max_size:
                await self._reject(scope, receive, send, content_length)
                return
            await self.app(scope, receive, send)
            return

        chunks: List[bytes] = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                # Client went away before finishing the body
                return
            body = message.get("body", b"")
            size += len(body)
            if size > self.max_size:
                await self._reject(scope, receive, send, f">{size}")
                return
            chunks.append(body)
            more_body = message.get("more_body", False)

        buffered = b"".join(chunks)
        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": buffered, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)
