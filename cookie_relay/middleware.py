"""
HTTP hardening for the relay app.

- SECURITY_HEADERS: baseline response headers set on every response
- BodySizeLimitMiddleware: rejects request bodies over MAX_BODY_BYTES with 413
"""

import logging

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

PAYLOAD_TOO_LARGE_MESSAGE = 'Request body too large'

SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'SAMEORIGIN',
    'X-DNS-Prefetch-Control': 'off',
    'X-Download-Options': 'noopen',
    'X-Permitted-Cross-Domain-Policies': 'none',
    'Referrer-Policy': 'no-referrer',
    'Strict-Transport-Security': 'max-age=15552000; includeSubDomains',
    'Cross-Origin-Opener-Policy': 'same-origin',
    'Content-Security-Policy': "default-src 'self'; frame-ancestors 'self'; object-src 'none'",
}


class BodySizeLimitMiddleware:
    """Cap request bodies at ``max_body_bytes``; 0 or less disables the cap.

    A declared Content-Length over the cap is answered before the app runs.
    Bodies without one are counted as they stream in; going over raises a
    413 HTTPException from the route's body read.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.max_body_bytes <= 0:
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_body_bytes:
            logger.warning(f"Rejected {scope.get('path')}: Content-Length {declared} over {self.max_body_bytes} bytes")
            response = JSONResponse(
                status_code=413,
                content={"success": False, "message": PAYLOAD_TOO_LARGE_MESSAGE, "data": None, "error": None},
            )
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    logger.warning(f"Rejected {scope.get('path')}: streamed body over {self.max_body_bytes} bytes")
                    raise HTTPException(status_code=413, detail=PAYLOAD_TOO_LARGE_MESSAGE)
            return message

        await self.app(scope, limited_receive, send)
