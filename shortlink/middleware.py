"""HTTP middleware: request logging and request timeouts.

Logging middleware logs method, path, status, duration and client IP for
every request, tags it with a request id and exposes timing headers.

Timeout middleware bounds the time a handler may run. When the bound is hit
the handler task is cancelled, which propagates into any store or cache call
in flight (including a creation retry loop), and the client gets a 504.
"""

import asyncio
import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

__all__ = ["LoggingMiddleware", "TimeoutMiddleware", "add_middleware"]

logger = logging.getLogger("shortlink")


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        client_ip = self._get_client_ip(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        # Format: METHOD PATH STATUS_CODE PROCESS_TIME_MS CLIENT_IP
        logger.info(
            f"{request.method} {request.url.path} "
            f"{response.status_code} {process_time * 1000:.2f}ms "
            f"IP:{client_ip}",
            extra={"request_id": request_id},
        )

        response.headers["X-Process-Time"] = f"{process_time:.6f}"
        response.headers["X-Request-ID"] = request_id
        return response

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # X-Forwarded-For can contain multiple IPs, take the first one
            return forwarded_for.split(",")[0].strip()
        return request.client.host if request.client else "unknown"


class TimeoutMiddleware:
    """Cancel the downstream app after ``timeout_seconds`` and answer 504."""

    def __init__(self, app: ASGIApp, timeout_seconds: float):
        assert timeout_seconds > 0, f"timeout_seconds must be positive, got {timeout_seconds!r}"
        self.app = app
        self.timeout_seconds = timeout_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(self.app(scope, receive, send_wrapper), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Request timed out after {self.timeout_seconds}s: {scope['method']} {scope['path']}")
            if response_started:
                return
            response = JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                content={"detail": "Request timed out"},
            )
            await response(scope, receive, send)


def add_middleware(app: FastAPI, timeout_seconds: float) -> None:
    # Starlette runs the last added middleware first: logging wraps timeout.
    app.add_middleware(TimeoutMiddleware, timeout_seconds=timeout_seconds)
    app.add_middleware(LoggingMiddleware)
