"""ASGI middleware applied to every request, outermost first:
recovery, metrics, CORS, rate limiting, authentication.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Iterable, Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ...core.metrics import Metrics
from ...domain.errors import RecordNotFoundError
from ...domain.models import ANONYMOUS_USER, User
from ...services.rate_limiter import RateLimiter
from ...services.token_service import token_plaintext_is_valid
from ...services.user_service import UserService
from .errors import (
    INVALID_AUTHENTICATION_TOKEN_MESSAGE,
    RATE_LIMIT_EXCEEDED_MESSAGE,
    SERVER_ERROR_MESSAGE,
    error_response,
)

logger = logging.getLogger(__name__)


def client_ip(scope: Scope) -> str:
    """
    Best-effort client address.

    ``X-Forwarded-For`` (first entry) and ``X-Real-IP`` are trusted as-is, so
    the server must sit behind a proxy that overwrites them. Otherwise any
    client can pick its own rate-limit bucket.
    """
    headers = Headers(scope=scope)
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    client = scope.get("client")
    if client:
        return client[0]
    return "unknown"


class RecoverPanicMiddleware:
    """Turns any unhandled exception into a 500 and closes the connection.

    Also tags each request with an id, exposed as ``request.state.request_id``
    and the ``X-Request-ID`` response header.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id
        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                MutableHeaders(scope=message)["X-Request-ID"] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception(
                "Unhandled error processing %s %s (request_id=%s)",
                scope.get("method"),
                scope.get("path"),
                request_id,
            )
            if response_started:
                raise
            response = error_response(
                500,
                SERVER_ERROR_MESSAGE,
                headers={"Connection": "close", "X-Request-ID": request_id},
            )
            await response(scope, receive, send)


class MetricsMiddleware:
    def __init__(self, app: ASGIApp, metrics: Metrics) -> None:
        self.app = app
        self.metrics = metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        status_code = 500
        self.metrics.request_received()

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_us = int((time.perf_counter() - started) * 1_000_000)
            self.metrics.response_sent(status_code, duration_us)
            user: Optional[User] = scope.get("state", {}).get("user")
            logger.info(
                "request completed method=%s path=%s status=%s duration_us=%s authenticated=%s",
                scope.get("method"),
                scope.get("path"),
                status_code,
                duration_us,
                user is not None and not user.is_anonymous,
            )


class CORSMiddleware:
    """Answers CORS requests from trusted origins.

    ``Vary`` always names ``Origin`` and ``Access-Control-Request-Method``.
    Requests from other origins, preflights included, carry no CORS headers
    and continue down the chain like any other request.
    """

    allow_methods = "OPTIONS, PUT, PATCH, DELETE"
    allow_headers = "Authorization, Content-Type"

    def __init__(self, app: ASGIApp, trusted_origins: Iterable[str] = ()) -> None:
        self.app = app
        self.trusted_origins = frozenset(trusted_origins)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        origin = headers.get("origin", "")
        trusted = bool(origin) and origin in self.trusted_origins

        if trusted and scope["method"] == "OPTIONS" and headers.get("access-control-request-method"):
            response = Response(status_code=200)
            self._decorate(response.headers, origin)
            response.headers["Access-Control-Allow-Methods"] = self.allow_methods
            response.headers["Access-Control-Allow-Headers"] = self.allow_headers
            await response(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                self._decorate(MutableHeaders(scope=message), origin if trusted else None)
            await send(message)

        await self.app(scope, receive, send_wrapper)

    @staticmethod
    def _decorate(headers: MutableHeaders, origin: Optional[str]) -> None:
        headers.add_vary_header("Origin")
        headers.add_vary_header("Access-Control-Request-Method")
        if origin:
            headers["Access-Control-Allow-Origin"] = origin


class RateLimitMiddleware:
    """Per-IP token bucket. Disabled limiters pass requests through untouched."""

    def __init__(self, app: ASGIApp, limiter: RateLimiter) -> None:
        self.app = app
        self.limiter = limiter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.limiter.enabled:
            await self.app(scope, receive, send)
            return

        ip = client_ip(scope)
        decision = self.limiter.allow(ip)
        rate_headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Reset": str(decision.reset),
        }

        if not decision.allowed:
            logger.info(
                "Rate limit exceeded ip=%s rps=%s burst=%s",
                ip,
                self.limiter.rps,
                self.limiter.burst,
            )
            response = error_response(429, RATE_LIMIT_EXCEEDED_MESSAGE, headers=rate_headers)
            await response(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in rate_headers.items():
                    headers[key] = value
            await send(message)

        await self.app(scope, receive, send_wrapper)


class AuthenticateMiddleware:
    """Resolves the bearer token, if any, to ``request.state.user``.

    Requests without an ``Authorization`` header carry the anonymous user.
    A header that is malformed or names an unknown, expired or wrong-scope
    token is rejected with 401 before any handler runs.
    """

    def __init__(self, app: ASGIApp, user_service: UserService) -> None:
        self.app = app
        self.user_service = user_service

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message).add_vary_header("Authorization")
            await send(message)

        state = scope.setdefault("state", {})
        authorization = Headers(scope=scope).get("authorization", "")
        if not authorization:
            state["user"] = ANONYMOUS_USER
            await self.app(scope, receive, send_wrapper)
            return

        user = await self._resolve(authorization)
        if user is None:
            response = error_response(
                401,
                INVALID_AUTHENTICATION_TOKEN_MESSAGE,
                headers={"WWW-Authenticate": "Bearer"},
            )
            await response(scope, receive, send_wrapper)
            return

        state["user"] = user
        await self.app(scope, receive, send_wrapper)

    async def _resolve(self, authorization: str) -> Optional[User]:
        parts = authorization.split(" ")
        if len(parts) != 2 or parts[0] != "Bearer":
            return None
        token = parts[1]
        if not token_plaintext_is_valid(token):
            return None
        try:
            return await run_in_threadpool(self.user_service.get_user_for_authentication_token, token)
        except RecordNotFoundError:
            return None
