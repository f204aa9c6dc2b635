"""HTTP middleware: inbound per-client rate limiting, security headers,
request logging and the catch-all for unexpected exceptions.
"""

import logging
import math
from typing import Callable, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from clicktracker.api.errors import unhandled_error_handler
from clicktracker.domain.interfaces.clock import Clock
from clicktracker.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Content-Security-Policy": "default-src 'self'",
}

MAX_TRACKED_CLIENTS = 10_000


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class InboundRateLimiter:
    """One sliding window per client address."""

    def __init__(self, max_requests: int = 100, time_window: float = 15 * 60,
                 clock: Optional[Clock] = None):
        self.max_requests = max_requests
        self.time_window = time_window
        self.clock = clock
        self._limiters: Dict[str, SlidingWindowRateLimiter] = {}

    def _limiter_for(self, client: str) -> SlidingWindowRateLimiter:
        limiter = self._limiters.get(client)
        if limiter is None:
            if len(self._limiters) >= MAX_TRACKED_CLIENTS:
                self._prune()
            limiter = SlidingWindowRateLimiter(self.max_requests, self.time_window, clock=self.clock)
            self._limiters[client] = limiter
        return limiter

    def _prune(self) -> None:
        """Drops clients whose window has emptied."""
        idle = [client for client, limiter in self._limiters.items()
                if limiter.get_remaining_requests() == limiter.max_requests]
        for client in idle:
            del self._limiters[client]

    def check(self, client: str) -> Optional[float]:
        """Returns None if admitted, otherwise the seconds to wait."""
        limiter = self._limiter_for(client)
        if limiter.can_make_request():
            return None
        return limiter.get_wait_time()

    def remaining(self, client: str) -> int:
        return self._limiter_for(client).get_remaining_requests()


def _format_retry_after(seconds: float) -> str:
    if seconds >= 60:
        return f"{math.ceil(seconds / 60)} minutes"
    return f"{math.ceil(seconds)} seconds"


def inbound_rate_limit_middleware(limiter: InboundRateLimiter) -> Callable:
    async def middleware(request: Request, call_next: Callable) -> Response:
        client = client_address(request)
        wait_time = limiter.check(client)
        if wait_time is not None:
            logger.warning(f"Inbound rate limit hit for {client}")
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests from this IP, please try again later.",
                    "retryAfter": _format_retry_after(limiter.time_window),
                },
                headers={"Retry-After": str(math.ceil(wait_time))},
            )
        response = await call_next(request)
        response.headers["RateLimit-Limit"] = str(limiter.max_requests)
        response.headers["RateLimit-Remaining"] = str(limiter.remaining(client))
        return response

    return middleware


async def security_headers_middleware(request: Request, call_next: Callable) -> Response:
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    if request.url.scheme == "https":
        response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains")
    return response


async def request_logging_middleware(request: Request, call_next: Callable) -> Response:
    logger.info(f"{request.method} {request.url.path} - IP: {client_address(request)}")
    return await call_next(request)


async def unhandled_error_middleware(request: Request, call_next: Callable) -> Response:
    """Turns unexpected exceptions into the generic 500 body inside the middleware stack.

    Responses produced here still pass through the rate limit and security
    header middleware.
    """
    try:
        return await call_next(request)
    except Exception as exc:
        return await unhandled_error_handler(request, exc)
