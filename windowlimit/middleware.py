"""WSGI middleware applying per-IP rate limits."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import timedelta
from http import HTTPStatus

from .clientip import InvalidAddressError, get_client_ip
from .limiter import Metrics, ShardedLimiter

__all__ = ["RateLimitMiddleware", "wrap"]


def _error(start_response, status: HTTPStatus, message: str) -> list[bytes]:
    body = (message + "\n").encode("utf-8")
    start_response(
        f"{status.value} {status.phrase}",
        [
            ("Content-Type", "text/plain; charset=utf-8"),
            ("X-Content-Type-Options", "nosniff"),
            ("Content-Length", str(len(body))),
        ],
    )
    return [body]


class RateLimitMiddleware:
    """Reject requests from clients that exceed the configured rate."""

    def __init__(self, app, max_requests: int, window: float | timedelta) -> None:
        self.app = app
        self.limiter = ShardedLimiter(max_requests, window)

    def __call__(self, environ: dict, start_response) -> Iterable[bytes]:
        try:
            client_ip = get_client_ip(
                environ.get("REMOTE_ADDR", ""),
                environ.get("HTTP_X_FORWARDED_FOR"),
            )
        except InvalidAddressError:
            return _error(start_response, HTTPStatus.FORBIDDEN, "Forbidden - Invalid IP")

        if not self.limiter.is_allowed(client_ip):
            return _error(
                start_response, HTTPStatus.TOO_MANY_REQUESTS, "Rate limit exceeded"
            )

        return self.app(environ, start_response)

    def metrics(self) -> Metrics:
        """Return the limiter's current metrics."""
        return self.limiter.get_metrics()

    def close(self) -> None:
        """Stop the limiter's background cleanup."""
        self.limiter.stop()


def wrap(
    app, max_requests: int, window: float | timedelta
) -> tuple[RateLimitMiddleware, Callable[[], Metrics]]:
    """Wrap *app* in rate limiting; return the middleware and a metrics getter."""
    middleware = RateLimitMiddleware(app, max_requests, window)
    return middleware, middleware.metrics