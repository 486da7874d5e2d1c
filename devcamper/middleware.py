import time

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware

from devcamper.core import config
from devcamper.core.errors import error_response

SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'SAMEORIGIN',
    'Referrer-Policy': 'no-referrer',
    'X-XSS-Protection': '0',
}
HSTS_HEADER = ('Strict-Transport-Security', 'max-age=15552000; includeSubDomains')


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if config.COOKIE_SECURE:
            response.headers.setdefault(*HSTS_HEADER)
        return response


class FixedWindowRateLimiter:
    """Counts requests per key in fixed windows of ``window_seconds``.

    Expired windows are dropped by a sweep that runs at most once per window.
    """

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds
        self._windows: dict[str, tuple[float, int]] = {}
        self._next_sweep: float | None = None

    def __len__(self) -> int:
        return len(self._windows)

    def sweep(self, now: float) -> None:
        expired = [
            key
            for key, (window_start, _count) in self._windows.items()
            if window_start + self.window_seconds <= now
        ]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.window_seconds

    def hit(self, key: str, now: float | None = None) -> tuple[bool, dict]:
        now = time.time() if now is None else now
        if self._next_sweep is None or now >= self._next_sweep:
            self.sweep(now)

        window_start, count = self._windows.get(key, (now, 0))
        if now - window_start >= self.window_seconds:
            window_start, count = now, 0

        count += 1
        self._windows[key] = (window_start, count)

        headers = {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(max(0, self.limit - count)),
            'X-RateLimit-Reset': str(int(window_start + self.window_seconds)),
        }
        return count <= self.limit, headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limit: int, window_seconds: int):
        super().__init__(app)
        self.limiter = FixedWindowRateLimiter(limit, window_seconds)

    async def dispatch(self, request: Request, call_next):
        identifier = request.client.host if request.client else 'anonymous'
        allowed, headers = self.limiter.hit(identifier)

        if not allowed:
            return error_response(
                status.HTTP_429_TOO_MANY_REQUESTS,
                'Too many requests, please try again later',
                headers=headers,
            )

        response = await call_next(request)
        for header, value in headers.items():
            response.headers[header] = value
        return response
