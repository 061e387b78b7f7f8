"""Rate limiting middleware for the AI Friend API

Every coaching feature costs a Gemini call, so requests are limited per
client IP with sliding minute and hour windows.

Security features:
- IP spoofing protection (X-Forwarded-For only trusted behind the hosting proxy)
- Bounded memory via TTLCache buckets plus periodic idle cleanup
"""

from __future__ import annotations

import ipaddress
import secrets
import time
from collections.abc import Callable, Iterable
from typing import Any

from cachetools import TTLCache
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from aifriend.config import (
    RATE_LIMIT_MAX_IPS,
    RATE_LIMIT_RPH,
    RATE_LIMIT_RPM,
    RATE_LIMIT_TRUSTED_PROXY_HEADER,
)
from aifriend.infrastructure.settings import is_development
from aifriend.observability.telemetry import counter, log_event
from aifriend.utils.redaction import redact

# Liveness probes and the scheduler-driven cron are never limited
EXEMPT_PATHS = frozenset({"/", "/health", "/api/cron"})

MINUTE_WINDOW = 60
HOUR_WINDOW = 3600
MAX_IDLE_SECONDS = 7200


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-IP rate limiting (60 req/min, 1000 req/hour by default).

    Buckets live in process memory; multi-instance deployments each keep
    their own counts.
    """

    def __init__(
        self,
        app: Any,
        requests_per_minute: int = RATE_LIMIT_RPM,
        requests_per_hour: int = RATE_LIMIT_RPH,
        allowed_origins: Iterable[str] = (),
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.allowed_origins = frozenset(allowed_origins)

        # {ip: [timestamp, ...]}; TTLCache evicts IPs that stop sending
        self.minute_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=MINUTE_WINDOW * 2
        )
        self.hour_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=HOUR_WINDOW * 2
        )

        self._trusted_proxy_header = RATE_LIMIT_TRUSTED_PROXY_HEADER

    def _is_valid_ip(self, ip_str: str) -> bool:
        """Reject malformed forwarded addresses so they cannot open fresh buckets."""
        try:
            ipaddress.ip_address(ip_str)
            return True
        except ValueError:
            return False

    def _forwarded_ip(self, request: Request) -> str | None:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
            if self._is_valid_ip(ip):
                return ip
        return None

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP with spoofing protection.

        X-Forwarded-For is trusted only when the hosting proxy's header is
        present, or in development for local proxies. Otherwise the socket
        address is used.
        """
        if self._trusted_proxy_header in request.headers:
            ip = self._forwarded_ip(request)
            if ip:
                return ip

        if is_development():
            ip = self._forwarded_ip(request)
            if ip:
                return ip
            real_ip = request.headers.get("X-Real-IP")
            if real_ip and self._is_valid_ip(real_ip):
                return real_ip

        return request.client.host if request.client else "unknown"

    def _clean_old_requests(self, bucket: list[float], max_age_seconds: int) -> list[float]:
        """Remove requests older than max_age_seconds"""
        now = time.time()
        return [ts for ts in bucket if now - ts < max_age_seconds]

    def _cleanup_old_buckets(self) -> None:
        """Drop IPs idle for more than two hours."""
        now = time.time()
        idle = []
        for ip in list(self.minute_buckets.keys()):
            bucket = self.minute_buckets.get(ip, [])
            if not bucket or now - max(bucket) > MAX_IDLE_SECONDS:
                idle.append(ip)

        for ip in idle:
            self.minute_buckets.pop(ip, None)
            self.hour_buckets.pop(ip, None)

    def _limited(
        self, client_ip: str, window: str, limit: int, count: int, retry_after: int, origin: str
    ) -> JSONResponse:
        log_event(
            "api.rate_limit.request_exceeded",
            ip=redact(client_ip),
            limit=window,
            count=count,
        )
        counter(f"api.rate_limit.{window}")

        # 429s bypass the CORS middleware, so allowed origins get their headers here
        headers = {"Retry-After": str(retry_after)}
        if origin in self.allowed_origins:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Access-Control-Allow-Credentials"] = "true"

        return JSONResponse(
            status_code=429,
            content={
                "error": f"Rate limit exceeded. Maximum {limit} requests per {window}.",
                "retry_after": retry_after,
            },
            headers=headers,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check rate limits before processing request."""
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        # ~1% of requests sweep idle IPs; unpredictable timing via secrets
        if secrets.randbelow(100) == 0:
            self._cleanup_old_buckets()

        client_ip = self._get_client_ip(request)
        origin = request.headers.get("origin", "")
        now = time.time()

        minute_bucket = self._clean_old_requests(
            self.minute_buckets.get(client_ip, []), MINUTE_WINDOW
        )
        hour_bucket = self._clean_old_requests(self.hour_buckets.get(client_ip, []), HOUR_WINDOW)

        minute_requests = len(minute_bucket)
        if minute_requests >= self.requests_per_minute:
            self.minute_buckets[client_ip] = minute_bucket
            return self._limited(
                client_ip,
                "minute",
                self.requests_per_minute,
                minute_requests,
                MINUTE_WINDOW,
                origin,
            )

        hour_requests = len(hour_bucket)
        if hour_requests >= self.requests_per_hour:
            self.hour_buckets[client_ip] = hour_bucket
            return self._limited(
                client_ip, "hour", self.requests_per_hour, hour_requests, HOUR_WINDOW, origin
            )

        minute_bucket.append(now)
        hour_bucket.append(now)
        self.minute_buckets[client_ip] = minute_bucket
        self.hour_buckets[client_ip] = hour_bucket

        response = await call_next(request)

        response.headers["X-RateLimit-Limit-Minute"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining-Minute"] = str(
            self.requests_per_minute - minute_requests - 1
        )
        response.headers["X-RateLimit-Limit-Hour"] = str(self.requests_per_hour)
        response.headers["X-RateLimit-Remaining-Hour"] = str(
            self.requests_per_hour - hour_requests - 1
        )

        return response
