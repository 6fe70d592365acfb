# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""In-memory rate limiting for auth and access-code endpoints (brute-force protection)."""

import time
from collections import defaultdict

from fastapi import HTTPException, Request

from uraba_server.config import settings

# (client_key, endpoint) -> list of request timestamps in window
_buckets: defaultdict[tuple[str, str], list[float]] = defaultdict(list)
_last_prune = 0.0
# Window seconds; max requests per window per endpoint
WINDOW = 60
LIMITS: dict[str, int] = {
    "/api/auth/login": 10,
    "/api/auth/register": 5,
    "/api/send-token": 5,
    "/api/verify-token": 10,
    "/api/resend-verification": 5,
}


def _client_key(request: Request) -> str:
    """Peer address, or the first X-Forwarded-For hop when the proxy is trusted."""
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host or "unknown"
    return "unknown"


def _clean_old(bucket: list[float], now: float) -> None:
    cutoff = now - WINDOW
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)


def _prune(now: float) -> None:
    """Drop keys with no requests inside the window."""
    global _last_prune
    if now - _last_prune < WINDOW:
        return
    _last_prune = now
    cutoff = now - WINDOW
    for key in [k for k, bucket in _buckets.items() if not bucket or bucket[-1] < cutoff]:
        del _buckets[key]


def check_rate_limit(request: Request, path: str) -> None:
    """Raise 429 if the client has exceeded the limit for this path."""
    limit = LIMITS.get(path)
    if limit is None:
        return
    now = time.monotonic()
    _prune(now)
    bucket = _buckets[(_client_key(request), path)]
    _clean_old(bucket, now)
    if len(bucket) >= limit:
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please try again later.",
        )
    bucket.append(now)


async def rate_limit_dep(request: Request) -> None:
    """FastAPI dependency: add Depends(rate_limit_dep) to limited routes."""
    check_rate_limit(request, request.url.path.rstrip("/"))


def bucket_count() -> int:
    return len(_buckets)


def reset_rate_limits() -> None:
    global _last_prune
    _buckets.clear()
    _last_prune = 0.0
