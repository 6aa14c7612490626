from __future__ import annotations

import math
import time
from functools import lru_cache

from fastapi import Request
from limits import RateLimitItem, parse
from limits.storage import Storage, storage_from_string
from limits.strategies import FixedWindowRateLimiter

from core.errors import too_many_requests
from core.settings import get_settings


@lru_cache(maxsize=1)
def _storage() -> Storage:
    return storage_from_string(get_settings().rate_limit_storage_uri)


@lru_cache(maxsize=1)
def get_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(_storage())


@lru_cache(maxsize=1)
def initiate_rate_limit() -> RateLimitItem:
    return parse(get_settings().initiate_rate_limit)


def client_key(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def check_rate_limit(
    limiter: FixedWindowRateLimiter,
    rule: RateLimitItem,
    *identifiers: str,
) -> None:
    if limiter.hit(rule, *identifiers):
        return
    reset_time, _ = limiter.get_window_stats(rule, *identifiers)
    raise too_many_requests(max(math.ceil(reset_time - time.time()), 1))


async def rate_limit_initiate(request: Request) -> None:
    check_rate_limit(get_limiter(), initiate_rate_limit(), "payments:initiate", client_key(request))
