"""Shared utilities for the Flask app: client IP and rate limiting."""

import logging
import os
import time
from collections import defaultdict

from flask import request

from canine.config import RATE_LIMIT_WINDOW

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rate limiter: Redis-backed with in-memory fallback
#
# When REDIS_URL is set, requests are counted in Redis using INCR + EXPIRE
# so counts are shared across all server workers. Without REDIS_URL (or
# when Redis is unreachable) the limiter falls back to an in-process dict
# that resets on deploy.
# ---------------------------------------------------------------------------
_rate_buckets: dict[str, list[float]] = defaultdict(list)

# Cached Redis client: None means "not available, use in-memory"
_redis_client = None
_redis_checked = False


def _get_redis_client():
    """Return a connected Redis client, or None if unavailable.

    The result (including None) is cached after the first attempt so the
    connect cost is paid once per process.
    """
    global _redis_client, _redis_checked
    if _redis_checked:
        return _redis_client

    _redis_checked = True
    redis_url = os.environ.get("REDIS_URL")
    if not redis_url:
        _redis_client = None
        return None

    try:
        import redis as _redis_lib
        client = _redis_lib.from_url(redis_url, socket_connect_timeout=1)
        client.ping()
        _redis_client = client
    except Exception as e:
        logger.warning("Redis unavailable, using in-memory rate limits: %s", e)
        _redis_client = None

    return _redis_client


def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """Return True if the request is allowed, False if the limit is exceeded.

    Args:
        key: Unique key identifying the rate-limit bucket (e.g. ``"rl:chat:1.2.3.4"``).
        limit: Maximum number of requests allowed in *window_seconds*.
        window_seconds: Length of the time window in seconds.
    """
    client = _get_redis_client()
    if client is not None:
        try:
            pipe = client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds)
            count = pipe.execute()[0]
            return count <= limit
        except Exception as e:
            logger.warning("Redis rate limit check failed, falling back: %s", e)

    # In-memory sliding window (per-process)
    now = time.monotonic()
    bucket = [t for t in _rate_buckets[key] if now - t < window_seconds]
    _rate_buckets[key] = bucket
    if len(bucket) >= limit:
        return False
    bucket.append(now)
    return True


def _is_rate_limited(ip: str, max_requests: int, scope: str = "chat") -> bool:
    """Return True if ip has exceeded max_requests in the current window."""
    key = f"rl:{scope}:{ip}"
    return not check_rate_limit(key, max_requests, RATE_LIMIT_WINDOW)


def client_ip() -> str:
    """First address in X-Forwarded-For, else the socket peer."""
    ip = request.headers.get("X-Forwarded-For", request.remote_addr) or ""
    return ip.split(",")[0].strip()
