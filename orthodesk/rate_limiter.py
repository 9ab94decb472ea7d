"""
Hybrid in-memory + Redis rate limiting

Counts live in process memory and are written through to Redis every few
seconds, so a burst of availability checks costs one Redis round trip
instead of one per request. Redis also seeds the counter when a worker
first sees a key, which keeps limits roughly shared across workers.
"""

import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from .config import (
    RATE_LIMIT_ENABLED,
    REDIS_DB,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_SSL,
    REDIS_URL,
)

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None

# {key: {"count": int, "reset_time": int, "last_redis_sync": int}}
memory_counters: dict[str, dict] = {}
counters_lock = Lock()

REDIS_SYNC_INTERVAL = 10  # seconds
CLEANUP_INTERVAL = 60  # seconds
last_cleanup_time = 0

_CONNECTION_OPTIONS = {
    "decode_responses": True,
    "socket_connect_timeout": 5,
    "socket_timeout": 5,
    "retry_on_timeout": True,
    "health_check_interval": 30,
    "max_connections": 20,
}


def _mask_url(url: str) -> str:
    if "@" not in url:
        return "****"
    scheme = url.split(":", 1)[0]
    return f"{scheme}:****@{url.split('@', 1)[1]}"


def get_redis_client() -> redis.Redis:
    """Get or create the shared Redis client, from REDIS_URL or host settings"""
    global redis_client

    if redis_client is not None:
        return redis_client

    logger.info("🔄 Initializing Redis connection for rate limiting...")
    try:
        if REDIS_URL:
            logger.info(f"📡 Using Redis URL connection: {_mask_url(REDIS_URL)}")
            client = redis.from_url(REDIS_URL, **_CONNECTION_OPTIONS)
        else:
            logger.info(
                f"📡 Using Redis at {REDIS_HOST}:{REDIS_PORT} db={REDIS_DB} "
                f"ssl={'on' if REDIS_SSL else 'off'}"
            )
            client = redis.Redis(
                host=REDIS_HOST,
                port=REDIS_PORT,
                password=REDIS_PASSWORD,
                db=REDIS_DB,
                ssl=REDIS_SSL,
                **_CONNECTION_OPTIONS,
            )
        client.ping()
    except Exception as e:
        logger.error(f"❌ Failed to connect to Redis: {str(e)}")
        raise

    logger.info("✅ Redis connected")
    redis_client = client
    return redis_client


def cleanup_expired_counters():
    """Drop counters whose window has passed"""
    global last_cleanup_time
    now = int(time.time())

    if now - last_cleanup_time < CLEANUP_INTERVAL:
        return

    with counters_lock:
        expired = [k for k, v in memory_counters.items() if now >= v.get("reset_time", 0)]
        for k in expired:
            del memory_counters[k]

    if expired:
        logger.debug(f"🧹 Cleaned up {len(expired)} expired rate limit counters")
    last_cleanup_time = now


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: redis.Redis
) -> tuple[bool, int, int]:
    """
    Count one request against a fixed window.

    Returns:
        Tuple of (is_allowed, current_count, seconds_until_reset)
    """
    try:
        now = int(time.time())
        cleanup_expired_counters()

        with counters_lock:
            entry = memory_counters.get(key)
            if entry is None:
                entry = {"count": 0, "reset_time": now + window_seconds, "last_redis_sync": now}
                try:
                    stored = client.get(key)
                    ttl = client.ttl(key)
                    if stored and ttl > 0:
                        entry["count"] = int(stored)
                        entry["reset_time"] = now + ttl
                except Exception as e:
                    logger.warning(f"⚠️ Failed to load {key} from Redis, counting in memory: {e}")
                memory_counters[key] = entry

            if now >= entry["reset_time"]:
                entry["count"] = 0
                entry["reset_time"] = now + window_seconds
                entry["last_redis_sync"] = 0

            is_allowed = entry["count"] < limit
            if is_allowed:
                entry["count"] += 1

            if now - entry.get("last_redis_sync", 0) >= REDIS_SYNC_INTERVAL:
                try:
                    client.set(key, entry["count"], ex=max(1, entry["reset_time"] - now))
                    entry["last_redis_sync"] = now
                except Exception as e:
                    logger.warning(f"⚠️ Failed to sync {key} to Redis: {e}")

            return is_allowed, entry["count"], max(0, entry["reset_time"] - now)

    except Exception as e:
        logger.error(f"❌ Rate limit check failed: {str(e)}")
        logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
        return False, limit, 0


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
    use_ip: bool = True,
):
    """
    Enforce a limit for the current request.

    Raises 429 with Retry-After when the limit is exceeded, and 503 when
    the limiter itself cannot run.
    """
    if not RATE_LIMIT_ENABLED:
        return

    try:
        client = get_redis_client()
        key = f"{key_prefix}:{_client_ip(request) if use_ip else 'global'}"

        is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds, client)

        if not is_allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit}")
            raise HTTPException(
                status_code=429,
                detail={
                    "code": "RATE_LIMITED",
                    "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                    "details": {"retryAfter": ttl, "limit": limit, "windowSeconds": window_seconds},
                },
                headers={"Retry-After": str(ttl)},
            )

        request.state.rate_limit_remaining = limit - current_count
        request.state.rate_limit_limit = limit
        request.state.rate_limit_reset = int(time.time()) + ttl

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Rate limiting error: {str(e)}")
        logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "code": "RATE_LIMITER_UNAVAILABLE",
                "message": "Rate limiting service temporarily unavailable",
            },
        ) from e


def create_rate_limiter(
    limit: int, window_seconds: int, key_prefix: str = "rate_limit", use_ip: bool = True
):
    """
    Build a rate limiting dependency.

    Example:
        availability_rate_limit = create_rate_limiter(120, 60, key_prefix="availability")

        @router.post("/availability")
        async def check(data: AvailabilityRequest, _: None = Depends(availability_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix, use_ip)

    return rate_limiter
