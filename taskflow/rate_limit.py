from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock

import redis
from fastapi import HTTPException, Request, status

from taskflow.config import settings

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
  reset_at: float
  count: int


class RateLimiter:
  """
  Fixed-window rate limiter.

  Notes:
  - When REDIS_URL is configured, counters live in Redis (INCR + TTL) so every
    API replica shares the same window.
  - Without Redis, or while Redis is unreachable, falls back to per-process buckets.
  """

  def __init__(self, redis_url: str | None = None) -> None:
    self._lock = Lock()
    self._buckets: dict[str, _Bucket] = {}
    self._redis = None
    if redis_url:
      try:
        self._redis = redis.Redis.from_url(redis_url, decode_responses=True)
      except (redis.RedisError, ValueError):
        logger.warning("rate limiter: invalid REDIS_URL, using in-memory buckets")
        self._redis = None

  def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    """
    if self._redis is not None:
      try:
        rk = f"rl:{key}"
        pipe = self._redis.pipeline()
        pipe.incr(rk, 1)
        pipe.ttl(rk)
        count, ttl = pipe.execute()
        if int(count) == 1:
          self._redis.expire(rk, int(window_seconds))
          ttl = int(window_seconds)
        retry = max(1, int(ttl)) if int(ttl) > 0 else int(window_seconds)
        if int(count) > int(limit):
          return False, retry
        return True, 0
      except redis.RedisError:
        logger.warning("rate limiter: redis unavailable, falling back to in-memory buckets")

    now = time.time()
    with self._lock:
      self._drop_expired(now)
      b = self._buckets.get(key)
      if b is None or now >= b.reset_at:
        self._buckets[key] = _Bucket(reset_at=now + window_seconds, count=1)
        return True, 0
      if b.count >= limit:
        retry = max(1, int(b.reset_at - now))
        return False, retry
      b.count += 1
      return True, 0

  def _drop_expired(self, now: float) -> None:
    for k in [k for k, b in self._buckets.items() if b.reset_at <= now]:
      del self._buckets[k]

  def reset_prefix(self, prefix: str) -> None:
    with self._lock:
      for k in list(self._buckets.keys()):
        if k.startswith(prefix):
          del self._buckets[k]


limiter = RateLimiter(settings.redis_url)


def client_ip(request: Request) -> str:
  forwarded = request.headers.get("x-forwarded-for")
  if forwarded:
    return forwarded.split(",")[0].strip() or "unknown"
  real_ip = request.headers.get("x-real-ip")
  if real_ip:
    return real_ip
  return request.client.host if request.client else "unknown"


def rate_limit_or_429(key: str, *, limit: int, window_seconds: int = 60) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail={"code": "rate_limited", "message": "Too many requests", "retryAfterSeconds": retry_after},
    headers={"Retry-After": str(retry_after)},
  )


def consume(scope: str, *, user_id: str, request: Request, limit: int, window_seconds: int = 60) -> None:
  rate_limit_or_429(f"{scope}:{user_id}:{client_ip(request)}", limit=limit, window_seconds=window_seconds)
