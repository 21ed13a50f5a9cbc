"""Redis token bucket used to throttle public endpoints per client IP."""

from time import time

from fastapi import Request


def client_ip(request: Request) -> str:
    """Best-effort caller IP: first `x-forwarded-for` hop, then `x-real-ip`, then the peer."""

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_ip = forwarded_for.split(",")[0].strip()
        if first_ip:
            return first_ip
    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


class TokenBucketRateLimiter:
    """Token bucket with capacity = refill rate = `limit_per_minute`."""

    def __init__(self, rdb, key_prefix: str, limit_per_minute: int) -> None:
        self.rdb = rdb
        self.key_prefix = key_prefix
        self.limit_per_minute = limit_per_minute

    def allow(self, subject: str) -> bool:
        """Consume one token for `subject`; return False when the bucket is empty."""

        key = f"tokenbucket:{self.key_prefix}:{subject}"
        now = time()
        capacity = float(self.limit_per_minute)
        refill_per_sec = capacity / 60.0

        values = self.rdb.hmget(key, "tokens", "updated_at")
        tokens = float(values[0]) if values[0] is not None else capacity
        updated_at = float(values[1]) if values[1] is not None else now
        elapsed = max(0.0, now - updated_at)
        tokens = min(capacity, tokens + elapsed * refill_per_sec)

        allowed = tokens >= 1.0
        if allowed:
            tokens -= 1.0
        self.rdb.hset(key, mapping={"tokens": tokens, "updated_at": now})
        self.rdb.expire(key, 120)
        return allowed
