import logging
import threading
import time
from collections import OrderedDict

from fastapi import Request
from fastapi.responses import JSONResponse

from .errors import RateLimited, error_body

logger = logging.getLogger(__name__)


class TokenBucket:
    def __init__(self, rate: float, burst: int, now: float):
        self.rate = rate
        self.capacity = burst
        self.tokens = float(burst)
        self.updated = now

    def allow(self, now: float) -> bool:
        self.tokens = min(self.capacity, self.tokens + (now - self.updated) * self.rate)
        self.updated = now
        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False


class RateLimiter:
    """
    Per-client token buckets in a bounded table.

    Buckets idle for longer than `idle_seconds` are swept, and the least
    recently used bucket is evicted once `max_clients` is reached.
    """

    def __init__(self, rate: float, burst: int, max_clients: int = 10000, idle_seconds: float = 600, clock=time.monotonic):
        self.rate = rate
        self.burst = burst
        self.max_clients = max_clients
        self.idle_seconds = idle_seconds
        self.clock = clock
        self._buckets: "OrderedDict[str, TokenBucket]" = OrderedDict()
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self):
        return len(self._buckets)

    def allow(self, client: str) -> bool:
        with self._lock:
            now = self.clock()
            if now - self._last_sweep >= self.idle_seconds:
                self._sweep(now)

            bucket = self._buckets.get(client)
            if bucket is None:
                bucket = TokenBucket(self.rate, self.burst, now)
                self._buckets[client] = bucket
                while len(self._buckets) > self.max_clients:
                    self._buckets.popitem(last=False)
            else:
                self._buckets.move_to_end(client)
            return bucket.allow(now)

    def _sweep(self, now: float) -> None:
        stale = [key for key, b in self._buckets.items() if now - b.updated > self.idle_seconds]
        for key in stale:
            del self._buckets[key]
        self._last_sweep = now
        if stale:
            logger.debug("Evicted %d idle rate-limit buckets", len(stale))

    async def middleware(self, request: Request, call_next):
        client = request.client.host if request.client else "unknown"
        if not self.allow(client):
            logger.warning("Too many requests from %s", client)
            return JSONResponse(status_code=RateLimited.status_code, content=error_body(RateLimited.default_message))
        return await call_next(request)
