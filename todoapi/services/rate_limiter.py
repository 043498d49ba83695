"""Per-client token-bucket rate limiting."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class TokenBucket:
    """Bucket holding up to ``burst`` tokens, refilled at ``rate`` tokens per second.

    Starts full. Time is passed in explicitly so the bucket stays deterministic.
    """

    def __init__(self, rate: float, burst: int, now: float) -> None:
        self.rate = rate
        self.burst = burst
        self._tokens = float(burst)
        self._last = now

    def _advance(self, now: float) -> None:
        if now > self._last:
            self._tokens = min(float(self.burst), self._tokens + (now - self._last) * self.rate)
            self._last = now

    def allow(self, now: float) -> bool:
        self._advance(now)
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False

    def tokens(self, now: float) -> float:
        self._advance(now)
        return self._tokens


@dataclass(slots=True)
class _Client:
    bucket: TokenBucket
    last_seen: float


@dataclass(slots=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset: int


class RateLimiter:
    """Maps client IPs to token buckets and evicts idle clients.

    The client map is shared by every request, so all access goes through one
    lock. The sweeper takes the lock only while scanning.
    """

    def __init__(
        self,
        rps: float = 2.0,
        burst: int = 4,
        *,
        enabled: bool = True,
        idle_ttl: float = 180.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.rps = rps
        self.burst = burst
        self.enabled = enabled
        self.idle_ttl = idle_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._wall_clock = wall_clock
        self._clients: Dict[str, _Client] = {}
        self._lock = Lock()
        self._exceeded_total = 0
        self._sweeper: Optional[asyncio.Task[None]] = None

    @property
    def current_clients(self) -> int:
        with self._lock:
            return len(self._clients)

    @property
    def exceeded_total(self) -> int:
        with self._lock:
            return self._exceeded_total

    def allow(self, ip: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            client = self._clients.get(ip)
            if client is None:
                client = _Client(bucket=TokenBucket(self.rps, self.burst, now), last_seen=now)
                self._clients[ip] = client
            client.last_seen = now
            allowed = client.bucket.allow(now)
            remaining = math.floor(client.bucket.tokens(now)) if allowed else 0
            if not allowed:
                self._exceeded_total += 1
        return RateLimitDecision(
            allowed=allowed,
            limit=self.burst,
            remaining=remaining,
            reset=int(self._wall_clock()) + 1,
        )

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [ip for ip, client in self._clients.items() if now - client.last_seen > self.idle_ttl]
            for ip in stale:
                del self._clients[ip]
        return len(stale)

    async def start(self) -> None:
        if self._sweeper is not None or not self.enabled:
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever(), name="rate-limit-sweeper")

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            removed = self.sweep()
            if removed:
                logger.debug("Evicted %s idle rate-limit client(s); %s remain.", removed, self.current_clients)
