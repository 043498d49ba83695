import asyncio
import threading

from todoapi.services.rate_limiter import RateLimiter, TokenBucket


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_bucket_starts_full_and_refills():
    bucket = TokenBucket(rate=2.0, burst=4, now=0.0)

    assert [bucket.allow(0.0) for _ in range(5)] == [True, True, True, True, False]
    assert bucket.allow(0.5)
    assert not bucket.allow(0.5)
    assert bucket.tokens(100.0) == 4.0


def test_burst_then_reject_then_recover():
    clock = FakeClock()
    limiter = RateLimiter(rps=2.0, burst=4, clock=clock, wall_clock=lambda: 1700000000.0)

    decisions = [limiter.allow("10.0.0.1") for _ in range(5)]

    assert [d.allowed for d in decisions] == [True, True, True, True, False]
    assert [d.remaining for d in decisions] == [3, 2, 1, 0, 0]
    assert all(d.limit == 4 for d in decisions)
    assert decisions[0].reset == 1700000001
    assert limiter.exceeded_total == 1

    clock.advance(0.5)
    assert limiter.allow("10.0.0.1").allowed


def test_clients_are_independent():
    clock = FakeClock()
    limiter = RateLimiter(rps=1.0, burst=1, clock=clock)

    assert limiter.allow("10.0.0.1").allowed
    assert not limiter.allow("10.0.0.1").allowed
    assert limiter.allow("10.0.0.2").allowed
    assert limiter.current_clients == 2


def test_sweep_evicts_idle_clients_only():
    clock = FakeClock()
    limiter = RateLimiter(rps=1.0, burst=1, idle_ttl=180.0, clock=clock)
    limiter.allow("10.0.0.1")
    clock.advance(120)
    limiter.allow("10.0.0.2")
    clock.advance(61)

    assert limiter.sweep() == 1
    assert limiter.current_clients == 1

    # An evicted client comes back with a full bucket.
    assert limiter.allow("10.0.0.1").allowed
    assert limiter.current_clients == 2


def test_concurrent_allow_never_over_admits():
    limiter = RateLimiter(rps=0.0001, burst=50)
    admitted = []
    lock = threading.Lock()

    def worker():
        for _ in range(20):
            if limiter.allow("10.0.0.9").allowed:
                with lock:
                    admitted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(admitted) == 50


def test_sweeper_task_runs_and_stops():
    clock = FakeClock()
    limiter = RateLimiter(rps=1.0, burst=1, idle_ttl=1.0, sweep_interval=0.01, clock=clock)
    limiter.allow("10.0.0.1")
    clock.advance(5)

    async def scenario():
        await limiter.start()
        for _ in range(100):
            if limiter.current_clients == 0:
                break
            await asyncio.sleep(0.01)
        await limiter.stop()

    asyncio.run(scenario())
    assert limiter.current_clients == 0


def test_disabled_limiter_does_not_start_sweeper():
    limiter = RateLimiter(enabled=False)

    async def scenario():
        await limiter.start()
        assert limiter._sweeper is None
        await limiter.stop()

    asyncio.run(scenario())
