from application.services.rate_limiter import RateLimiter
from infrastructure.cache import BoundedCache


def _limiter(clock, max_requests=3, window_seconds=60):
    cache = BoundedCache(clock=clock)
    return RateLimiter(cache, max_requests=max_requests, window_seconds=window_seconds, clock=clock), cache


def test_denies_request_over_cap(clock):
    limiter, _ = _limiter(clock)
    decisions = [limiter.check("1.2.3.4") for _ in range(4)]
    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions[:3]] == [2, 1, 0]
    assert decisions[3].retry_after == 60


def test_denied_requests_do_not_extend_count(clock):
    limiter, cache = _limiter(clock, max_requests=1)
    limiter.check("c")
    limiter.check("c")
    limiter.check("c")
    assert cache.get("rate_limit:c").count == 1


def test_window_closes_even_under_sustained_traffic(clock):
    limiter, _ = _limiter(clock, max_requests=2)
    assert limiter.check("c").allowed
    clock.advance(59_000)
    assert limiter.check("c").allowed
    assert not limiter.check("c").allowed
    # ttl is not re-armed by the hits above; the window ends 60s after the first request
    clock.advance(1_000)
    decision = limiter.check("c")
    assert decision.allowed
    assert decision.remaining == 1


def test_clients_are_counted_separately(clock):
    limiter, _ = _limiter(clock, max_requests=1)
    assert limiter.check("a").allowed
    assert limiter.check("b").allowed
    assert not limiter.check("a").allowed


def test_missing_client_id_shares_unknown_counter(clock):
    limiter, cache = _limiter(clock, max_requests=1)
    assert limiter.check(None).allowed
    assert not limiter.check("").allowed
    assert "rate_limit:unknown" in cache


def test_retry_after_counts_down(clock):
    limiter, _ = _limiter(clock, max_requests=1, window_seconds=10)
    limiter.check("c")
    clock.advance(7_500)
    assert limiter.check("c").retry_after == 3
