"""
Tests for Rate Limiter adapters.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock
from redis.exceptions import ConnectionError as RedisConnectionError

from saas_metrics_auth.domain.errors import (
    RateLimitExceeded,
    StoreUnavailable,
    UpstreamTimeout,
    ValidationError,
)
from saas_metrics_auth.infrastructure.adapters.rate_limit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
)


@pytest.mark.asyncio
async def test_sixth_attempt_in_window_fails(login_limiter):
    for expected in range(1, 6):
        assert await login_limiter.consume("10.0.0.1") == expected

    with pytest.raises(RateLimitExceeded):
        await login_limiter.consume("10.0.0.1")


@pytest.mark.asyncio
async def test_window_elapses_and_counter_resets(login_limiter, clock):
    for _ in range(5):
        await login_limiter.consume("10.0.0.1")
    with pytest.raises(RateLimitExceeded):
        await login_limiter.consume("10.0.0.1")

    clock.advance(900)
    assert await login_limiter.consume("10.0.0.1") == 1


@pytest.mark.asyncio
async def test_retry_after_counts_down(login_limiter, clock):
    for _ in range(5):
        await login_limiter.consume("10.0.0.1")
    clock.advance(600)

    with pytest.raises(RateLimitExceeded) as exc:
        await login_limiter.consume("10.0.0.1")
    assert exc.value.retry_after == 300
    assert exc.value.details["retry_after"] == 300


@pytest.mark.asyncio
async def test_identities_are_independent(login_limiter):
    for _ in range(5):
        await login_limiter.consume("10.0.0.1")
    assert await login_limiter.consume("10.0.0.2") == 1


@pytest.mark.asyncio
async def test_reset_clears_counter(login_limiter):
    for _ in range(5):
        await login_limiter.consume("10.0.0.1")
    await login_limiter.reset("10.0.0.1")
    assert await login_limiter.consume("10.0.0.1") == 1


def test_settings_must_be_positive():
    with pytest.raises(ValidationError):
        InMemoryRateLimiter(max_attempts=0)
    with pytest.raises(ValidationError):
        InMemoryRateLimiter(window_seconds=0)


# -----------------------------------------------------------------------------
# REDIS
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_redis():
    return AsyncMock()


@pytest.mark.asyncio
async def test_redis_consume_runs_single_script(mock_redis):
    mock_redis.eval.return_value = [1, 900]
    limiter = RedisRateLimiter(mock_redis, max_attempts=5, window_seconds=900)

    assert await limiter.consume("10.0.0.1") == 1

    script, numkeys, key, window = mock_redis.eval.call_args[0]
    assert "INCR" in script and "EXPIRE" in script
    assert numkeys == 1
    assert key == "auth:rate_limit:login:10.0.0.1"
    assert window == 900


@pytest.mark.asyncio
async def test_redis_over_limit_raises_with_ttl(mock_redis):
    mock_redis.eval.return_value = [6, 420]
    limiter = RedisRateLimiter(mock_redis, max_attempts=5, window_seconds=900)

    with pytest.raises(RateLimitExceeded) as exc:
        await limiter.consume("10.0.0.1")
    assert exc.value.retry_after == 420


@pytest.mark.asyncio
async def test_redis_scope_separates_keys(mock_redis):
    mock_redis.eval.return_value = [1, 900]
    limiter = RedisRateLimiter(mock_redis, scope="refresh")
    await limiter.consume("10.0.0.1")
    assert mock_redis.eval.call_args[0][2] == "auth:rate_limit:refresh:10.0.0.1"


@pytest.mark.asyncio
async def test_redis_connection_error_fails_closed(mock_redis):
    mock_redis.eval.side_effect = RedisConnectionError("down")
    limiter = RedisRateLimiter(mock_redis)

    with pytest.raises(StoreUnavailable):
        await limiter.consume("10.0.0.1")


@pytest.mark.asyncio
async def test_redis_slow_store_times_out(mock_redis):
    async def slow(*args, **kwargs):
        await asyncio.sleep(10)

    mock_redis.eval.side_effect = slow
    limiter = RedisRateLimiter(mock_redis, timeout=0.05)

    with pytest.raises(UpstreamTimeout):
        await limiter.consume("10.0.0.1")


@pytest.mark.asyncio
async def test_redis_reset_deletes_key(mock_redis):
    limiter = RedisRateLimiter(mock_redis)
    await limiter.reset("10.0.0.1")
    mock_redis.delete.assert_awaited_once_with("auth:rate_limit:login:10.0.0.1")


@pytest.mark.asyncio
async def test_expired_counters_are_swept(login_limiter, clock):
    for i in range(100):
        await login_limiter.consume(f"10.0.{i // 256}.{i % 256}")
    assert len(login_limiter._counters) == 100

    clock.advance(900)
    await login_limiter.consume("192.168.0.1")

    assert list(login_limiter._counters) == ["192.168.0.1"]


@pytest.mark.asyncio
async def test_sweep_keeps_counters_inside_their_window(login_limiter, clock):
    await login_limiter.consume("10.0.0.1")
    clock.advance(600)
    await login_limiter.consume("10.0.0.2")
    clock.advance(300)
    await login_limiter.consume("10.0.0.3")

    assert sorted(login_limiter._counters) == ["10.0.0.2", "10.0.0.3"]
