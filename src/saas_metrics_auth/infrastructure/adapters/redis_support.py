"""
Shared helpers for the Redis adapters.

Every store round trip goes through ``call_store`` so timeouts and
connection failures surface as domain errors instead of driver errors.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from saas_metrics_auth.domain.errors import StoreUnavailable, UpstreamTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STORE_TIMEOUT = 2.0


async def call_store(
    awaitable: Awaitable[T],
    operation: str,
    timeout: float = DEFAULT_STORE_TIMEOUT,
) -> T:
    """
    Await a Redis call under ``timeout``.

    Raises:
        UpstreamTimeout: The store did not answer in time.
        StoreUnavailable: Any other driver or connection failure.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except (asyncio.TimeoutError, RedisTimeoutError):
        logger.warning(f"Store operation timed out: {operation}")
        raise UpstreamTimeout(
            "Session store did not answer in time",
            details={"operation": operation},
        )
    except (RedisError, ConnectionError, OSError) as e:
        logger.error(f"Store operation failed: {operation}: {e}")
        raise StoreUnavailable(details={"operation": operation})


def decode(value):
    """Redis clients return bytes unless ``decode_responses`` is set."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value
