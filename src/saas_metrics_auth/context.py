"""
Request context and context variable management.

Uses contextvars for request-scoped data propagation, so audit records
written deep inside the token service still carry the caller's
correlation id.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Iterator, Optional


@dataclass
class RequestContext:
    """
    Request-scoped metadata set by the transport layer.
    """

    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: dict = field(default_factory=dict)


# Global context variable for request-scoped data
request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


@contextmanager
def use_request_context(ctx: RequestContext) -> Iterator[RequestContext]:
    """Bind ``ctx`` for the duration of the block."""
    token = request_context.set(ctx)
    try:
        yield ctx
    finally:
        request_context.reset(token)


def get_correlation_id() -> Optional[str]:
    """Get correlation ID for distributed tracing."""
    ctx = request_context.get()
    return ctx.correlation_id if ctx else None


def get_metadata() -> dict:
    """Get request metadata (IP address, user agent, etc.)."""
    ctx = request_context.get()
    return ctx.metadata if ctx else {}
