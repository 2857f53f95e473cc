"""
Security event logging.

Authentication outcomes, evictions, revocations and tamper evidence go
to a dedicated ``saas_metrics_auth.audit`` logger so deployments can route
them separately from debug traces.
"""

import logging
from typing import Any

from saas_metrics_auth.context import get_correlation_id

audit_logger = logging.getLogger("saas_metrics_auth.audit")


def redact_id(value: str) -> str:
    """Shorten an identifier for logs."""
    if not value or len(value) <= 8:
        return value
    return value[:8] + "..."


def log_security_event(event: str, level: int = logging.INFO, **fields: Any) -> None:
    """
    Write one security event.

    Field values are passed as ``extra`` so structured handlers can index
    them; the correlation id of the current request is attached when set.
    Never pass key material or raw tokens here.
    """
    extra = {"security_event": event, **fields}
    correlation_id = get_correlation_id()
    if correlation_id:
        extra["correlation_id"] = correlation_id
    audit_logger.log(level, f"Security event: {event}", extra=extra)
