"""Dispatch context binding for structured logging.

Every log entry emitted while an event is being dispatched carries the
event name and the current nesting depth.

Usage:
    from tracebus.logging import bind_dispatch_context

    with bind_dispatch_context("user.created"):
        logger.debug("listener_notified")  # includes event_name, dispatch_depth
"""

from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


def get_dispatch_depth() -> int:
    """Return how many dispatches are currently in progress on this context."""
    return structlog.contextvars.get_contextvars().get("dispatch_depth", 0)


@contextmanager
def bind_dispatch_context(
    event_name: str,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind dispatch-scoped context to all logs within the block.

    Nested dispatches push their own values; the outer ones are restored
    when the inner block exits.

    Args:
        event_name: Name of the event being dispatched.
        **extra_context: Additional key-value pairs to include in logs.
    """
    context: dict[str, Any] = {
        "event_name": event_name,
        "dispatch_depth": get_dispatch_depth() + 1,
    }
    context.update(extra_context)

    tokens = structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def get_dispatched_event_name() -> Optional[str]:
    """Get the name of the innermost event being dispatched, if any."""
    return structlog.contextvars.get_contextvars().get("event_name")
