"""Structlog logging for dispatchers.

Exports:
    configure_logging: Set up renderers and levels (silent under pytest)
    get_logger / get_module_logger: Loggers bound to a name or the caller's module
    log_safely: Log without letting logger errors escape
    bind_dispatch_context: Bind event name and nesting depth for a dispatch
    get_dispatch_depth / get_dispatched_event_name: Read the bound dispatch context
"""

from tracebus.logging.context import (
    bind_dispatch_context,
    get_dispatch_depth,
    get_dispatched_event_name,
)
from tracebus.logging.setup import configure_logging, get_logger, get_module_logger, log_safely

__all__ = [
    "bind_dispatch_context",
    "configure_logging",
    "get_dispatch_depth",
    "get_dispatched_event_name",
    "get_logger",
    "get_module_logger",
    "log_safely",
]
