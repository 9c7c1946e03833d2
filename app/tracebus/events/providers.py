"""
Factory functions for event dispatchers.

Builds the dispatcher an application should use, wrapping it in a
TraceableEventDispatcher when tracing is enabled in settings.
"""

from typing import Any, Optional

from tracebus.configuration import Settings, get_settings
from tracebus.events.dispatcher import EventDispatcher
from tracebus.events.interfaces import EventDispatcherInterface
from tracebus.events.resolver import Resolver
from tracebus.events.traceable import TraceableEventDispatcher


def get_event_dispatcher(
    settings: Optional[Settings] = None,
    resolver: Optional[Resolver] = None,
    logger: Any = None,
) -> EventDispatcherInterface:
    """
    Build an event dispatcher from settings.

    Unlike settings, dispatchers are not cached: every call returns a new,
    empty registry.

    Args:
        settings: Settings instance, the process singleton when omitted.
        resolver: Resolver shared by the dispatcher for argument binding.
        logger: Structlog logger injected in the dispatcher (and tracer).

    Returns:
        EventDispatcherInterface: A TraceableEventDispatcher decorating an
        EventDispatcher when ``EVENTS_TRACING_ENABLED`` is set, the plain
        EventDispatcher otherwise.

    Usage:
        dispatcher = get_event_dispatcher()
        dispatcher.add_listener("user.created", send_welcome)
    """
    settings = settings or get_settings()
    dispatcher = EventDispatcher(resolver=resolver, logger=logger, settings=settings)
    if settings.events.tracing_enabled:
        return TraceableEventDispatcher(dispatcher, logger=logger, settings=settings)
    return dispatcher
