"""Event system - in-process dispatcher with optional call tracing.

Listeners are registered against event names or event types with a
priority and called synchronously, highest priority first. The traceable
decorator records which listeners ran, for how long, and which never did.

Usage:

    from tracebus.events import Event, get_event_dispatcher

    class UserCreated(Event):
        ...

    dispatcher = get_event_dispatcher()

    @dispatcher.listen(UserCreated, priority=10)
    def send_welcome(event: UserCreated) -> None:
        ...

    # Event name derived from the event type
    dispatcher.dispatch(UserCreated())

    # Name-only dispatch, payload lands in GenericEvent.arguments
    dispatcher.dispatch("user.created", user_id=42)

    # Tracing
    from tracebus.events import EventDispatcher, TraceableEventDispatcher

    traced = TraceableEventDispatcher(EventDispatcher())
    traced.dispatch("user.created")
    traced.get_called_listeners()
    traced.get_not_called_listeners()
"""

from tracebus.events.dispatcher import EventDispatcher, iter_subscribed_listeners
from tracebus.events.errors import (
    EventError,
    InvalidInputError,
    NotInstantiableError,
    ResolutionError,
)
from tracebus.events.interfaces import EventDispatcherInterface, EventSubscriber
from tracebus.events.models import (
    WILDCARD,
    Event,
    GenericEvent,
    StoppableEvent,
    event_name_of,
    is_stoppable,
)
from tracebus.events.providers import get_event_dispatcher
from tracebus.events.registry import ListenerRecord
from tracebus.events.resolver import Resolver
from tracebus.events.traceable import EventLogEntry, TraceableEventDispatcher
from tracebus.events.wrapped import ListenerInfo, WrappedListener

__all__ = [
    "Event",
    "GenericEvent",
    "StoppableEvent",
    "WILDCARD",
    "event_name_of",
    "is_stoppable",
    "EventDispatcherInterface",
    "EventSubscriber",
    "EventDispatcher",
    "TraceableEventDispatcher",
    "WrappedListener",
    "ListenerInfo",
    "ListenerRecord",
    "EventLogEntry",
    "Resolver",
    "get_event_dispatcher",
    "iter_subscribed_listeners",
    "EventError",
    "InvalidInputError",
    "ResolutionError",
    "NotInstantiableError",
]
