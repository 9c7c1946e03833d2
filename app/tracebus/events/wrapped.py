"""Listener wrapper recording call metadata for tracing."""

import time
from typing import TYPE_CHECKING, Any, Optional, TypedDict

from tracebus.configuration import get_settings
from tracebus.events.models import is_stoppable
from tracebus.events.resolver import call_listener
from tracebus.events.targets import ListenerTarget, to_target

if TYPE_CHECKING:
    from tracebus.events.interfaces import EventDispatcherInterface


class ListenerInfo(TypedDict):
    """Reporting view of one listener for one event."""

    event: str
    priority: Optional[int]
    duration: Optional[float]
    pretty: str


class WrappedListener:
    """Wraps one listener for one dispatch cycle.

    Records whether the listener was called, how long it took (milliseconds),
    the priority it was registered with and whether it stopped the event's
    propagation.

    Args:
        listener: The listener being wrapped, in any supported shape.
        name: Optional display name, defaults to the owner part of ``pretty``.
        dispatcher: Dispatcher passed to the listener and queried for its
            priority. When None, the dispatcher invoking the wrapper is used.
        target: Resolved form of ``listener`` to reuse, typically the
            target of the registry record being wrapped, so a lazily
            instantiated class listener keeps its instance.
        precision: Decimals kept on the duration, the configured
            ``duration_precision`` when omitted.
    """

    def __init__(
        self,
        listener: Any,
        name: Optional[str] = None,
        dispatcher: Optional["EventDispatcherInterface"] = None,
        target: Optional[ListenerTarget] = None,
        precision: Optional[int] = None,
    ):
        self._listener = listener
        self._target = target if target is not None else to_target(listener)
        self._precision = (
            precision if precision is not None else get_settings().events.duration_precision
        )
        self._dispatcher = dispatcher
        self._called = False
        self._stopped_propagation = False
        self._priority: Optional[int] = None
        self._duration: Optional[float] = None
        self._pretty = self._target.describe()
        self._name = name or self._pretty.split("::")[0]

    @property
    def listener(self) -> Any:
        """The original, unwrapped listener."""
        return self._listener

    @property
    def pretty(self) -> str:
        return self._pretty

    @property
    def name(self) -> str:
        return self._name

    @property
    def priority(self) -> Optional[int]:
        return self._priority

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    def was_called(self) -> bool:
        return self._called

    def stopped_propagation(self) -> bool:
        return self._stopped_propagation

    def __call__(
        self, event: Any, event_name: str, dispatcher: "EventDispatcherInterface", **payload: Any
    ) -> Any:
        dispatcher = self._dispatcher if self._dispatcher is not None else dispatcher

        self._called = True
        # Registration may change while dispatching, so ask now. The wrapper
        # itself identifies its own record when the listener is registered twice.
        priority = dispatcher.get_listener_priority(event_name, self)
        if priority is None:
            priority = dispatcher.get_listener_priority(event_name, self._listener)
        self._priority = priority

        resolver = dispatcher.resolver
        func = self._target.resolve(resolver)
        start = time.perf_counter()
        try:
            response = call_listener(func, resolver, event, event_name, dispatcher, payload)
        finally:
            self._duration = round((time.perf_counter() - start) * 1000, self._precision)

        if is_stoppable(event) and event.is_propagation_stopped():
            self._stopped_propagation = True

        return response

    def get_info(self, event_name: str) -> ListenerInfo:
        priority = self._priority
        if priority is None and self._dispatcher is not None:
            priority = self._dispatcher.get_listener_priority(event_name, self._listener)

        return {
            "event": event_name,
            "priority": priority,
            "duration": self._duration,
            "pretty": self._pretty,
        }

    def __repr__(self) -> str:
        return f"<WrappedListener {self._pretty} called={self._called}>"
