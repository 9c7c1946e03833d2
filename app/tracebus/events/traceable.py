"""Traceable event dispatcher.

Decorates any dispatcher to record which listeners were called for which
event, how long each took, which listeners were never called and which
events were dispatched without any listener. Dispatch results are the same
as with the decorated dispatcher.

Usage:

    from tracebus.events import EventDispatcher, TraceableEventDispatcher

    dispatcher = TraceableEventDispatcher(EventDispatcher())
    dispatcher.add_listener("ping", on_ping)
    dispatcher.dispatch("ping")

    dispatcher.get_called_listeners()
    # [{"event": "ping", "priority": 0, "duration": 0.02, "pretty": "app.on_ping"}]

While an event is dispatched, each of its listeners is swapped in the
decorated registry for a WrappedListener at the same position and
priority, and the original registration is put back once the dispatch ends
(also when a listener raises). Swaps are scoped to the wrappers created by
the current dispatch, so a listener dispatching other events (or the same
one) on this dispatcher leaves the outer bookkeeping intact.
"""

import time
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple, TypedDict, Union

from tracebus.configuration import Settings, get_settings
from tracebus.events.dispatcher import iter_subscribed_listeners
from tracebus.events.interfaces import EventDispatcherInterface, EventSubscriber
from tracebus.events.models import is_stoppable, type_name
from tracebus.events.registry import ListenerRecord
from tracebus.events.resolver import Resolver
from tracebus.events.targets import same_listener
from tracebus.events.wrapped import ListenerInfo, WrappedListener
from tracebus.logging import get_module_logger, log_safely

module_logger = get_module_logger()


class EventLogEntry(TypedDict):
    """One traced dispatch: event name and total duration in milliseconds."""

    event: str
    duration: float


def _registration_name(event_name: Any) -> str:
    return type_name(event_name) if isinstance(event_name, type) else event_name


def _not_called_sort_key(info: ListenerInfo) -> Tuple[str, int, int]:
    priority = info["priority"]
    if isinstance(priority, int):
        return info["event"], 0, -priority
    return info["event"], 1, 0


class TraceableEventDispatcher(EventDispatcherInterface):
    """Dispatcher decorator collecting call history and timings.

    Args:
        dispatcher: The dispatcher being traced. Its registry is only
            mutated transiently while a dispatch is in progress.
        logger: Structlog logger, the module logger when omitted.
        settings: Settings instance, the process singleton when omitted.
    """

    def __init__(
        self,
        dispatcher: EventDispatcherInterface,
        logger: Any = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self._dispatcher = dispatcher
        self._logger = logger if logger is not None else module_logger
        self._precision = settings.events.duration_precision
        self._events_log: List[EventLogEntry] = []
        # Insertion-ordered set of wrappers, mapped to the dispatched event name
        self._call_stack: Dict[WrappedListener, str] = {}
        # Wrappers currently registered in place of originals, by registration name
        self._wrapped_listeners: Dict[str, List[WrappedListener]] = {}
        # Registry record each wrapper stands in for
        self._originals: Dict[WrappedListener, ListenerRecord] = {}
        self._orphaned_events: List[str] = []

    def get_dispatcher(self) -> EventDispatcherInterface:
        return self._dispatcher

    @property
    def resolver(self) -> Resolver:
        return self._dispatcher.resolver

    @property
    def lock(self) -> RLock:
        return self._dispatcher.lock

    def add_listener(self, event_name: Any, listener: Any, priority: Optional[int] = None) -> None:
        self._dispatcher.add_listener(event_name, listener, priority)

    def remove_listener(self, event_name: Any, listener: Any) -> None:
        with self.lock:
            # While dispatching, the registry holds the wrapper instead
            for wrapped in self._wrapped_listeners.get(_registration_name(event_name), []):
                if same_listener(wrapped.listener, listener):
                    listener = wrapped
                    self._forget(wrapped)
                    break

            self._dispatcher.remove_listener(event_name, listener)

    def remove_listeners(self, event_name: Any = None) -> None:
        with self.lock:
            self._forget_all(event_name)
            self._dispatcher.remove_listeners(event_name)

    def override(self, event_name: Any, listener: Any, priority: Optional[int] = None) -> None:
        with self.lock:
            self._forget_all(event_name)
            self._dispatcher.override(event_name, listener, priority)

    def replace_record(self, old: ListenerRecord, new: ListenerRecord) -> bool:
        return self._dispatcher.replace_record(old, new)

    def has_listeners(self, event_name: Any = None) -> bool:
        return self._dispatcher.has_listeners(event_name)

    def get_listeners(self, event_name: Any = None) -> Union[List[Any], Dict[str, List[Any]]]:
        return self._dispatcher.get_listeners(event_name)

    def get_listener_records(self, event_name: Any) -> List[ListenerRecord]:
        return self._dispatcher.get_listener_records(event_name)

    def get_listener_priority(self, event_name: Any, listener: Any) -> Optional[int]:
        for wrapped_listeners in list(self._wrapped_listeners.values()):
            for wrapped in wrapped_listeners:
                if same_listener(wrapped.listener, listener):
                    priority = self._dispatcher.get_listener_priority(event_name, wrapped)
                    if priority is not None:
                        return priority

        return self._dispatcher.get_listener_priority(event_name, listener)

    def add_subscriber(self, subscriber: EventSubscriber) -> None:
        self._dispatcher.add_subscriber(subscriber)

    def remove_subscriber(self, subscriber: EventSubscriber) -> None:
        for event_name, listener, _ in iter_subscribed_listeners(subscriber, 0):
            self.remove_listener(event_name, listener)

    def prepare(self, event: Any, event_name: Any, payload: Dict[str, Any]) -> Tuple[Any, str]:
        return self._dispatcher.prepare(event, event_name, payload)

    def dispatch(self, event: Any, event_name: Optional[Any] = None, **payload: Any) -> Any:
        event, name = self.prepare(event, event_name, payload)
        self._traced(event, name, payload, halt=False)
        return event

    def dispatch_until(self, event: Any, event_name: Optional[Any] = None, **payload: Any) -> Any:
        event, name = self.prepare(event, event_name, payload)
        return self._traced(event, name, payload, halt=True)

    def _traced(self, event: Any, event_name: str, payload: Dict[str, Any], halt: bool) -> Any:
        start = time.perf_counter()
        created: List[WrappedListener] = []
        with self.lock:
            if is_stoppable(event) and event.is_propagation_stopped():
                log_safely(self._logger, "debug", "event_already_stopped", event_name=event_name)

            try:
                self._pre_process(event_name, created)
                if halt:
                    return self._dispatcher.dispatch_until(event, event_name, **payload)
                self._dispatcher.dispatch(event, event_name, **payload)
                return event
            finally:
                self._post_process(event_name, created)
                self._events_log.append(
                    {
                        "event": event_name,
                        "duration": round((time.perf_counter() - start) * 1000, self._precision),
                    }
                )

    def _pre_process(self, event_name: str, created: List[WrappedListener]) -> None:
        if not self._dispatcher.has_listeners(event_name):
            self._orphaned_events.append(event_name)
            return

        for record in self._dispatcher.get_listener_records(event_name):
            if isinstance(record.listener, WrappedListener):
                # Already swapped by an enclosing dispatch
                continue

            wrapped = WrappedListener(
                record.listener, None, self, target=record.target, precision=self._precision
            )
            swapped = ListenerRecord(record.event_name, wrapped, record.priority)
            if not self._dispatcher.replace_record(record, swapped):
                continue
            self._originals[wrapped] = record
            self._wrapped_listeners.setdefault(record.event_name, []).append(wrapped)
            self._call_stack[wrapped] = event_name
            created.append(wrapped)

    def _post_process(self, event_name: str, created: List[WrappedListener]) -> None:
        pending = set(created)
        skipped = False

        for record in self._dispatcher.get_listener_records(event_name):
            wrapped = record.listener
            # Plain listeners were added while dispatching; others belong to
            # an enclosing dispatch
            if not isinstance(wrapped, WrappedListener) or wrapped not in pending:
                continue
            pending.discard(wrapped)

            # The original record goes back at the wrapper's position
            self._dispatcher.replace_record(record, self._originals[wrapped])
            self._forget(wrapped)

            context = {"event_name": event_name, "listener": wrapped.pretty}
            if wrapped.was_called():
                log_safely(self._logger, "debug", "listener_notified", **context)
            else:
                self._call_stack.pop(wrapped, None)
                if skipped:
                    log_safely(self._logger, "debug", "listener_not_called", **context)

            if wrapped.stopped_propagation():
                log_safely(self._logger, "debug", "listener_stopped_propagation", **context)
                skipped = True

        # Removed from the registry while dispatching
        for wrapped in pending:
            self._forget(wrapped)
            if not wrapped.was_called():
                self._call_stack.pop(wrapped, None)

    def _forget(self, wrapped: WrappedListener) -> None:
        self._originals.pop(wrapped, None)
        for name, wrapped_listeners in list(self._wrapped_listeners.items()):
            for index, candidate in enumerate(wrapped_listeners):
                if candidate is wrapped:
                    del wrapped_listeners[index]
                    if not wrapped_listeners:
                        del self._wrapped_listeners[name]
                    return

    def _forget_all(self, event_name: Any) -> None:
        # Wrappers of registrations about to be dropped wholesale
        if event_name is None:
            names = list(self._wrapped_listeners)
        else:
            names = [_registration_name(event_name)]
        for name in names:
            for wrapped in self._wrapped_listeners.pop(name, []):
                self._originals.pop(wrapped, None)

    def get_called_listeners(self) -> List[ListenerInfo]:
        """Info of every listener called since creation or the last reset."""
        return [
            wrapped.get_info(event_name)
            for wrapped, event_name in list(self._call_stack.items())
            if wrapped.was_called()
        ]

    def get_not_called_listeners(self) -> List[ListenerInfo]:
        """Info of registered listeners never called since the last reset.

        Sorted by event name, then priority descending; listeners without a
        priority come last within their event. Returns an empty list when the
        decorated dispatcher cannot list its listeners.
        """
        try:
            all_listeners = self.get_listeners()
        except Exception as e:
            log_safely(
                self._logger,
                "info",
                "not_called_listeners_unavailable",
                error=str(e),
                error_type=type(e).__name__,
            )
            return []

        called = [wrapped.listener for wrapped in list(self._call_stack) if wrapped.was_called()]

        not_called: List[ListenerInfo] = []
        for event_name, listeners in all_listeners.items():
            for listener in listeners:
                original = listener.listener if isinstance(listener, WrappedListener) else listener
                if any(same_listener(original, candidate) for candidate in called):
                    continue
                if not isinstance(listener, WrappedListener):
                    listener = WrappedListener(listener, None, self, precision=self._precision)
                not_called.append(listener.get_info(event_name))

        return sorted(not_called, key=_not_called_sort_key)

    def get_orphaned_events(self) -> List[str]:
        """Names of events dispatched without listeners since the last reset."""
        return list(self._orphaned_events)

    def get_events_log(self) -> List[EventLogEntry]:
        """Every traced dispatch with its total duration. Not cleared by reset()."""
        return list(self._events_log)

    def reset(self) -> None:
        self._call_stack.clear()
        self._orphaned_events.clear()
