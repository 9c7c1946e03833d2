"""Event dispatcher.

Listeners are registered against event names (or event types) with a
priority and called synchronously, highest priority first, when an event is
dispatched. Stoppable events halt delivery as soon as a listener stops
their propagation.

Usage:

    from tracebus.events import EventDispatcher, GenericEvent

    dispatcher = EventDispatcher()

    @dispatcher.listen("user.created", priority=10)
    def send_welcome(event):
        ...

    dispatcher.dispatch(GenericEvent(subject=user), "user.created")

    # Name-only dispatch builds a GenericEvent from the payload
    event = dispatcher.dispatch("user.created", user_id=42)
"""

import time
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple, Union

from tracebus.configuration import Settings, get_settings
from tracebus.events.errors import InvalidInputError
from tracebus.events.interfaces import EventDispatcherInterface, EventSubscriber
from tracebus.events.models import (
    GenericEvent,
    event_name_of,
    is_stoppable,
    type_name,
    validate_event_name,
)
from tracebus.events.registry import ListenerRecord, ListenerRegistry
from tracebus.events.resolver import Resolver, call_listener
from tracebus.events.wrapped import WrappedListener
from tracebus.logging import bind_dispatch_context, get_module_logger, log_safely

module_logger = get_module_logger()


def iter_subscribed_listeners(subscriber: Any, default_priority: int):
    """Expand a subscriber's ``get_subscribed_events()`` mapping.

    Yields:
        ``(event_name, (subscriber, method_name), priority)`` tuples.

    Raises:
        InvalidInputError: If the subscriber does not declare its events or
            a declaration is malformed.
    """
    get_subscribed_events = getattr(subscriber, "get_subscribed_events", None)
    if get_subscribed_events is None or isinstance(subscriber, type):
        raise InvalidInputError(
            f"{type(subscriber).__name__} is not an event subscriber instance"
        )

    for event_name, params in get_subscribed_events().items():
        if isinstance(params, str):
            yield event_name, (subscriber, params), default_priority
        elif (
            isinstance(params, (tuple, list))
            and params
            and isinstance(params[0], str)
            and (len(params) == 1 or (len(params) == 2 and isinstance(params[1], int)))
        ):
            priority = params[1] if len(params) == 2 else default_priority
            yield event_name, (subscriber, params[0]), priority
        elif isinstance(params, (tuple, list)):
            for item in params:
                if isinstance(item, str):
                    yield event_name, (subscriber, item), default_priority
                elif isinstance(item, (tuple, list)) and item and isinstance(item[0], str):
                    priority = item[1] if len(item) > 1 and isinstance(item[1], int) else default_priority
                    yield event_name, (subscriber, item[0]), priority
                else:
                    raise InvalidInputError(
                        f"Invalid subscription {item!r} for event {event_name!r}"
                    )
        else:
            raise InvalidInputError(f"Invalid subscription {params!r} for event {event_name!r}")


class EventDispatcher(EventDispatcherInterface):
    """In-process, synchronous event dispatcher.

    Args:
        resolver: Resolver binding listener arguments, a fresh one when omitted.
        logger: Structlog logger, the module logger when omitted.
        default_priority: Priority for listeners registered without one,
            defaults to ``settings.events.default_priority``.
        settings: Settings instance, the process singleton when omitted.
    """

    def __init__(
        self,
        resolver: Optional[Resolver] = None,
        logger: Any = None,
        default_priority: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self._resolver = resolver or Resolver()
        self._logger = logger if logger is not None else module_logger
        self._default_priority = (
            default_priority if default_priority is not None else settings.events.default_priority
        )
        self._precision = settings.events.duration_precision
        self._registry = ListenerRegistry()
        self._lock = RLock()

    @property
    def resolver(self) -> Resolver:
        return self._resolver

    @property
    def lock(self) -> RLock:
        return self._lock

    @property
    def default_priority(self) -> int:
        return self._default_priority

    def _name(self, event_name: Any) -> str:
        if isinstance(event_name, type):
            return self._registry.remember_type(event_name)
        return event_name

    def add_listener(self, event_name: Any, listener: Any, priority: Optional[int] = None) -> None:
        name = validate_event_name(self._name(event_name))
        if priority is None:
            priority = self._default_priority

        with self._lock:
            record = self._registry.add(name, listener, priority)

        log_safely(
            self._logger,
            "debug",
            "listener_registered",
            event_name=name,
            listener=self._describe(record),
            priority=priority,
        )

    def remove_listener(self, event_name: Any, listener: Any) -> None:
        name = self._name(event_name)
        with self._lock:
            record = self._registry.remove(name, listener)

        if record is not None:
            log_safely(
                self._logger,
                "debug",
                "listener_removed",
                event_name=name,
                listener=self._describe(record),
            )

    def remove_listeners(self, event_name: Any = None) -> None:
        name = None if event_name is None else self._name(event_name)
        with self._lock:
            count = self._registry.clear(name)

        log_safely(self._logger, "debug", "listeners_cleared", event_name=name, count=count)

    def override(self, event_name: Any, listener: Any, priority: Optional[int] = None) -> None:
        name = validate_event_name(self._name(event_name))
        with self._lock:
            self._registry.clear(name)
            self.add_listener(name, listener, priority)

    def replace_record(self, old: ListenerRecord, new: ListenerRecord) -> bool:
        with self._lock:
            return self._registry.replace(old, new)

    def has_listeners(self, event_name: Any = None) -> bool:
        if event_name is None:
            return self._registry.has()
        return self._registry.has(self._name(event_name))

    def get_listeners(self, event_name: Any = None) -> Union[List[Any], Dict[str, List[Any]]]:
        if event_name is None:
            return {
                name: [record.listener for record in records]
                for name, records in self._registry.all_records().items()
            }
        return [record.listener for record in self._registry.records(self._name(event_name))]

    def get_listener_records(self, event_name: Any) -> List[ListenerRecord]:
        return self._registry.records(self._name(event_name))

    def get_listener_priority(self, event_name: Any, listener: Any) -> Optional[int]:
        return self._registry.priority_of(self._name(event_name), listener)

    def add_subscriber(self, subscriber: EventSubscriber) -> None:
        for event_name, listener, priority in iter_subscribed_listeners(
            subscriber, self._default_priority
        ):
            self.add_listener(event_name, listener, priority)

    def remove_subscriber(self, subscriber: EventSubscriber) -> None:
        for event_name, listener, _ in iter_subscribed_listeners(
            subscriber, self._default_priority
        ):
            self.remove_listener(event_name, listener)

        log_safely(
            self._logger,
            "debug",
            "subscriber_removed",
            subscriber=type_name(type(subscriber)),
        )

    def prepare(self, event: Any, event_name: Any, payload: Dict[str, Any]) -> Tuple[Any, str]:
        """Normalize a dispatch call into ``(event_object, event_name)``.

        A bare string with no explicit name is a name-only dispatch: the
        payload becomes the arguments of a new GenericEvent. An event object
        dispatched under its own type name makes that type (and its bases)
        known to the registry.

        Raises:
            InvalidInputError: For empty or wildcard event names.
        """
        if event_name is None:
            if isinstance(event, str):
                name = validate_event_name(event)
                return GenericEvent(arguments=dict(payload)), name
            name = event_name_of(event)
        else:
            name = self._name(event_name)

        validate_event_name(name)
        if isinstance(event, type):
            # A class dispatched as the event itself
            if name == type_name(event):
                self._registry.remember_type(event)
        elif not isinstance(event, str) and name == type_name(type(event)):
            self._registry.remember_type(type(event))
        return event, name

    def dispatch(self, event: Any, event_name: Optional[Any] = None, **payload: Any) -> Any:
        event, name = self.prepare(event, event_name, payload)
        self._dispatch(event, name, payload, halt=False)
        return event

    def dispatch_until(self, event: Any, event_name: Optional[Any] = None, **payload: Any) -> Any:
        event, name = self.prepare(event, event_name, payload)
        return self._dispatch(event, name, payload, halt=True)

    def _dispatch(self, event: Any, event_name: str, payload: Dict[str, Any], halt: bool) -> Any:
        start = time.perf_counter()
        with self._lock, bind_dispatch_context(event_name):
            records = self._registry.records(event_name)
            try:
                return self._call_listeners(records, event_name, event, payload, halt)
            finally:
                log_safely(
                    self._logger,
                    "debug",
                    "event_dispatched",
                    event_name=event_name,
                    listener_count=len(records),
                    duration_ms=round((time.perf_counter() - start) * 1000, self._precision),
                )

    def _call_listeners(
        self,
        records: List[ListenerRecord],
        event_name: str,
        event: Any,
        payload: Dict[str, Any],
        halt: bool,
    ) -> Any:
        stoppable = is_stoppable(event)
        if stoppable and records and event.is_propagation_stopped():
            log_safely(self._logger, "debug", "event_already_stopped", event_name=event_name)
            return None

        for record in records:
            if stoppable and event.is_propagation_stopped():
                break

            response = self._call(record, event, event_name, payload)

            # Wrapped listeners are reported by the tracer that wrapped them
            if not isinstance(record.listener, WrappedListener):
                pretty = self._describe(record)
                log_safely(
                    self._logger, "debug", "listener_notified", event_name=event_name, listener=pretty
                )
                if stoppable and event.is_propagation_stopped():
                    log_safely(
                        self._logger,
                        "debug",
                        "listener_stopped_propagation",
                        event_name=event_name,
                        listener=pretty,
                    )

            if halt and response is not None:
                return response

        return None

    def _call(self, record: ListenerRecord, event: Any, event_name: str, payload: Dict[str, Any]) -> Any:
        if isinstance(record.listener, WrappedListener):
            return record.listener(event, event_name, self, **payload)

        func = record.target.resolve(self._resolver)
        return call_listener(func, self._resolver, event, event_name, self, payload)

    @staticmethod
    def _describe(record: ListenerRecord) -> str:
        if isinstance(record.listener, WrappedListener):
            return record.listener.pretty
        return record.target.describe()
