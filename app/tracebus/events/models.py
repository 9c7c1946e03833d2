"""Event models for the event system.

Provides the stoppable ``Event`` base class, ``GenericEvent`` for
subject/argument style notifications, and helpers deriving event names from
event objects and types.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Protocol, runtime_checkable

from tracebus.events.errors import InvalidInputError

WILDCARD = "*"


@runtime_checkable
class StoppableEvent(Protocol):
    """Capability of events that can halt delivery to remaining listeners."""

    def is_propagation_stopped(self) -> bool: ...


@dataclass
class Event:
    """Base class for event objects.

    Any value can be dispatched; subclassing Event only adds the stoppable
    capability. The dispatcher reads the flag after every listener, it never
    sets it itself.
    """

    _propagation_stopped: bool = field(default=False, init=False, repr=False)

    def is_propagation_stopped(self) -> bool:
        return self._propagation_stopped

    def stop_propagation(self) -> None:
        """Prevent listeners after the current one from being called."""
        self._propagation_stopped = True


@dataclass
class GenericEvent(Event):
    """Event encapsulating a subject and a mapping of arguments.

    Arguments are reachable through the accessor methods or mapping syntax:

        event = GenericEvent(subject=user, arguments={"source": "signup"})
        event["source"]          # "signup"
        event["welcome"] = True
        "welcome" in event       # True
    """

    subject: Any = None
    arguments: Dict[str, Any] = field(default_factory=dict)

    def get_subject(self) -> Any:
        return self.subject

    def get_argument(self, key: str) -> Any:
        """Get argument by key.

        Raises:
            KeyError: If the argument does not exist.
        """
        if self.has_argument(key):
            return self.arguments[key]

        raise KeyError(f'Argument "{key}" not found.')

    def set_argument(self, key: str, value: Any) -> "GenericEvent":
        self.arguments[key] = value
        return self

    def get_arguments(self) -> Dict[str, Any]:
        return self.arguments

    def set_arguments(self, arguments: Optional[Dict[str, Any]] = None) -> "GenericEvent":
        self.arguments = dict(arguments or {})
        return self

    def has_argument(self, key: str) -> bool:
        return key in self.arguments

    def __getitem__(self, key: str) -> Any:
        return self.get_argument(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set_argument(key, value)

    def __delitem__(self, key: str) -> None:
        self.arguments.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self.arguments

    def __iter__(self) -> Iterator[str]:
        return iter(self.arguments)


def is_stoppable(event: Any) -> bool:
    """Check whether an event exposes ``is_propagation_stopped()``.

    Classes dispatched as events are never stoppable, even when they define
    the method.
    """
    if isinstance(event, type):
        return False
    return isinstance(event, StoppableEvent)


def type_name(cls: type) -> str:
    """Fully-qualified name of a type, e.g. ``"myapp.events.UserCreated"``."""
    return f"{cls.__module__}.{cls.__qualname__}"


def event_name_of(event: Any) -> str:
    """Derive the event name used as registry key for an event object.

    Strings are names already, types map to their qualified name and any
    other object maps to the qualified name of its type.
    """
    if isinstance(event, str):
        return event
    if isinstance(event, type):
        return type_name(event)
    return type_name(type(event))


def validate_event_name(event_name: Any) -> str:
    """Return ``event_name`` if it can be dispatched.

    Raises:
        InvalidInputError: For non-strings, empty names and the wildcard.
    """
    if not isinstance(event_name, str) or not event_name or event_name == WILDCARD:
        raise InvalidInputError(
            f"Event name must be a non-empty, non-wildcard string, got {event_name!r}"
        )
    return event_name
