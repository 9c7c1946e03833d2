"""Abstract contracts of the event system.

``EventDispatcherInterface`` is implemented in full by both the plain
dispatcher and its traceable decorator, so a decorator can stand in for the
dispatcher anywhere without attribute forwarding tricks.
"""

from abc import ABC, abstractmethod
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from tracebus.events.registry import ListenerRecord
from tracebus.events.resolver import Resolver

SubscribedEvents = Mapping[str, Union[str, tuple, list]]


class EventSubscriber(ABC):
    """An object declaring a batch of event to listener-method mappings.

    Each value is one of:

    - ``"method_name"``
    - ``("method_name", priority)``
    - a list of the two forms above

    Example:
        class MailSubscriber(EventSubscriber):
            def get_subscribed_events(self):
                return {
                    "user.created": "send_welcome",
                    "user.deleted": [("archive", 10), "send_goodbye"],
                }
    """

    @abstractmethod
    def get_subscribed_events(self) -> SubscribedEvents:
        """Return the event name to listener-method mapping."""


class EventDispatcherInterface(ABC):
    """Operations every dispatcher (or dispatcher decorator) exposes."""

    @property
    @abstractmethod
    def resolver(self) -> Resolver:
        """Resolver used to bind listener arguments."""

    @property
    @abstractmethod
    def lock(self) -> RLock:
        """Re-entrant lock guarding registry changes and dispatches."""

    @abstractmethod
    def add_listener(self, event_name: Any, listener: Any, priority: Optional[int] = None) -> None:
        """Register ``listener`` for ``event_name`` (a name or an event type)."""

    @abstractmethod
    def remove_listener(self, event_name: Any, listener: Any) -> None:
        """Remove the first registration of ``listener``; no-op if absent."""

    @abstractmethod
    def remove_listeners(self, event_name: Any = None) -> None:
        """Remove every listener registered under ``event_name``, or all
        listeners when None."""

    @abstractmethod
    def override(self, event_name: Any, listener: Any, priority: Optional[int] = None) -> None:
        """Replace every listener of ``event_name`` with ``listener``."""

    @abstractmethod
    def replace_record(self, old: ListenerRecord, new: ListenerRecord) -> bool:
        """Swap a registry record in place, keeping its position.

        Returns False when ``old`` is no longer registered.
        """

    @abstractmethod
    def has_listeners(self, event_name: Any = None) -> bool:
        """Check for listeners on one event, or on any event when None."""

    @abstractmethod
    def get_listeners(self, event_name: Any = None) -> Union[List[Any], Dict[str, List[Any]]]:
        """Sorted listeners of one event, or every event mapped to its listeners."""

    @abstractmethod
    def get_listener_records(self, event_name: Any) -> List[ListenerRecord]:
        """Sorted listener records of one event, supertype listeners included."""

    @abstractmethod
    def get_listener_priority(self, event_name: Any, listener: Any) -> Optional[int]:
        """Priority of ``listener`` for ``event_name`` or None when not registered."""

    @abstractmethod
    def add_subscriber(self, subscriber: EventSubscriber) -> None:
        """Register every listener declared by ``subscriber``."""

    @abstractmethod
    def remove_subscriber(self, subscriber: EventSubscriber) -> None:
        """Remove every listener declared by ``subscriber``."""

    @abstractmethod
    def prepare(self, event: Any, event_name: Any, payload: Dict[str, Any]) -> Tuple[Any, str]:
        """Normalize a dispatch call into ``(event_object, event_name)``."""

    @abstractmethod
    def dispatch(self, event: Any, event_name: Optional[str] = None, **payload: Any) -> Any:
        """Notify listeners in priority order and return the event."""

    @abstractmethod
    def dispatch_until(self, event: Any, event_name: Optional[str] = None, **payload: Any) -> Any:
        """Notify listeners until one returns a non-None response, and return it."""

    def listen(self, event_name: Any, priority: Optional[int] = None) -> Callable[[Callable], Callable]:
        """Decorator registering the decorated callable as a listener.

        Returns:
            Decorator returning the original function unchanged.

        Usage:
            @dispatcher.listen("user.created", priority=10)
            def send_welcome(event):
                ...
        """

        def decorator(listener: Callable) -> Callable:
            self.add_listener(event_name, listener, priority)
            return listener

        return decorator
