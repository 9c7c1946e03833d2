"""Exceptions raised by the event system.

Diagnostic queries (``get_not_called_listeners`` and friends) never raise
these: failures there are logged and degrade to empty results.
"""


class EventError(Exception):
    """Base exception for all event-system errors.

    Example:
        try:
            dispatcher.dispatch(event)
        except EventError as e:
            logger.error("dispatch_failed", error=str(e))
    """

    pass


class InvalidInputError(EventError, ValueError):
    """Raised for unusable input: empty or wildcard event names, listener
    targets that are not callable or cannot be located, malformed
    subscribers.

    Example:
        >>> dispatcher.dispatch(event, "*")
        Traceback (most recent call last):
        ...
        InvalidInputError: Event name must be a non-empty, non-wildcard string
    """

    pass


class ResolutionError(EventError, TypeError):
    """Raised when a listener parameter cannot be bound to any contextual
    argument, registered service or default value."""

    pass


class NotInstantiableError(EventError):
    """Raised when a class referenced by a listener target cannot be
    constructed (abstract class, unresolvable constructor parameters)."""

    pass
