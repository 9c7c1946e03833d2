"""Event dispatch settings."""

from pydantic import Field

from tracebus.configuration.base import InfrastructureSettings


class EventSettings(InfrastructureSettings):
    """Event dispatcher configuration.

    Environment Variables:
        EVENTS_DEFAULT_PRIORITY: Priority given to listeners registered
            without one (default: 0). Higher values run earlier.
        EVENTS_TRACING_ENABLED: Wrap the dispatcher built by
            ``get_event_dispatcher`` in a TraceableEventDispatcher
            (default: False)
        EVENTS_DURATION_PRECISION: Decimals kept on millisecond durations
            (default: 2)

    Example:
        ```python
        from tracebus.configuration import get_settings

        settings = get_settings()

        if settings.events.tracing_enabled:
            # Build a traceable dispatcher...
        ```
    """

    default_priority: int = Field(
        default=0,
        alias="EVENTS_DEFAULT_PRIORITY",
        description="Priority used when a listener is registered without one",
    )
    tracing_enabled: bool = Field(
        default=False,
        alias="EVENTS_TRACING_ENABLED",
        description="Decorate dispatchers with call tracing",
    )
    duration_precision: int = Field(
        default=2,
        alias="EVENTS_DURATION_PRECISION",
        description="Decimals kept on millisecond durations",
    )
