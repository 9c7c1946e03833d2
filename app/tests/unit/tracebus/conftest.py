"""Fixtures for tracebus tests."""

import pytest
from unittest.mock import MagicMock

from tracebus.configuration import EventSettings, Settings
from tracebus.events.dispatcher import EventDispatcher
from tracebus.events.resolver import Resolver
from tracebus.events.traceable import TraceableEventDispatcher


@pytest.fixture
def settings_factory():
    """Factory for Settings instances with event overrides."""

    def _factory(
        default_priority: int = 0,
        tracing_enabled: bool = False,
        duration_precision: int = 2,
        prefix: str = "",
    ) -> Settings:
        events = EventSettings(
            EVENTS_DEFAULT_PRIORITY=default_priority,
            EVENTS_TRACING_ENABLED=tracing_enabled,
            EVENTS_DURATION_PRECISION=duration_precision,
        )
        return Settings(PREFIX=prefix, events=events)

    return _factory


@pytest.fixture
def mock_logger():
    """Mock structlog logger recording every log call."""
    return MagicMock()


@pytest.fixture
def resolver():
    return Resolver()


@pytest.fixture
def dispatcher(mock_logger, resolver, settings_factory):
    """Plain dispatcher with an injected mock logger."""
    return EventDispatcher(resolver=resolver, logger=mock_logger, settings=settings_factory())


@pytest.fixture
def traceable(dispatcher, mock_logger, settings_factory):
    """Traceable dispatcher decorating the ``dispatcher`` fixture."""
    return TraceableEventDispatcher(dispatcher, logger=mock_logger, settings=settings_factory())


@pytest.fixture
def logged_events():
    """Return the event names logged on a mock logger at a given level."""

    def _logged(logger: MagicMock, level: str = "debug"):
        return [c.args[0] for c in getattr(logger, level).call_args_list]

    return _logged
