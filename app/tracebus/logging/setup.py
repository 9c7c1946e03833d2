"""Structlog setup for tracebus.

Dispatchers log through structlog with the dispatch context (event name,
nesting depth) merged into every entry. Output is rendered for humans in
development and as JSON lines in production; under pytest nothing is
emitted.

Usage:
    from tracebus.logging import configure_logging, get_module_logger

    configure_logging(log_level="DEBUG")

    logger = get_module_logger()
    logger.debug("listener_registered", event_name="user.created", priority=10)
"""

import inspect
import logging
import sys
from types import ModuleType
from typing import Any, List, Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.typing import Processor

from tracebus.configuration import Settings, get_settings

# Above CRITICAL, so every record is dropped
SILENT = logging.CRITICAL + 1


def _is_test_environment() -> bool:
    return "pytest" in sys.modules


def _processors(prod_mode: bool) -> List[Processor]:
    renderer: Processor = (
        structlog.processors.JSONRenderer() if prod_mode else structlog.dev.ConsoleRenderer()
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(
    log_level: Optional[str] = None,
    is_production: Optional[bool] = None,
    settings: Optional[Settings] = None,
) -> BoundLogger:
    """Configure structlog and the stdlib root logger it writes through.

    Args:
        log_level: Level name overriding ``settings.LOG_LEVEL``.
        is_production: Force JSON (True) or console (False) rendering instead
            of deciding from ``settings.is_production``.
        settings: Settings instance, the process singleton when omitted.

    Returns:
        A logger bound to the new configuration.
    """
    if _is_test_environment():
        structlog.configure(
            processors=_processors(prod_mode=False),
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(format="%(message)s", level=SILENT, force=True)
        logging.root.setLevel(SILENT)
        return structlog.stdlib.get_logger()

    settings = settings or get_settings()
    if is_production is None:
        is_production = settings.is_production
    level_name = (log_level or settings.LOG_LEVEL).upper()

    structlog.configure(
        processors=_processors(prod_mode=is_production),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level_name, logging.INFO),
    )
    return structlog.stdlib.get_logger()


logger: BoundLogger = configure_logging()


def _calling_module() -> Optional[ModuleType]:
    # Two frames up: past this helper and the public function calling it
    frame = inspect.currentframe()
    for _ in range(2):
        if frame is None:
            return None
        frame = frame.f_back
    if frame is None:
        return None
    return inspect.getmodule(frame)


def get_logger(name: Optional[str] = None) -> BoundLogger:
    """Get a logger bound to ``logger_name``, the calling module's name by default."""
    if name:
        return logger.bind(logger_name=name)

    module = _calling_module()
    return logger.bind(logger_name=module.__name__ if module else "unknown")


def get_module_logger() -> BoundLogger:
    """Get a logger for the calling module.

    Example:
        # In tracebus/events/traceable.py
        module_logger = get_module_logger()
        # context: {"component": "traceable", "module_path": "tracebus.events.traceable"}
    """
    module = _calling_module()
    if module is None:
        return logger.bind(component="unknown")

    return logger.bind(
        component=module.__name__.rsplit(".", 1)[-1],
        module_path=module.__name__,
    )


def log_safely(log: Any, level: str, event: str, **fields: Any) -> None:
    """Emit a log entry, ignoring any failure of the logger itself.

    Used on every dispatch path so a misconfigured logger never alters a dispatch.
    """
    try:
        getattr(log, level)(event, **fields)
    except Exception:  # noqa: BLE001
        return
