"""Configuration module - public API.

Exports:
    settings: Singleton Settings instance
    get_settings: Cached provider returning the singleton
    Settings: Main settings class (for testing/overrides)
    EventSettings: Event dispatch settings class
"""

from tracebus.configuration.events import EventSettings
from tracebus.configuration.settings import Settings, get_settings, settings

__all__ = ["Settings", "EventSettings", "get_settings", "settings"]
