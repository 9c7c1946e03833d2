"""Top-level tracebus settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from tracebus.configuration.events import EventSettings


class Settings(BaseSettings):
    """All tracebus settings, grouped by concern.

    Environment Variables:
        PREFIX: Deployment prefix; empty means production
        LOG_LEVEL: Level for dispatcher logs (DEBUG shows every listener call)

    Nested groups:
        events: EventSettings, read from ``EVENTS_*`` variables

    Example:
        ```python
        from tracebus.configuration import get_settings

        settings = get_settings()
        if settings.events.tracing_enabled and not settings.is_production:
            ...
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"

    events: EventSettings

    def __init__(self, **kwargs):
        # Groups read their own environment variables unless passed in
        kwargs.setdefault("events", EventSettings())
        super().__init__(**kwargs)

    @property
    def is_production(self) -> bool:
        """True when no deployment prefix is set."""
        return not self.PREFIX


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, loaded from the environment once."""
    return Settings()


settings = get_settings()
