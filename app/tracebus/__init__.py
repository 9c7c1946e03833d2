"""tracebus - in-process event dispatch with optional call tracing."""
