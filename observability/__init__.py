"""Observability infrastructure: logging setup and optional tracing.

setup_logging / request_context:
    Console + rotating file logging, text or JSON, with a request ID
    injected into every record.

setup_tracing / trace_operation:
    Optional Logfire spans with PydanticAI instrumentation.

Enable tracing via configuration:
    ENABLE_LOGFIRE=true
    LOGFIRE_TOKEN=your-token  # Optional

Example:
    >>> from observability import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True, service_name="feedscout")
    >>> with trace_operation("content_extraction"):
    ...     pass
"""

from observability.logging import request_context, setup_logging
from observability.tracing import setup_tracing, trace_operation, TracingContext

__all__ = [
    "request_context",
    "setup_logging",
    "setup_tracing",
    "trace_operation",
    "TracingContext",
]
