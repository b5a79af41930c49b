"""Arkive Observability module.

Provides OpenTelemetry tracing configuration.
"""

from arkive.observability.tracing import configure_tracing, is_tracing_enabled

__all__ = ["configure_tracing", "is_tracing_enabled"]
