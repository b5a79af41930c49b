"""Arkive object storage OpenTelemetry tracing integration.

Provides the tracing decorator applied to backend operations.

Security:
    - Never export absolute filesystem paths in span attributes
    - Object keys are exported only as SHA256 digests (backup names may be
      sensitive)
    - No secrets or signed URLs in any span attribute
"""

from __future__ import annotations

import functools
import hashlib
import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace

from arkive.observability.tracing import is_tracing_enabled

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_LIST_OPERATIONS = frozenset({"list_objects", "list_common_prefixes"})


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace storage operations with OpenTelemetry.

    The decorated method must take (bucket, key_or_prefix) as its first two
    positional arguments after self.

    Args:
        operation: Operation name (e.g., "put_object", "list_objects").

    Returns:
        Decorated function that emits OTel spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, bucket: str, key: str, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, bucket, key, *args, **kwargs)

            tracer = trace.get_tracer("arkive.object_store")
            span_name = f"arkive.object_store.{operation}"

            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("arkive.bucket", bucket)
                key_sha256 = hashlib.sha256(key.encode("utf-8")).hexdigest()
                span.set_attribute("arkive.object_key_sha256", key_sha256)
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))

                try:
                    result = func(self, bucket, key, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                _add_result_attributes(span, result, operation)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any, operation: str) -> None:
    """Add result-based attributes to span safely.

    Only counts and booleans are added; never keys or URLs.
    """
    if operation in _LIST_OPERATIONS and isinstance(result, list):
        span.set_attribute("arkive.object_count", len(result))
    elif operation == "object_exists" and isinstance(result, bool):
        span.set_attribute("arkive.object_exists", result)
