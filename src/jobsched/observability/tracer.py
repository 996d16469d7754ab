"""
Tracers handed to every jobsched component.

A component never imports OpenTelemetry itself. It takes an optional
``tracer`` argument and otherwise builds one with create_tracer(), which
falls back to a NullTracer when OpenTelemetry is missing or the component
was built with ``enable_tracing=False``.

Example:
    >>> class LegacyStore:
    ...     def __init__(self, conn, tracer=None, enable_tracing=True):
    ...         self._tracer = tracer or create_tracer(__name__, enable_tracing)
    ...
    ...     async def fetch_job(self, job_id: int):
    ...         with self._tracer.span("jobsched.legacy_store.fetch_job", {ATTR_JOB_ID: job_id}):
    ...             ...
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator, Mapping
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from opentelemetry.trace import Span

try:
    from opentelemetry import trace

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False
    trace = None  # type: ignore[assignment]

SpanAttributes = Mapping[str, Any]


@runtime_checkable
class Tracer(Protocol):
    """Anything that can open a span around a block of work."""

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]:
        """
        Open a span for the duration of a ``with`` block.

        Args:
            name: Dotted span name, e.g. "jobsched.db_store.save_job"
            attributes: Attributes set when the span starts

        Returns:
            Context manager yielding the live span, or None when not tracing
        """
        ...

    @property
    def enabled(self) -> bool:
        """Whether spans are recorded; callers skip computing extra attributes otherwise."""
        ...


class NullTracer:
    """Tracer that records nothing. Used when tracing is off."""

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> Generator[None, None, None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


def _otel_attributes(attributes: SpanAttributes | None) -> dict[str, Any]:
    # OpenTelemetry rejects None attribute values; optional ids are simply omitted.
    if not attributes:
        return {}
    return {key: value for key, value in attributes.items() if value is not None}


class OpenTelemetryTracer:
    """
    Tracer backed by the globally configured OpenTelemetry provider.

    Exceptions leaving a span are recorded on it and mark it as an error,
    then propagate unchanged.

    Args:
        tracer_name: Instrumentation scope, normally the module's __name__

    Raises:
        ImportError: If OpenTelemetry is not installed
    """

    def __init__(self, tracer_name: str) -> None:
        from opentelemetry import trace as otel_trace

        self.name = tracer_name
        self._tracer = otel_trace.get_tracer(tracer_name)

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> Generator[Span, None, None]:
        with self._tracer.start_as_current_span(
            name,
            attributes=_otel_attributes(attributes),
            record_exception=True,
            set_status_on_exception=True,
        ) as span:
            yield span

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Tracer that keeps every span it opens, for assertions in tests.

    Attributes are kept exactly as passed, None values included.

    Example:
        >>> tracer = MockTracer()
        >>> store = DBStore(engine, tracer=tracer)
        >>> await store.fetch_job(7)
        >>> tracer.attributes_for("jobsched.db_store.fetch_job")
        [{'jobsched.job.id': 7}]
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, SpanAttributes | None]] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> Generator[None, None, None]:
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        """Names of the recorded spans, in the order they were opened."""
        return [name for name, _ in self.spans]

    def attributes_for(self, name: str) -> list[SpanAttributes | None]:
        """Attributes of every recorded span with this name."""
        return [attributes for span_name, attributes in self.spans if span_name == name]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """
    Build the tracer for a component.

    Args:
        name: Instrumentation scope, normally the module's __name__
        enable_tracing: False forces a NullTracer

    Returns:
        OpenTelemetryTracer when enabled and OpenTelemetry is importable,
        NullTracer otherwise
    """
    if enable_tracing and OTEL_AVAILABLE:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "OTEL_AVAILABLE",
    "SpanAttributes",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
]
