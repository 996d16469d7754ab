"""
Unit tests for the tracers.

Tests cover:
- Protocol conformance of every tracer
- NullTracer and MockTracer behavior
- OpenTelemetryTracer attribute handling and error recording
- create_tracer() selection
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from jobsched.observability import (
    ATTR_JOB_ID,
    ATTR_STORE_CLASS,
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

requires_otel = pytest.mark.skipif(not OTEL_AVAILABLE, reason="OTEL not installed")


class TestProtocol:
    @pytest.mark.parametrize("tracer", [NullTracer(), MockTracer()])
    def test_builtin_tracers(self, tracer):
        assert isinstance(tracer, Tracer)

    @requires_otel
    def test_otel_tracer(self):
        assert isinstance(OpenTelemetryTracer(__name__), Tracer)


class TestNullTracer:
    def test_span_yields_none(self):
        with NullTracer().span("jobsched.test", {ATTR_JOB_ID: 1}) as span:
            assert span is None

    def test_disabled(self):
        assert NullTracer().enabled is False

    def test_exceptions_propagate(self):
        with pytest.raises(ValueError, match="boom"), NullTracer().span("jobsched.test"):
            raise ValueError("boom")


class TestMockTracer:
    """MockTracer keeps what it was given."""

    def test_records_spans_in_order(self):
        tracer = MockTracer()
        with tracer.span("jobsched.outer", {ATTR_JOB_ID: 3}), tracer.span("jobsched.inner"):
            pass

        assert tracer.spans == [("jobsched.outer", {ATTR_JOB_ID: 3}), ("jobsched.inner", None)]
        assert tracer.span_names == ["jobsched.outer", "jobsched.inner"]
        assert tracer.enabled is True

    def test_attributes_for(self):
        tracer = MockTracer()
        for job_id in (1, 2):
            with tracer.span("jobsched.db_store.fetch_job", {ATTR_JOB_ID: job_id}):
                pass
        with tracer.span("jobsched.db_store.save_job"):
            pass

        assert tracer.attributes_for("jobsched.db_store.fetch_job") == [
            {ATTR_JOB_ID: 1},
            {ATTR_JOB_ID: 2},
        ]
        assert tracer.attributes_for("jobsched.unknown") == []

    def test_keeps_none_values(self):
        tracer = MockTracer()
        with tracer.span("jobsched.test", {ATTR_STORE_CLASS: None}):
            pass

        assert tracer.attributes_for("jobsched.test") == [{ATTR_STORE_CLASS: None}]

    def test_clear(self):
        tracer = MockTracer()
        with tracer.span("jobsched.test"):
            pass

        tracer.clear()

        assert tracer.spans == []


@requires_otel
class TestOpenTelemetryTracer:
    """Tests for OpenTelemetryTracer."""

    def test_yields_real_span(self):
        with OpenTelemetryTracer(__name__).span("jobsched.test", {ATTR_JOB_ID: 1}) as span:
            assert span is not None
            assert hasattr(span, "set_attribute")

    def test_drops_none_attributes(self):
        tracer = OpenTelemetryTracer(__name__)
        tracer._tracer = MagicMock()

        with tracer.span("jobsched.test", {ATTR_JOB_ID: 5, ATTR_STORE_CLASS: None}):
            pass

        tracer._tracer.start_as_current_span.assert_called_once_with(
            "jobsched.test",
            attributes={ATTR_JOB_ID: 5},
            record_exception=True,
            set_status_on_exception=True,
        )

    def test_exceptions_propagate(self):
        with pytest.raises(RuntimeError), OpenTelemetryTracer(__name__).span("jobsched.test"):
            raise RuntimeError("failed")

    def test_enabled(self):
        tracer = OpenTelemetryTracer("jobsched.stores.db")

        assert tracer.enabled is True
        assert tracer.name == "jobsched.stores.db"


class TestCreateTracer:
    def test_disabled(self):
        assert isinstance(create_tracer(__name__, enable_tracing=False), NullTracer)

    @requires_otel
    def test_enabled_with_otel(self):
        assert isinstance(create_tracer(__name__), OpenTelemetryTracer)

    @pytest.mark.skipif(OTEL_AVAILABLE, reason="OTEL is installed")
    def test_enabled_without_otel(self):
        assert isinstance(create_tracer(__name__), NullTracer)

    @pytest.mark.skipif(OTEL_AVAILABLE, reason="OTEL is installed")
    def test_otel_tracer_needs_otel(self):
        with pytest.raises(ImportError):
            OpenTelemetryTracer(__name__)
