"""
Observability utilities for jobsched.

Provides the composition-based tracer used by every component and the
standard attribute names for spans.

Note:
    OpenTelemetry is an optional dependency. Install with
    ``pip install jobsched-py[telemetry]``; without it every component falls
    back to a NullTracer.
"""

from jobsched.observability.attributes import (
    ATTR_JOB_COUNT,
    ATTR_JOB_GROUP,
    ATTR_JOB_HOOK,
    ATTR_JOB_ID,
    ATTR_JOB_STATUS,
    ATTR_LOGGER_CLASS,
    ATTR_MIGRATION_BATCH_SIZE,
    ATTR_MIGRATION_DESTINATION_JOB_ID,
    ATTR_MIGRATION_DRY_RUN,
    ATTR_MIGRATION_SOURCE_JOB_ID,
    ATTR_MIGRATION_STATE,
    ATTR_OPTION_NAME,
    ATTR_REQUESTED_CLASS,
    ATTR_STORE_CLASS,
)
from jobsched.observability.tracer import (
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    SpanAttributes,
    Tracer,
    create_tracer,
)

__all__ = [
    "OTEL_AVAILABLE",
    # Tracer
    "SpanAttributes",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_JOB_ID",
    "ATTR_JOB_HOOK",
    "ATTR_JOB_GROUP",
    "ATTR_JOB_STATUS",
    "ATTR_JOB_COUNT",
    "ATTR_STORE_CLASS",
    "ATTR_LOGGER_CLASS",
    "ATTR_REQUESTED_CLASS",
    "ATTR_OPTION_NAME",
    "ATTR_MIGRATION_BATCH_SIZE",
    "ATTR_MIGRATION_SOURCE_JOB_ID",
    "ATTR_MIGRATION_DESTINATION_JOB_ID",
    "ATTR_MIGRATION_DRY_RUN",
    "ATTR_MIGRATION_STATE",
]
