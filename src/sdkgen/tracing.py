"""OpenTelemetry tracing setup for sdkgen.

Every external process and registry request runs inside a span so a slow
build or a hung compiler shows up in traces.

Design follows Function Core / Imperative Shell:
- Pure functions: build_resource, resolve_exporter_type, process_attributes,
  process_result_attributes, artifact_attributes. They compute plain dicts with no
  OTel SDK imports.
- Imperative shell (internal): _create_tracer_provider builds a provider
  without setting it globally, enabling isolated testing.
- Imperative shell (public): init_tracing, get_tracer, shutdown_tracing.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import TYPE_CHECKING

from sdkgen import __version__

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.trace import Tracer

    from sdkgen.models import ArtifactVersion
    from sdkgen.process import ProcessInvocation, ProcessResult

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SERVICE_NAME = "sdkgen"
SERVICE_VERSION = __version__

SDKGEN_OTEL_EXPORTER_ENV = "SDKGEN_OTEL_EXPORTER"
SDKGEN_OTEL_ENDPOINT_ENV = "SDKGEN_OTEL_ENDPOINT"


# ---------------------------------------------------------------------------
# Enum
# ---------------------------------------------------------------------------


class ExporterType(Enum):
    """Supported trace exporter backends."""

    CONSOLE = "console"
    OTLP_GRPC = "otlp_grpc"
    OTLP_HTTP = "otlp_http"
    NONE = "none"


# ---------------------------------------------------------------------------
# Pure functions (no OTel SDK imports)
# ---------------------------------------------------------------------------


def build_resource(
    service_name: str = SERVICE_NAME,
    service_version: str = SERVICE_VERSION,
    extra_attributes: dict[str, str] | None = None,
) -> dict[str, str]:
    """Compute resource attributes as a plain dict.

    ``service.name`` and ``service.version`` always come from the explicit
    parameters, even if *extra_attributes* contains those keys.
    """
    attrs: dict[str, str] = {}
    if extra_attributes:
        attrs.update(extra_attributes)
    attrs["service.name"] = service_name
    attrs["service.version"] = service_version
    return attrs


def resolve_exporter_type(exporter: ExporterType | None = None) -> ExporterType:
    """Determine the exporter type.

    Resolution order:

    1. Explicit *exporter* parameter.
    2. ``SDKGEN_OTEL_EXPORTER`` environment variable.
    3. Default: ``ExporterType.NONE``. The MCP server speaks on stdout, so
       console spans must be opted into.

    Raises:
        ValueError: If the environment variable contains an unrecognised value.
    """
    if exporter is not None:
        return exporter

    env_value = os.environ.get(SDKGEN_OTEL_EXPORTER_ENV)
    if env_value is not None:
        try:
            return ExporterType(env_value)
        except ValueError:
            valid = ", ".join(e.value for e in ExporterType)
            msg = f"Invalid {SDKGEN_OTEL_EXPORTER_ENV} value {env_value!r}. Valid options: {valid}"
            raise ValueError(msg) from None

    return ExporterType.NONE


def process_attributes(invocation: ProcessInvocation) -> dict[str, str | float | bool]:
    """Build ``sdkgen.process.*`` span attributes for an external command."""
    return {
        "sdkgen.process.command": invocation.command,
        "sdkgen.process.args": " ".join(invocation.args),
        "sdkgen.process.cwd": str(invocation.cwd),
        "sdkgen.process.timeout_seconds": invocation.timeout_seconds,
        "sdkgen.process.shell": invocation.shell,
    }


def process_result_attributes(result: ProcessResult) -> dict[str, int | bool]:
    """Build span attributes describing how an external command ended."""
    attrs: dict[str, int | bool] = {
        "sdkgen.process.success": result.success,
        "sdkgen.process.timed_out": result.timed_out,
        "sdkgen.process.stdout_length": len(result.stdout),
        "sdkgen.process.stderr_length": len(result.stderr),
    }
    if result.exit_code is not None:
        attrs["sdkgen.process.exit_code"] = result.exit_code
    return attrs


def artifact_attributes(version: ArtifactVersion) -> dict[str, str | bool]:
    """Build ``sdkgen.artifact.*`` span attributes for a registry artifact."""
    return {
        "sdkgen.artifact.group_id": version.group_id,
        "sdkgen.artifact.artifact_id": version.artifact_id,
        "sdkgen.artifact.version": version.version,
        "sdkgen.artifact.stable": version.stable,
    }


# ---------------------------------------------------------------------------
# Imperative shell (internal)
# ---------------------------------------------------------------------------


def _create_tracer_provider(
    resource_attrs: dict[str, str],
    exporter_type: ExporterType,
    endpoint: str | None = None,
) -> TracerProvider:
    """Build a ``TracerProvider`` without setting it globally."""
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider

    resource = Resource.create(resource_attrs)
    provider = TracerProvider(resource=resource)

    if exporter_type is ExporterType.CONSOLE:
        import sys

        from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))

    elif exporter_type is ExporterType.OTLP_GRPC:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        exporter_grpc = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
        provider.add_span_processor(BatchSpanProcessor(exporter_grpc))

    elif exporter_type is ExporterType.OTLP_HTTP:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        exporter_http = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
        provider.add_span_processor(BatchSpanProcessor(exporter_http))

    # ExporterType.NONE: no processors added (no-op provider).

    return provider


# ---------------------------------------------------------------------------
# Imperative shell (public)
# ---------------------------------------------------------------------------


def init_tracing(
    exporter: ExporterType | None = None,
    endpoint: str | None = None,
    service_name: str = SERVICE_NAME,
    service_version: str = SERVICE_VERSION,
) -> None:
    """Create and globally register a ``TracerProvider``.

    Safe to call multiple times; each call shuts down and replaces the
    previous provider.
    """
    from opentelemetry import trace

    if endpoint is None:
        endpoint = os.environ.get(SDKGEN_OTEL_ENDPOINT_ENV)

    resource_attrs = build_resource(service_name, service_version)
    exporter_type = resolve_exporter_type(exporter)
    provider = _create_tracer_provider(resource_attrs, exporter_type, endpoint)

    current = trace.get_tracer_provider()
    if hasattr(current, "shutdown"):
        current.shutdown()

    # Reset the set-once guard so set_tracer_provider accepts the new provider.
    once = trace._TRACER_PROVIDER_SET_ONCE
    with once._lock:
        once._done = False

    trace.set_tracer_provider(provider)


def get_tracer(name: str = "sdkgen") -> Tracer:
    """Return a tracer from the globally registered provider.

    Without ``init_tracing`` the default no-op provider is used.
    """
    from opentelemetry import trace

    return trace.get_tracer(name)


def shutdown_tracing() -> None:
    """Flush pending spans and shut down the global tracer provider."""
    from opentelemetry import trace

    provider = trace.get_tracer_provider()
    if hasattr(provider, "shutdown"):
        provider.shutdown()
