"""OpenTelemetry initialization and span wrappers for store operations."""

from __future__ import annotations

import functools
import logging
import os

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

from greenlight.data.errors import DataError, StoreError

logger = logging.getLogger(__name__)

_TRACER_NAME = "greenlight"

# True once the global TracerProvider has been installed by this process.
_tracer_provider_installed: bool = False


def init_telemetry(service_name: str = "greenlight") -> trace.Tracer:
    """Initialize OpenTelemetry tracing.

    When OTEL_EXPORTER_OTLP_ENDPOINT is set, installs a TracerProvider with an
    OTLP gRPC exporter on the first call. Otherwise the global no-op provider
    stays in place and every span is a silent no-op.

    Args:
        service_name: Reported as ``service.name`` on exported spans.

    Returns:
        A Tracer instance (real or no-op depending on config)
    """
    global _tracer_provider_installed

    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")

    if not endpoint:
        logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set, using no-op tracer")
        return trace.get_tracer(service_name)

    if _tracer_provider_installed:
        logger.debug("TracerProvider already initialized for service=%s", service_name)
        return trace.get_tracer(service_name)

    # Import exporter only when needed
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))

    trace.set_tracer_provider(provider)
    _tracer_provider_installed = True
    logger.info("Telemetry initialized: endpoint=%s", endpoint)

    return trace.get_tracer(service_name)


def _is_failure(exc: BaseException) -> bool:
    return isinstance(exc, StoreError) or not isinstance(exc, DataError)


class store_span:
    """Create a span for one store operation.

    Usable as a context manager or as a decorator on async functions::

        with store_span("movies.get"):
            ...

        @store_span("movies.get")
        async def get(self, movie_id): ...

    The span is named ``greenlight.store.<operation>``. Store failures and
    unexpected exceptions mark the span as an error; domain outcomes such as
    ``RecordNotFoundError`` leave its status unset. Every exception is re-raised.
    """

    def __init__(self, operation: str) -> None:
        self._operation = operation
        self._span_name = f"greenlight.store.{operation}"
        self._span: trace.Span | None = None
        self._token: object | None = None

    def __enter__(self) -> trace.Span:
        tracer = trace.get_tracer(_TRACER_NAME)
        self._span = tracer.start_span(self._span_name)
        self._span.set_attribute("db.system", "postgresql")
        self._span.set_attribute("db.operation", self._operation)
        self._token = trace.context_api.attach(trace.set_span_in_context(self._span))
        return self._span

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._span is None:
            return
        if exc_val is not None and _is_failure(exc_val):
            self._span.set_status(trace.StatusCode.ERROR, str(exc_val))
            self._span.record_exception(exc_val)
        self._span.end()
        if self._token is not None:
            trace.context_api.detach(self._token)

    def __call__(self, func):  # noqa: ANN001, ANN204
        # A fresh instance per call keeps concurrent invocations from sharing
        # _span/_token state.
        operation = self._operation

        @functools.wraps(func)
        async def _wrapper(*args, **kwargs):  # noqa: ANN002, ANN003, ANN202
            with store_span(operation):
                return await func(*args, **kwargs)

        return _wrapper
