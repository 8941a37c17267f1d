"""Tests for greenlight.core.telemetry span wrappers."""

from __future__ import annotations

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from greenlight.core import telemetry
from greenlight.core.telemetry import init_telemetry, store_span
from greenlight.data.errors import (
    EditConflictError,
    RecordNotFoundError,
    StoreError,
    StoreTimeoutError,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def exporter(monkeypatch):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(
        telemetry.trace, "get_tracer", lambda name, *a, **kw: provider.get_tracer(name)
    )
    return exporter


def test_context_manager_records_span(exporter):
    with store_span("movies.get") as span:
        assert span.is_recording()

    (finished,) = exporter.get_finished_spans()
    assert finished.name == "greenlight.store.movies.get"
    assert finished.attributes["db.system"] == "postgresql"
    assert finished.attributes["db.operation"] == "movies.get"
    assert finished.status.status_code == trace.StatusCode.UNSET


async def test_decorator_records_exception_and_reraises(exporter):
    @store_span("movies.delete")
    async def failing() -> None:
        raise LookupError("boom")

    with pytest.raises(LookupError):
        await failing()

    (finished,) = exporter.get_finished_spans()
    assert finished.status.status_code == trace.StatusCode.ERROR
    assert finished.events[0].name == "exception"


@pytest.mark.parametrize("error", [RecordNotFoundError(7), EditConflictError(7, 2)])
async def test_domain_outcome_leaves_status_unset(exporter, error):
    @store_span("movies.get")
    async def lookup() -> None:
        raise error

    with pytest.raises(type(error)):
        await lookup()

    (finished,) = exporter.get_finished_spans()
    assert finished.status.status_code == trace.StatusCode.UNSET
    assert not finished.events


@pytest.mark.parametrize("error", [StoreError("down"), StoreTimeoutError("slow")])
def test_store_failure_marks_span_as_error(exporter, error):
    with pytest.raises(StoreError), store_span("movies.update"):
        raise error

    (finished,) = exporter.get_finished_spans()
    assert finished.status.status_code == trace.StatusCode.ERROR


async def test_decorator_returns_result(exporter):
    @store_span("movies.get_all")
    async def listing() -> list[int]:
        return [1, 2]

    assert await listing() == [1, 2]
    assert len(exporter.get_finished_spans()) == 1


def test_init_without_endpoint_is_noop(monkeypatch):
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
    tracer = init_telemetry("greenlight-test")
    assert tracer is not None
    assert telemetry._tracer_provider_installed is False
