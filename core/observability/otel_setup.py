"""
Bookineo OpenTelemetry Setup

Optional tracing for the multi-step operations worth looking at in a trace
viewer: cart checkout, catalog import and language-model calls. Tracing is
switched on only when an OTLP endpoint is configured and the ``otel``
extra is installed; otherwise traced() is a no-op.
"""
from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Iterator, Optional
import logging
import os

logger = logging.getLogger(__name__)

_tracer = None


def setup_otel(
    service_name: str = "bookineo",
    endpoint: Optional[str] = None,
):
    """Install an OTLP-exporting tracer provider. Returns the tracer or None."""
    global _tracer
    otlp_endpoint = endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otlp_endpoint:
        logger.debug("No OTLP endpoint configured, tracing disabled")
        return None

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError:
        logger.warning("OTLP endpoint set but the otel extra is not installed, tracing disabled")
        return None

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(service_name)
    logger.info("Tracing enabled, exporting to %s", otlp_endpoint)
    return _tracer


@contextmanager
def traced(name: str, **attributes: Any) -> Iterator[Any]:
    """Run a block inside a span named ``bookineo.<name>``.

    Yields the span (or None without a tracer) so callers can add
    attributes discovered along the way::

        with traced("checkout", user_id=user.id) as span:
            ...
            if span is not None:
                span.set_attribute("rental_count", len(ids))
    """
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(f"bookineo.{name}", attributes=attributes) as span:
        yield span
