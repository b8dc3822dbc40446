"""OpenTelemetry export for FastAPI requests and asyncpg queries."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from powsync.settings import settings

try:  # pragma: no cover - installed through the "tracing" extra
	from opentelemetry import trace
	from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
	from opentelemetry.instrumentation.asyncpg import AsyncPGInstrumentor
	from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
	from opentelemetry.sdk.resources import Resource
	from opentelemetry.sdk.trace import TracerProvider
	from opentelemetry.sdk.trace.export import BatchSpanProcessor
except ImportError:  # pragma: no cover
	trace = None  # type: ignore

LOGGER = logging.getLogger(__name__)

_provider: Optional["TracerProvider"] = None


def init_tracing(app: FastAPI) -> bool:
	"""Start exporting spans; returns whether tracing is active."""
	global _provider
	if _provider is not None:
		return True
	if not settings.obs_tracing_enabled:
		return False
	if trace is None:
		LOGGER.warning("tracing_unavailable", extra={"reason": "opentelemetry not installed"})
		return False
	if not settings.otel_exporter_otlp_endpoint:
		LOGGER.warning("tracing_unavailable", extra={"reason": "OTEL_EXPORTER_OTLP_ENDPOINT not set"})
		return False

	provider = TracerProvider(
		resource=Resource.create(
			{
				"service.name": settings.service_name,
				"service.version": settings.git_commit,
				"deployment.environment": settings.environment,
			}
		)
	)
	provider.add_span_processor(
		BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True))
	)
	trace.set_tracer_provider(provider)
	FastAPIInstrumentor.instrument_app(app)
	AsyncPGInstrumentor().instrument()
	_provider = provider
	LOGGER.info("tracing_enabled", extra={"endpoint": settings.otel_exporter_otlp_endpoint})
	return True


def shutdown_tracing() -> None:
	global _provider
	if _provider is not None:
		_provider.shutdown()
		_provider = None
