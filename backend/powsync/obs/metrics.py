"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"powsync_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"powsync_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

POSTGRES_UP = Gauge(
	"powsync_postgres_up",
	"Postgres readiness status",
)

POSTGRES_LATENCY = Histogram(
	"powsync_postgres_ping_seconds",
	"Postgres readiness query latency",
	buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5),
)

POW_RECONCILE = Counter(
	"powsync_pow_reconcile_total",
	"PoW list reconciliations by outcome",
	["outcome"],
)

POW_OPERATIONS = Counter(
	"powsync_pow_operations_total",
	"PoW write operations committed",
	["kind"],
)

POW_RECONCILE_LATENCY = Histogram(
	"powsync_pow_reconcile_duration_seconds",
	"Time spent reading, planning and applying a reconciliation",
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)


def inc_pow_reconcile(outcome: str) -> None:
	POW_RECONCILE.labels(outcome=outcome).inc()


def inc_pow_operations(counts: dict[str, int]) -> None:
	for kind, value in counts.items():
		if value:
			POW_OPERATIONS.labels(kind=kind).inc(value)


def observe_pow_reconcile(elapsed_seconds: float) -> None:
	POW_RECONCILE_LATENCY.observe(elapsed_seconds)
