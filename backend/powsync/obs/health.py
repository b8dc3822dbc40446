"""Liveness, readiness and startup probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict, Tuple

from powsync.infra import postgres
from powsync.obs import metrics
from powsync.settings import settings

LOGGER = logging.getLogger(__name__)

Probe = Tuple[int, Dict[str, Any]]

PING_TIMEOUT_SECONDS = 0.3


async def _check_postgres(conn) -> Dict[str, Any]:
	start = perf_counter()
	try:
		await asyncio.wait_for(conn.execute("SELECT 1"), timeout=PING_TIMEOUT_SECONDS)
	except Exception as exc:
		metrics.mark_postgres(False)
		LOGGER.warning("postgres_ping_failed", exc_info=True)
		return {"ok": False, "error": str(exc)}
	latency = perf_counter() - start
	metrics.mark_postgres(True, latency_seconds=latency)
	return {"ok": True, "latency_ms": round(latency * 1000, 2)}


async def _check_migrations(conn) -> Dict[str, Any]:
	"""The newest applied migration must be at least HEALTH_MIN_MIGRATION."""
	try:
		version = await conn.fetchval("SELECT version FROM schema_migrations ORDER BY version DESC LIMIT 1")
	except Exception as exc:
		return {"ok": False, "error": str(exc)}
	if version is None:
		return {"ok": False, "error": "no_migrations"}
	required = settings.health_min_migration
	return {"ok": str(version) >= required, "version": str(version), "required": required}


async def liveness() -> Dict[str, Any]:
	return {"status": "ok"}


async def readiness() -> Probe:
	try:
		pool = await postgres.get_pool()
		async with pool.acquire() as conn:
			checks = {
				"postgres": await _check_postgres(conn),
				"migrations": await _check_migrations(conn),
			}
	except Exception as exc:
		metrics.mark_postgres(False)
		LOGGER.warning("postgres_unavailable", exc_info=True)
		checks = {
			"postgres": {"ok": False, "error": str(exc)},
			"migrations": {"ok": False, "error": "pool_unavailable"},
		}
	ok = all(check["ok"] for check in checks.values())
	return (200 if ok else 503), {"status": "ok" if ok else "degraded", "checks": checks}


async def startup() -> Probe:
	if settings.obs_tracing_enabled and not settings.otel_exporter_otlp_endpoint:
		return 503, {"status": "error", "error": "missing_otlp_endpoint"}
	return 200, {"status": "ok"}
