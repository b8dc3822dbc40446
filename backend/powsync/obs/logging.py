"""JSON logging with per-request context."""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from powsync.settings import settings

try:  # pragma: no cover - otel optional
	from opentelemetry import trace as otel_trace
except ImportError:  # pragma: no cover - optional dependency
	otel_trace = None  # type: ignore

_LOGGER_NAME = "powsync"

# request_id, route and owner_id of the request being served
_CONTEXT: ContextVar[Dict[str, str]] = ContextVar("powsync_log_context", default={})

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def bind_context(**fields: Optional[str]) -> Token:
	"""Add fields to the logging context; pass the token to :func:`reset_context`."""
	merged = dict(_CONTEXT.get())
	merged.update({key: value for key, value in fields.items() if value})
	return _CONTEXT.set(merged)


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def context_value(key: str) -> Optional[str]:
	return _CONTEXT.get().get(key)


def _trace_fields() -> Dict[str, str]:
	if otel_trace is None:
		return {}
	context = otel_trace.get_current_span().get_span_context()
	if not context.is_valid:
		return {}
	return {"trace_id": f"{context.trace_id:032x}", "span_id": f"{context.span_id:016x}"}


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line: fixed service fields, request context, then ``extra``."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		payload.update(_CONTEXT.get())
		payload.update(_trace_fields())
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key not in _RECORD_ATTRS:
				payload[key] = value
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Keep a fraction of info records; everything else passes."""

	def __init__(self, rate: float) -> None:
		super().__init__()
		self.rate = max(0.0, min(1.0, rate))

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO or self.rate >= 1.0:
			return True
		return random.random() < self.rate


def configure_logging() -> logging.Logger:
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter(settings.obs_log_sampling_rate_info))
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
