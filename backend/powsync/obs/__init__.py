"""Logging, metrics, tracing and health for the service."""

from __future__ import annotations

from fastapi import FastAPI

from powsync.obs import logging as obs_logging
from powsync.obs import middleware, tracing
from powsync.settings import settings


def init(app: FastAPI) -> None:
	"""Attach request context to ``app``; JSON logging and tracing follow ``OBS_ENABLED``."""
	middleware.install(app)
	if settings.obs_enabled:
		obs_logging.configure_logging()
		tracing.init_tracing(app)


__all__ = ["init"]
