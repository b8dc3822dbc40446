"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from powsync.api import ops, pow as pow_api
from powsync.api.errors import install_error_handlers
from powsync.infra import postgres
from powsync.obs import init as obs_init
from powsync.obs import tracing
from powsync.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	try:
		yield
	finally:
		await postgres.close_pool()
		tracing.shutdown_tracing()


app = FastAPI(title="PoW Sync", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True.
allow_credentials = "*" not in allow_origins

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=allow_credentials,
	allow_methods=["*"],
	allow_headers=["*"],
)

# outermost, so CORS preflights also get a request id
obs_init(app)

app.include_router(pow_api.router, tags=["pow"])
app.include_router(ops.router, tags=["ops"])
