"""Exception handlers; every JSON error body carries the request id."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from powsync.domain.pow.exceptions import PowError
from powsync.obs.middleware import request_id_of


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PowError)
    async def pow_error_handler(request: Request, exc: PowError):  # type: ignore[override]
        content = exc.to_content()
        content["request_id"] = request_id_of(request)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        content = {"detail": exc.detail, "request_id": request_id_of(request)}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        content = {
            "detail": "validation_error",
            "errors": jsonable_encoder(exc.errors()),
            "request_id": request_id_of(request),
        }
        return JSONResponse(status_code=422, content=content)
