"""REST surface for synchronising a user's proof-of-work list."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from powsync.domain.pow import exceptions
from powsync.domain.pow.service import PowSyncService, get_pow_service
from powsync.obs import logging as obs_logging

router = APIRouter(prefix="/api/pow")


def get_pow_service_dep() -> PowSyncService:
	return get_pow_service()


async def _read_body(request: Request) -> dict[str, Any]:
	try:
		body = await request.json()
	except ValueError:
		raise exceptions.InvalidBody() from None
	if not isinstance(body, dict):
		raise exceptions.InvalidBody()
	return body


@router.post("/edit")
async def edit_pow(
	request: Request,
	service: PowSyncService = Depends(get_pow_service_dep),
) -> JSONResponse:
	body = await _read_body(request)
	owner_id = body.get("ownerId")
	if isinstance(owner_id, str):
		obs_logging.bind_context(owner_id=owner_id)
	results = await service.reconcile(
		owner_id,
		body.get("records"),
		is_disconnected=request.is_disconnected,
	)
	return JSONResponse(content=[result.to_json() for result in results])


@router.get("")
async def list_pow(
	owner_id: Optional[str] = Query(default=None, alias="ownerId"),
	service: PowSyncService = Depends(get_pow_service_dep),
) -> JSONResponse:
	records = await service.list_records(owner_id)
	return JSONResponse(content=[record.to_json() for record in records])
