"""Reconciliation service for a user's PoW list."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Optional

from powsync.domain.pow import reconcile
from powsync.domain.pow.exceptions import PowError, ReconcileAborted, StorageError, StructuredStorageError
from powsync.domain.pow.models import PowRecord
from powsync.domain.pow.repo import PostgresPowRepository, PowRepository, PowResult
from powsync.obs import metrics as obs_metrics
from powsync.settings import settings

LOGGER = logging.getLogger(__name__)

DisconnectProbe = Callable[[], Awaitable[bool]]


class PowSyncService:
	def __init__(
		self,
		repository: PowRepository,
		*,
		max_records: Optional[int] = None,
		new_id: Optional[Callable[[], str]] = None,
	) -> None:
		self._repository = repository
		self._max_records = max_records
		self._new_id = new_id or reconcile.new_record_id

	async def reconcile(
		self,
		owner_id: Any,
		desired: Any,
		*,
		is_disconnected: Optional[DisconnectProbe] = None,
	) -> list[PowResult]:
		"""Make the owner's stored list match ``desired`` in one transaction.

		Input is rejected before any storage access. The stored ids are then
		read, diffed against the desired list, and the resulting creates,
		updates and deletes are applied atomically. Results come back in that
		same order.
		"""
		try:
			owner = reconcile.validate_owner(owner_id)
			entries = reconcile.parse_entries(desired, max_records=self._max_records)
		except PowError as exc:
			obs_metrics.inc_pow_reconcile("rejected")
			LOGGER.info("pow_reconcile_rejected", extra={"reason": exc.__class__.__name__})
			raise

		start = time.perf_counter()
		try:
			existing = await self._repository.list_ids(owner)
			plan = reconcile.plan_reconciliation(owner, existing, entries, new_id=self._new_id)
			if is_disconnected is not None and await is_disconnected():
				raise ReconcileAborted()
			results = await self._repository.apply(plan)
		except ReconcileAborted:
			obs_metrics.inc_pow_reconcile("aborted")
			LOGGER.info("pow_reconcile_aborted", extra={"owner_id": owner})
			raise
		except StorageError as exc:
			obs_metrics.inc_pow_reconcile("failed")
			code = exc.code if isinstance(exc, StructuredStorageError) else None
			LOGGER.warning("pow_reconcile_failed", extra={"owner_id": owner, "code": code, "error": str(exc)})
			raise
		finally:
			obs_metrics.observe_pow_reconcile(time.perf_counter() - start)

		counts = plan.counts()
		obs_metrics.inc_pow_reconcile("applied")
		obs_metrics.inc_pow_operations(counts)
		LOGGER.info("pow_reconcile_applied", extra={"owner_id": owner, **counts})
		return results

	async def list_records(self, owner_id: Any) -> list[PowRecord]:
		owner = reconcile.validate_owner(owner_id)
		return await self._repository.list_records(owner)


_service: Optional[PowSyncService] = None


def get_pow_service() -> PowSyncService:
	global _service
	if _service is None:
		_service = PowSyncService(PostgresPowRepository(), max_records=settings.pow_max_records)
	return _service
