"""Storage for PoW entries: asyncpg-backed and in-memory repositories."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Sequence, Union

import asyncpg

from powsync.domain.pow import exceptions
from powsync.domain.pow.models import CreateManyResult, PowRecord
from powsync.domain.pow.operations import CreateOp, DeleteOp, Operation, ReconcilePlan, UpdateOp
from powsync.infra.postgres import get_pool

PowResult = Union[CreateManyResult, PowRecord]

_COLUMNS = "id, owner_id, title, description, link, skills, sub_skills, created_at"
_META_FIELDS = ("schema_name", "table_name", "column_name", "constraint_name", "detail")


class PowRepository(Protocol):
	async def list_ids(self, owner_id: str) -> list[str]:
		...

	async def list_records(self, owner_id: str) -> list[PowRecord]:
		...

	async def apply(self, plan: ReconcilePlan) -> list[PowResult]:
		"""Run every operation of the plan in one transaction.

		Results are the bulk-insert count, then one record per update, then
		one record per delete.
		"""
		...


def to_storage_error(exc: BaseException) -> exceptions.StorageError:
	"""Classify a driver failure as structured or unknown."""
	if isinstance(exc, exceptions.StorageError):
		return exc
	if isinstance(exc, asyncpg.PostgresError):
		meta = {}
		for name in _META_FIELDS:
			value = getattr(exc, name, None)
			if value is not None:
				meta[name] = value
		message = getattr(exc, "message", None) or str(exc)
		return exceptions.StructuredStorageError(str(exc.sqlstate), message, meta)
	return exceptions.UnknownStorageError(exc)


class PostgresPowRepository:
	"""Thin data-access layer around asyncpg."""

	async def list_ids(self, owner_id: str) -> list[str]:
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					"SELECT id FROM pow_entries WHERE owner_id=$1 ORDER BY created_at, id",
					owner_id,
				)
		except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
			raise to_storage_error(exc) from exc
		return [row["id"] for row in rows]

	async def list_records(self, owner_id: str) -> list[PowRecord]:
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					f"SELECT {_COLUMNS} FROM pow_entries WHERE owner_id=$1 ORDER BY created_at, id",
					owner_id,
				)
		except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
			raise to_storage_error(exc) from exc
		return [PowRecord.model_validate(dict(row)) for row in rows]

	async def apply(self, plan: ReconcilePlan) -> list[PowResult]:
		results: list[PowResult] = []
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				async with conn.transaction():
					results.append(await self._insert_many(conn, plan.creates))
					for update in plan.updates:
						results.append(await self._update(conn, plan.owner_id, update))
					for delete in plan.deletes:
						results.append(await self._delete(conn, plan.owner_id, delete))
		except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
			raise to_storage_error(exc) from exc
		return results

	async def _insert_many(self, conn: asyncpg.Connection, creates: Sequence[CreateOp]) -> CreateManyResult:
		if creates:
			await conn.executemany(
				f"""
				INSERT INTO pow_entries ({_COLUMNS})
				VALUES ($1, $2, $3, $4, $5, $6, $7, COALESCE($8, NOW()))
				""",
				[
					(
						op.fields["id"],
						op.fields["owner_id"],
						op.fields["title"],
						op.fields["description"],
						op.fields["link"],
						list(op.fields["skills"]),
						list(op.fields["sub_skills"]),
						op.fields.get("created_at"),
					)
					for op in creates
				],
			)
		return CreateManyResult(count=len(creates))

	async def _update(self, conn: asyncpg.Connection, owner_id: str, op: UpdateOp) -> PowRecord:
		columns = list(op.fields)
		assignments = ", ".join("%s=$%d" % (column, idx + 3) for idx, column in enumerate(columns))
		record = await conn.fetchrow(
			f"UPDATE pow_entries SET {assignments} WHERE id=$1 AND owner_id=$2 RETURNING {_COLUMNS}",
			op.id,
			owner_id,
			*[op.fields[column] for column in columns],
		)
		if record is None:
			raise exceptions.RecordNotFound(op.id, owner_id, action="update")
		return PowRecord.model_validate(dict(record))

	async def _delete(self, conn: asyncpg.Connection, owner_id: str, op: DeleteOp) -> PowRecord:
		record = await conn.fetchrow(
			f"DELETE FROM pow_entries WHERE id=$1 AND owner_id=$2 RETURNING {_COLUMNS}",
			op.id,
			owner_id,
		)
		if record is None:
			raise exceptions.RecordNotFound(op.id, owner_id, action="delete")
		return PowRecord.model_validate(dict(record))


class InMemoryPowRepository:
	"""Simple repository implementation for development and tests.

	``fail_on`` maps an operation type to the error raised when the first
	operation of that type is applied; the batch is rolled back as a
	transaction would be.
	"""

	def __init__(self, records: Sequence[PowRecord] = ()) -> None:
		self._items: dict[str, PowRecord] = {}
		self.fail_on: dict[type, BaseException] = {}
		self.applied: list[ReconcilePlan] = []
		self.seed(records)

	def seed(self, records: Sequence[PowRecord]) -> None:
		for record in records:
			self._items[record.id] = record

	def _owned(self, owner_id: str) -> list[PowRecord]:
		items = [record for record in self._items.values() if record.owner_id == owner_id]
		return sorted(items, key=lambda record: (record.created_at, record.id))

	async def list_ids(self, owner_id: str) -> list[str]:
		return [record.id for record in self._owned(owner_id)]

	async def list_records(self, owner_id: str) -> list[PowRecord]:
		return self._owned(owner_id)

	async def apply(self, plan: ReconcilePlan) -> list[PowResult]:
		snapshot = dict(self._items)
		try:
			results = self._apply(plan)
		except Exception as exc:
			self._items = snapshot
			raise to_storage_error(exc) from exc
		self.applied.append(plan)
		return results

	def _check(self, op: Operation) -> None:
		error = self.fail_on.get(type(op))
		if error is not None:
			raise error

	def _apply(self, plan: ReconcilePlan) -> list[PowResult]:
		results: list[PowResult] = []
		now = datetime.now(timezone.utc)
		for op in plan.creates:
			self._check(op)
			if op.fields["id"] in self._items:
				raise exceptions.StructuredStorageError(
					"23505",
					"duplicate key value violates unique constraint",
					{"table_name": "pow_entries", "constraint_name": "pow_entries_pkey"},
				)
			fields: dict[str, Any] = dict(op.fields)
			fields["created_at"] = fields.get("created_at") or now
			self._items[op.fields["id"]] = PowRecord.model_validate(fields)
		results.append(CreateManyResult(count=len(plan.creates)))
		for op in plan.updates:
			self._check(op)
			current = self._find(op.id, plan.owner_id, "update")
			updated = current.model_copy(update=dict(op.fields))
			self._items[op.id] = updated
			results.append(updated)
		for op in plan.deletes:
			self._check(op)
			results.append(self._items.pop(self._find(op.id, plan.owner_id, "delete").id))
		return results

	def _find(self, record_id: str, owner_id: str, action: str) -> PowRecord:
		current: Optional[PowRecord] = self._items.get(record_id)
		if current is None or current.owner_id != owner_id:
			raise exceptions.RecordNotFound(record_id, owner_id, action=action)
		return current
