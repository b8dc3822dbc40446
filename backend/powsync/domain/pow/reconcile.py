"""Validation and diffing for PoW list reconciliation.

Nothing in this module touches storage: callers fetch the ids currently
stored for an owner, hand them to :func:`plan_reconciliation` together with
the validated desired list, and submit the resulting plan atomically.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Sequence

import ulid
from pydantic import ValidationError

from powsync.domain.pow import exceptions
from powsync.domain.pow.models import PowEntryIn
from powsync.domain.pow.operations import CreateOp, DeleteOp, ReconcilePlan, UpdateOp

OWNER_WILDCARD = "*"


def new_record_id() -> str:
	return ulid.new().str


def validate_owner(value: Any) -> str:
	"""Return the owner id unchanged or raise InvalidOwner."""
	if not isinstance(value, str) or not value.strip() or OWNER_WILDCARD in value:
		raise exceptions.InvalidOwner()
	return value


def _problem(error: Mapping[str, Any]) -> str:
	loc = error.get("loc", ())
	path = "".join(f"[{part}]" if isinstance(part, int) else f".{part}" for part in loc).lstrip(".")
	message = error.get("msg", "invalid value")
	return f"{path}: {message}" if path else message


def _describe(index: int, errors: Sequence[Mapping[str, Any]]) -> str:
	"""One message for the entry at ``index``, listing each of its problems."""
	return f"records[{index}]: " + "; ".join(_problem(error) for error in errors)


def parse_entries(records: Any, *, max_records: int | None = None) -> list[PowEntryIn]:
	"""Validate every entry of the desired list.

	All entries are inspected before deciding; a single bad entry rejects the
	whole list with one message per bad entry.
	"""
	if records is None:
		raise exceptions.MissingPayload()
	if not isinstance(records, list):
		raise exceptions.MissingPayload('The "records" field must be an array.')
	if max_records is not None and len(records) > max_records:
		raise exceptions.TooManyRecords(max_records)

	entries: list[PowEntryIn] = []
	errors: list[str] = []
	for index, raw in enumerate(records):
		if raw is None:
			errors.append(f"records[{index}] is undefined or null.")
			continue
		if not isinstance(raw, dict):
			errors.append(f"records[{index}] must be an object.")
			continue
		try:
			entries.append(PowEntryIn.model_validate(raw))
		except ValidationError as exc:
			errors.append(_describe(index, exc.errors()))
	if errors:
		raise exceptions.MalformedEntries(errors)
	return entries


def plan_reconciliation(
	owner_id: str,
	existing_ids: Iterable[str],
	desired: Sequence[PowEntryIn],
	*,
	new_id: Callable[[], str] = new_record_id,
) -> ReconcilePlan:
	"""Diff the stored ids against the desired list.

	Entries carrying an id become updates, the rest become creates, and every
	stored id that no entry reasserts is deleted. Duplicate ids are passed
	through as separate updates. ``new_id`` generates ids for creates.
	"""
	plan = ReconcilePlan(owner_id=owner_id)
	incoming: set[str] = set()
	for entry in desired:
		if entry.id:
			incoming.add(entry.id)
			plan.updates.append(UpdateOp(id=entry.id, fields={**entry.update_fields(), "owner_id": owner_id}))
		else:
			plan.creates.append(CreateOp(fields={**entry.create_fields(), "id": new_id(), "owner_id": owner_id}))
	plan.deletes.extend(DeleteOp(id=record_id) for record_id in existing_ids if record_id not in incoming)
	return plan
