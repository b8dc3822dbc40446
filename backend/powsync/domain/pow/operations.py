"""Write operations produced by reconciliation and applied as one batch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Union


@dataclass(slots=True, frozen=True)
class CreateOp:
	fields: Mapping[str, Any]


@dataclass(slots=True, frozen=True)
class UpdateOp:
	id: str
	fields: Mapping[str, Any]


@dataclass(slots=True, frozen=True)
class DeleteOp:
	id: str


Operation = Union[CreateOp, UpdateOp, DeleteOp]


@dataclass(slots=True)
class ReconcilePlan:
	"""Creates, updates and deletes for one owner, in submission order."""

	owner_id: str
	creates: list[CreateOp] = field(default_factory=list)
	updates: list[UpdateOp] = field(default_factory=list)
	deletes: list[DeleteOp] = field(default_factory=list)

	def operations(self) -> Iterator[Operation]:
		yield from self.creates
		yield from self.updates
		yield from self.deletes

	def counts(self) -> dict[str, int]:
		return {"create": len(self.creates), "update": len(self.updates), "delete": len(self.deletes)}

	def is_empty(self) -> bool:
		return not (self.creates or self.updates or self.deletes)
