"""Domain models for proof-of-work entries."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Columns written by creates and updates; id and owner_id are handled separately.
CONTENT_FIELDS = ("title", "description", "link", "skills", "sub_skills", "created_at")


class PowEntryIn(BaseModel):
	"""A single entry of the desired list as sent by the client."""

	id: Optional[str] = None
	owner_id: Optional[str] = None
	# required for new entries only; updates may send any subset of fields
	title: Optional[str] = None
	description: str = ""
	link: str = ""
	skills: list[str] = Field(default_factory=list)
	sub_skills: list[str] = Field(default_factory=list)
	created_at: Optional[datetime] = None

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

	@field_validator("id", mode="before")
	@classmethod
	def _blank_id_is_absent(cls, value: Any) -> Any:
		if isinstance(value, str) and not value.strip():
			return None
		return value

	@field_validator("title", mode="before")
	@classmethod
	def _title_not_null(cls, value: Any) -> Any:
		if value is None:
			raise ValueError("title must be a string")
		return value

	@field_validator("created_at")
	@classmethod
	def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
		if value is not None and value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value

	@model_validator(mode="after")
	def _new_entry_has_title(self) -> "PowEntryIn":
		if self.id is None and self.title is None:
			raise ValueError("title is required for a new entry")
		return self

	def create_fields(self) -> dict[str, Any]:
		"""Every content column, defaults included."""
		return {name: getattr(self, name) for name in CONTENT_FIELDS}

	def update_fields(self) -> dict[str, Any]:
		"""Only the content columns the client actually sent."""
		sent = self.model_fields_set
		fields = {name: getattr(self, name) for name in CONTENT_FIELDS if name in sent}
		# createdAt: null keeps the stored timestamp
		if fields.get("created_at", ...) is None:
			del fields["created_at"]
		return fields


class PowRecord(BaseModel):
	"""A stored entry."""

	id: str
	owner_id: str
	title: str
	description: str
	link: str
	skills: list[str]
	sub_skills: list[str]
	created_at: datetime

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

	def to_json(self) -> dict[str, Any]:
		return self.model_dump(mode="json", by_alias=True)


class CreateManyResult(BaseModel):
	count: int

	def to_json(self) -> dict[str, Any]:
		return self.model_dump(mode="json")
