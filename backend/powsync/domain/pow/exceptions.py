"""Custom exceptions for PoW reconciliation."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from fastapi import status

# nginx convention for a client that closed the connection before a response
HTTP_499_CLIENT_CLOSED_REQUEST = 499


class PowError(Exception):
	"""Base class for reconciliation errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "pow_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail

	def to_content(self) -> dict[str, Any]:
		return {"error": self.detail}


class InvalidBody(PowError):
	"""Raised when the request body is not a JSON object."""

	detail = "The request body must be a JSON object."


class InvalidOwner(PowError):
	"""Raised when ownerId is missing, blank, not a string or contains a wildcard."""

	detail = 'Invalid or missing "ownerId".'


class MissingPayload(PowError):
	"""Raised when the records field is absent or not an array."""

	detail = 'The "records" field is missing in the request body.'


class TooManyRecords(PowError):
	"""Raised when the desired list exceeds the configured bound."""

	detail = "too_many_records"

	def __init__(self, limit: int) -> None:
		super().__init__(f'The "records" field holds more than {limit} entries.')
		self.limit = limit


class MalformedEntries(PowError):
	"""One or more entries of the desired list are unusable."""

	detail = "malformed_entries"

	def __init__(self, errors: Sequence[str]) -> None:
		super().__init__(f"{len(errors)} malformed entries")
		self.errors = list(errors)

	def to_content(self) -> dict[str, Any]:
		return {"errors": list(self.errors)}


class ReconcileAborted(PowError):
	"""The caller went away before the batch was submitted."""

	status_code = HTTP_499_CLIENT_CLOSED_REQUEST
	detail = "client_closed_request"


class StorageError(PowError):
	"""Base class for failures reported while reading or writing the store."""

	status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
	detail = "storage_error"


class StructuredStorageError(StorageError):
	"""A store error carrying a code, a message and metadata."""

	def __init__(self, code: str, message: str, meta: Optional[Mapping[str, Any]] = None) -> None:
		super().__init__(message)
		self.code = code
		self.message = message
		self.meta = dict(meta or {})

	def to_content(self) -> dict[str, Any]:
		return {"error": {"code": self.code, "message": self.message, "meta": self.meta}}


class UnknownStorageError(StorageError):
	"""Any other failure; only its description is surfaced."""

	def __init__(self, cause: BaseException) -> None:
		super().__init__(str(cause) or cause.__class__.__name__)
		self.cause = cause


class RecordNotFound(StructuredStorageError):
	"""An update or delete targeted an id that is not stored for the owner."""

	# SQLSTATE class 02: no_data
	CODE = "02000"

	def __init__(self, record_id: str, owner_id: str, *, action: str = "update") -> None:
		super().__init__(
			self.CODE,
			f"Record to {action} not found.",
			{"table": "pow_entries", "id": record_id, "owner_id": owner_id},
		)
		self.record_id = record_id
