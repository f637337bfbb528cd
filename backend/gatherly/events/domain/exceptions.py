"""Custom exceptions for the events domain."""

from __future__ import annotations

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class GatherlyError(Exception):
	"""Base class for domain errors raised synchronously to callers."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "gatherly_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class NotFoundError(GatherlyError):
	"""Referenced id does not exist."""

	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class ForbiddenError(GatherlyError):
	"""Authenticated, but not the owner and not an admin."""

	status_code = status.HTTP_403_FORBIDDEN
	detail = "forbidden"


class ConflictError(GatherlyError):
	"""Raised for duplicate unique pairs."""

	status_code = status.HTTP_409_CONFLICT
	detail = "conflict"


class InvalidStateError(GatherlyError):
	"""Operation not allowed in the record's current state."""

	status_code = status.HTTP_409_CONFLICT
	detail = "invalid_state"


class ValidationError(GatherlyError):
	"""Raised for validation errors not covered by FastAPI schema validation."""

	status_code = _HTTP_422
	detail = "validation_error"


class DeliveryError(Exception):
	"""Push gateway failure. Contained inside the push dispatcher."""

	def __init__(self, detail: str, *, status_code: int | None = None) -> None:
		super().__init__(detail)
		self.detail = detail
		self.status_code = status_code
