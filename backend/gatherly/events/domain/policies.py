"""Authorization and validation policies for event and content operations."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from gatherly.events.domain import models
from gatherly.events.domain.exceptions import ForbiddenError, ValidationError
from gatherly.infra.auth import Principal


def can_manage_event(event: models.Event, principal: Principal) -> bool:
	"""Managers own their events; admins can manage any."""
	return principal.is_admin or event.manager_id == principal.id


def assert_can_manage_event(event: models.Event, principal: Principal) -> None:
	if not can_manage_event(event, principal):
		raise ForbiddenError("not_event_manager")


def assert_can_modify_content(author_id: UUID, principal: Principal) -> None:
	if principal.is_admin or author_id == principal.id:
		return
	raise ForbiddenError("not_author")


def ensure_aware(value: datetime | None) -> datetime | None:
	"""Return ``value`` in UTC; naive timestamps are ambiguous and rejected."""
	if value is None:
		return None
	if value.tzinfo is None or value.utcoffset() is None:
		raise ValidationError("datetime_timezone_required")
	return value.astimezone(timezone.utc)


def ensure_event_window(
	start_at: datetime | None,
	end_at: datetime | None,
) -> tuple[datetime | None, datetime | None]:
	start_at = ensure_aware(start_at)
	end_at = ensure_aware(end_at)
	if start_at is not None and end_at is not None and end_at < start_at:
		raise ValidationError("end_before_start")
	return start_at, end_at


def ensure_content(content: str | None, *, limit: int = 10000) -> str:
	text = (content or "").strip()
	if not text:
		raise ValidationError("content_required")
	if len(text) > limit:
		raise ValidationError("content_too_long")
	return text


def ensure_cursor_limit(limit: int, *, maximum: int = 50) -> None:
	if limit < 1 or limit > maximum:
		raise ValidationError("limit_out_of_range")


def excerpt(text: str | None, length: int) -> str:
	"""Cut ``text`` to ``length`` characters, appending an ellipsis when shortened."""
	value = text or ""
	if len(value) <= length:
		return value
	return value[:length] + "..."
