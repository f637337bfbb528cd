"""Event lifecycle: creation, approval, updates and cascading deletion."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional
from uuid import UUID

from gatherly.events.domain import models, policies, repo as repo_module
from gatherly.events.domain.content_service import ContentService
from gatherly.events.domain.exceptions import NotFoundError
from gatherly.events.domain.notifications_service import NotificationService
from gatherly.events.schemas import dto
from gatherly.infra.auth import ROLE_ADMIN, Principal
from gatherly.infra.postgres import get_pool
from gatherly.obs import metrics as obs_metrics
from gatherly.settings import settings

_LOG = logging.getLogger(__name__)

# Columns that must never be cleared through a partial update.
_REQUIRED_FIELDS = frozenset({"title", "start_at", "end_at"})


def announcement_content(event: models.Event, *, excerpt_length: int | None = None) -> str:
	"""Body of the global post published when an event is approved."""
	length = excerpt_length if excerpt_length is not None else settings.announcement_excerpt_length
	lines = [
		f"New event: {event.title}",
		f"Type: {event.type or '-'}",
		f"Location: {event.location or '-'}",
		f"Starts: {event.start_at.strftime('%Y-%m-%d %H:%M %Z').strip()}",
	]
	description = policies.excerpt(event.description, length)
	if description:
		lines.extend(["", description])
	return "\n".join(lines)


class EventsService:
	"""Coordinates event persistence with announcements and notifications."""

	def __init__(
		self,
		*,
		repository: repo_module.EventsRepository | None = None,
		notifications: NotificationService | None = None,
		content: ContentService | None = None,
	) -> None:
		self.repo = repository or repo_module.EventsRepository()
		self.notifications = notifications or NotificationService(repository=self.repo)
		self.content = content or ContentService(repository=self.repo, notifications=self.notifications)

	async def create_event(self, manager_id: UUID, payload: dto.EventCreateRequest) -> models.Event:
		start_at, end_at = policies.ensure_event_window(payload.start_at, payload.end_at)
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				manager = await self.repo.get_user(manager_id, conn=conn)
				if manager is None:
					raise NotFoundError("manager_not_found")
				event = await self.repo.create_event(
					manager_id=manager_id,
					type=payload.type,
					title=payload.title,
					start_at=start_at,
					end_at=end_at,
					location=payload.location,
					description=payload.description,
					image_url=payload.image_url,
					conn=conn,
				)
		obs_metrics.inc_event_created()
		_LOG.info("events.created", extra={"event_id": str(event.id), "manager_id": str(manager_id)})
		if settings.notify_admins_on_event_created:
			admins = await self.repo.list_users_by_role(ROLE_ADMIN)
			await self.notifications.notify_many(
				[admin.id for admin in admins],
				f"New event awaiting approval: {event.title}",
				"/admin/events",
			)
		return event

	async def get_event(self, event_id: UUID) -> models.Event:
		event = await self.repo.get_event(event_id)
		if event is None:
			raise NotFoundError("event_not_found")
		return event

	async def get_event_detail(self, event_id: UUID) -> tuple[models.Event, Optional[models.User]]:
		"""Event plus its manager; the manager is None if the account is gone."""
		event = await self.get_event(event_id)
		return event, await self.repo.get_user(event.manager_id)

	async def list_events(
		self,
		*,
		status: Optional[str] = None,
		query_text: Optional[str] = None,
		event_type: Optional[str] = None,
	) -> list[models.Event]:
		"""Newest first; ``query_text`` matches titles and ``event_type`` matches types, both ignoring case."""
		return await self.repo.list_events(
			status=status,
			query_text=(query_text or "").strip() or None,
			event_type=(event_type or "").strip() or None,
		)

	async def list_managed_events(self, manager_id: UUID) -> list[models.Event]:
		return await self.repo.list_events(manager_id=manager_id)

	async def update_event(
		self,
		event_id: UUID,
		payload: dto.EventUpdateRequest,
		principal: Principal,
	) -> models.Event:
		fields = {
			name: value
			for name, value in payload.model_dump(exclude_unset=True).items()
			if not (name in _REQUIRED_FIELDS and value is None)
		}
		for name in ("start_at", "end_at"):
			if name in fields:
				fields[name] = policies.ensure_aware(fields[name])
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				event = await self.repo.get_event(event_id, conn=conn, for_update=True)
				if event is None:
					raise NotFoundError("event_not_found")
				policies.assert_can_manage_event(event, principal)
				if not fields:
					return event
				policies.ensure_event_window(
					fields.get("start_at", event.start_at),
					fields.get("end_at", event.end_at),
				)
				updated = await self.repo.update_event(event_id, fields=fields, conn=conn)
		if updated is None:
			raise NotFoundError("event_not_found")
		_LOG.info("events.updated", extra={"event_id": str(event_id), "fields": sorted(fields)})
		return updated

	async def accept_event(self, event_id: UUID) -> models.Event:
		"""Approve an event.

		Only the first approval publishes the announcement post and notifies the
		manager; approving an accepted event returns it unchanged.
		"""
		pool = await get_pool()
		announcement: models.Post | None = None
		async with pool.acquire() as conn:
			async with conn.transaction():
				event = await self.repo.get_event(event_id, conn=conn, for_update=True)
				if event is None:
					raise NotFoundError("event_not_found")
				if event.is_accepted:
					return event
				accepted = await self.repo.set_event_status(event_id, models.EVENT_ACCEPTED, conn=conn)
				if accepted is None:
					raise NotFoundError("event_not_found")
				announcement = await self.repo.create_post(
					event_id=None,
					author_id=accepted.manager_id,
					content=announcement_content(accepted),
					image_url=accepted.image_url,
					conn=conn,
				)
		obs_metrics.inc_event_accepted()
		obs_metrics.inc_post_created("global")
		_LOG.info(
			"events.accepted",
			extra={"event_id": str(event_id), "announcement_id": str(announcement.id) if announcement else None},
		)
		await self.notifications.notify(
			accepted.manager_id,
			f"Your event {accepted.title} has been approved",
			f"/events/{accepted.id}",
		)
		return accepted

	async def delete_event(self, event_id: UUID, principal: Principal) -> None:
		pool = await get_pool()
		removed: Counter[str] = Counter()
		async with pool.acquire() as conn:
			async with conn.transaction():
				event = await self.repo.get_event(event_id, conn=conn, for_update=True)
				if event is None:
					raise NotFoundError("event_not_found")
				policies.assert_can_manage_event(event, principal)
				removed["registrations"] += await self.repo.delete_registrations_for_event(event_id, conn=conn)
				for post in await self.repo.list_posts(event_id=event_id, conn=conn):
					await self.content.purge_post(post, conn=conn, removed=removed)
				await self.repo.delete_event(event_id, conn=conn)
		obs_metrics.inc_event_deleted()
		for kind, count in removed.items():
			obs_metrics.inc_cascade_deleted(kind, count)
		_LOG.info("events.deleted", extra={"event_id": str(event_id), "removed": dict(removed)})


__all__ = ["EventsService", "announcement_content"]
