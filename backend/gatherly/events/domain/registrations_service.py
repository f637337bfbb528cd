"""Registration lifecycle: join requests, approval, leaving and attendance."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from gatherly.events.domain import models, policies, repo as repo_module
from gatherly.events.domain.exceptions import NotFoundError
from gatherly.events.domain.notifications_service import NotificationService
from gatherly.infra.auth import Principal
from gatherly.infra.postgres import get_pool
from gatherly.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)

REGISTERED = "registered"
ALREADY_REGISTERED = "already_registered"
LEFT = "left"
NOT_REGISTERED = "not_registered"
NOT_PERMITTED = "not_permitted"


@dataclass(slots=True)
class RegisterResult:
	status: str
	registration: models.EventUser

	@property
	def created(self) -> bool:
		return self.status == REGISTERED


class RegistrationsService:
	"""Handles the none -> pending -> accepted registration state machine."""

	def __init__(
		self,
		*,
		repository: repo_module.EventsRepository | None = None,
		notifications: NotificationService | None = None,
	) -> None:
		self.repo = repository or repo_module.EventsRepository()
		self.notifications = notifications or NotificationService(repository=self.repo)

	async def register(self, user_id: UUID, event_id: UUID) -> RegisterResult:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				user = await self.repo.get_user(user_id, conn=conn)
				if user is None:
					raise NotFoundError("user_not_found")
				event = await self.repo.get_event(event_id, conn=conn)
				if event is None:
					raise NotFoundError("event_not_found")
				existing = await self.repo.get_registration_for(user_id, event_id, conn=conn)
				if existing is not None:
					return RegisterResult(status=ALREADY_REGISTERED, registration=existing)
				created = await self.repo.insert_registration(user_id, event_id, conn=conn)
				if created is None:
					# A concurrent request inserted the same pair first.
					existing = await self.repo.get_registration_for(user_id, event_id, conn=conn)
					if existing is None:
						raise NotFoundError("registration_not_found")
					return RegisterResult(status=ALREADY_REGISTERED, registration=existing)
		obs_metrics.inc_registration("requested")
		_LOG.info("registrations.requested", extra={"event_id": str(event_id), "user_id": str(user_id)})
		await self.notifications.notify(
			event.manager_id,
			f"{user.username} requested to join {event.title}",
			f"/events/{event.id}",
		)
		return RegisterResult(status=REGISTERED, registration=created)

	async def accept(self, registration_id: UUID, principal: Principal) -> models.EventUser:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration, event = await self._load_managed(registration_id, principal, conn=conn)
				updated = await self.repo.update_registration(registration.id, accepted=True, conn=conn)
		if updated is None:
			raise NotFoundError("registration_not_found")
		obs_metrics.inc_registration("accepted")
		await self.notifications.notify(
			updated.user_id,
			f"Your request to join {event.title} was accepted",
			f"/events/{event.id}",
		)
		return updated

	async def deny(self, registration_id: UUID, principal: Principal) -> models.EventUser:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration, event = await self._load_managed(registration_id, principal, conn=conn)
				await self.repo.delete_registration(registration.id, conn=conn)
		obs_metrics.inc_registration("denied")
		await self.notifications.notify(
			registration.user_id,
			f"Your request to join {event.title} was declined",
			f"/events/{event.id}",
		)
		return registration

	async def leave(self, user_id: UUID, event_id: UUID, *, now: datetime | None = None) -> str:
		current = now or datetime.now(timezone.utc)
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				event = await self.repo.get_event(event_id, conn=conn)
				if event is None:
					raise NotFoundError("event_not_found")
				if event.start_at <= current:
					return NOT_PERMITTED
				registration = await self.repo.get_registration_for(user_id, event_id, conn=conn)
				if registration is None:
					return NOT_REGISTERED
				await self.repo.delete_registration(registration.id, conn=conn)
		obs_metrics.inc_registration("left")
		return LEFT

	async def mark_attendance(
		self,
		registration_id: UUID,
		completed: bool,
		principal: Principal | None = None,
	) -> models.EventUser:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				if principal is not None:
					registration, _event = await self._load_managed(registration_id, principal, conn=conn)
				else:
					registration = await self.repo.get_registration(registration_id, conn=conn, for_update=True)
					if registration is None:
						raise NotFoundError("registration_not_found")
				updated = await self.repo.update_registration(registration.id, completed=completed, conn=conn)
		if updated is None:
			raise NotFoundError("registration_not_found")
		obs_metrics.inc_registration("attendance")
		return updated

	async def _load_managed(self, registration_id: UUID, principal: Principal, *, conn) -> tuple[models.EventUser, models.Event]:
		registration = await self.repo.get_registration(registration_id, conn=conn, for_update=True)
		if registration is None:
			raise NotFoundError("registration_not_found")
		event = await self.repo.get_event(registration.event_id, conn=conn)
		if event is None:
			raise NotFoundError("event_not_found")
		policies.assert_can_manage_event(event, principal)
		return registration, event

	async def get_registration(self, registration_id: UUID) -> models.EventUser:
		registration = await self.repo.get_registration(registration_id)
		if registration is None:
			raise NotFoundError("registration_not_found")
		return registration

	async def list_by_event(self, event_id: UUID) -> list[models.EventUser]:
		return await self.repo.list_registrations(event_id=event_id)

	async def list_pending_by_event(self, event_id: UUID) -> list[models.EventUser]:
		return await self.repo.list_registrations(event_id=event_id, accepted=False)

	async def list_accepted_by_event(self, event_id: UUID) -> list[models.EventUser]:
		return await self.repo.list_registrations(event_id=event_id, accepted=True)

	async def list_by_user(self, user_id: UUID, *, accepted: Optional[bool] = None) -> list[models.EventUser]:
		return await self.repo.list_registrations(user_id=user_id, accepted=accepted)

	async def get_status(self, user_id: UUID, event_id: UUID) -> models.EventUser | None:
		return await self.repo.get_registration_for(user_id, event_id)

	async def list_accepted_events(self, user_id: UUID) -> list[models.Event]:
		events: list[models.Event] = []
		for event_id in await self.repo.list_accepted_event_ids(user_id):
			event = await self.repo.get_event(event_id)
			if event is not None:
				events.append(event)
		return events


__all__ = [
	"RegistrationsService",
	"RegisterResult",
	"REGISTERED",
	"ALREADY_REGISTERED",
	"LEFT",
	"NOT_REGISTERED",
	"NOT_PERMITTED",
]
