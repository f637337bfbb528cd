"""In-app notifications and push subscription management."""

from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from gatherly.events.domain import models, repo as repo_module
from gatherly.events.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from gatherly.events.workers.push_dispatcher import PushDispatcher, PushJob, get_dispatcher
from gatherly.infra.auth import Principal
from gatherly.infra.webpush import PushKeys
from gatherly.obs import metrics as obs_metrics
from gatherly.settings import settings

_LOG = logging.getLogger(__name__)


class NotificationService:
	"""Persists notifications and hands push delivery to the dispatcher."""

	def __init__(
		self,
		*,
		repository: repo_module.EventsRepository | None = None,
		dispatcher: PushDispatcher | None = None,
	) -> None:
		self.repo = repository or repo_module.EventsRepository()
		self._dispatcher = dispatcher

	@property
	def dispatcher(self) -> PushDispatcher:
		return self._dispatcher or get_dispatcher()

	async def notify(self, user_id: UUID, content: str, link: str | None = None) -> models.Notification:
		"""Store a notification for ``user_id`` and queue push delivery.

		The row insert is awaited; push delivery is not, and a push problem
		never surfaces here.
		"""
		notification = await self.repo.insert_notification(user_id=user_id, content=content, link=link)
		obs_metrics.inc_notification_persisted()
		await self._queue_push(notification)
		return notification

	async def notify_many(
		self,
		user_ids: Iterable[UUID],
		content: str,
		link: str | None = None,
	) -> list[models.Notification]:
		seen: set[UUID] = set()
		created: list[models.Notification] = []
		for user_id in user_ids:
			if user_id in seen:
				continue
			seen.add(user_id)
			created.append(await self.notify(user_id, content, link))
		return created

	async def _queue_push(self, notification: models.Notification) -> None:
		try:
			subscriptions = await self.repo.list_push_subscriptions(notification.user_id)
		except Exception:
			_LOG.exception("notifications.push_lookup_failed", extra={"user_id": str(notification.user_id)})
			return
		if not subscriptions:
			return
		payload = {"title": settings.push_title, "body": notification.content, "url": notification.link}
		dispatcher = self.dispatcher
		for subscription in subscriptions:
			dispatcher.submit(
				PushJob(
					subscription_id=subscription.id,
					user_id=subscription.user_id,
					endpoint=subscription.endpoint,
					keys=PushKeys(p256dh=subscription.p256dh, auth=subscription.auth),
					payload=payload,
				)
			)

	async def subscribe(self, user_id: UUID, endpoint: str, p256dh: str, auth: str) -> models.PushSubscription:
		if not endpoint or not p256dh or not auth:
			raise ValidationError("subscription_incomplete")
		existing = await self.repo.get_push_subscription(user_id, endpoint)
		if existing is not None:
			return existing
		created = await self.repo.insert_push_subscription(user_id=user_id, endpoint=endpoint, p256dh=p256dh, auth=auth)
		if created is None:
			# Lost an insert race for the same endpoint; the winner's row stands.
			existing = await self.repo.get_push_subscription(user_id, endpoint)
			if existing is None:
				raise NotFoundError("subscription_not_found")
			return existing
		_LOG.info("notifications.subscribed", extra={"user_id": str(user_id), "subscription_id": str(created.id)})
		return created

	async def unsubscribe(self, user_id: UUID, endpoint: str) -> bool:
		existing = await self.repo.get_push_subscription(user_id, endpoint)
		if existing is None:
			return False
		return await self.repo.delete_push_subscription(existing.id)

	async def list_for_user(self, user_id: UUID) -> list[models.Notification]:
		return await self.repo.list_notifications(user_id)

	async def mark_read(self, notification_id: UUID, principal: Principal | None = None) -> models.Notification:
		notification = await self.repo.get_notification(notification_id)
		if notification is None:
			raise NotFoundError("notification_not_found")
		if principal is not None and notification.user_id != principal.id and not principal.is_admin:
			raise ForbiddenError("not_recipient")
		if notification.is_read:
			return notification
		updated = await self.repo.mark_notification_read(notification_id)
		if updated is None:
			raise NotFoundError("notification_not_found")
		return updated

	async def unread_count(self, user_id: UUID) -> int:
		return await self.repo.count_unread_notifications(user_id)


__all__ = ["NotificationService"]
