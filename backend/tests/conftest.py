import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from gatherly.events.api import comments as comments_api
from gatherly.events.api import events as events_api
from gatherly.events.api import feeds as feeds_api
from gatherly.events.api import likes as likes_api
from gatherly.events.api import notifications as notifications_api
from gatherly.events.api import posts as posts_api
from gatherly.events.api import registrations as registrations_api
from gatherly.events.domain import models
from gatherly.events.domain import repo as repo_module
from gatherly.events.domain.content_service import ContentService
from gatherly.events.domain.events_service import EventsService
from gatherly.events.domain.exceptions import ConflictError
from gatherly.events.domain.notifications_service import NotificationService
from gatherly.events.domain.registrations_service import RegistrationsService
from gatherly.events.schemas import dto
from gatherly.events.workers.push_dispatcher import PushDispatcher, set_dispatcher
from gatherly.infra import postgres
from gatherly.infra.auth import ROLE_ADMIN, ROLE_HOST, ROLE_USER
from gatherly.infra.webpush import DELIVERED, DeliveryResult
from gatherly.main import app
from gatherly.settings import settings


class ForeignKeyViolation(RuntimeError):
	"""Raised by the in-memory store where Postgres would reject a delete."""


class InMemoryRepository:
	"""Dict-backed stand-in for ``EventsRepository`` with the same call surface.

	Deletes refuse to orphan rows, matching the plain foreign keys of the schema.
	"""

	_TABLES = (
		"users",
		"events",
		"registrations",
		"posts",
		"comments",
		"post_likes",
		"comment_likes",
		"notifications",
		"subscriptions",
	)

	def __init__(self) -> None:
		self.users: dict[UUID, models.User] = {}
		self.events: dict[UUID, models.Event] = {}
		self.registrations: dict[UUID, models.EventUser] = {}
		self.posts: dict[UUID, models.Post] = {}
		self.comments: dict[UUID, models.Comment] = {}
		self.post_likes: dict[UUID, models.LikePost] = {}
		self.comment_likes: dict[UUID, models.LikeComment] = {}
		self.notifications: dict[UUID, models.Notification] = {}
		self.subscriptions: dict[UUID, models.PushSubscription] = {}
		self._clock = datetime.now(timezone.utc)

	def _now(self) -> datetime:
		self._clock += timedelta(milliseconds=1)
		return self._clock

	def snapshot(self) -> dict[str, dict]:
		return {name: dict(getattr(self, name)) for name in self._TABLES}

	def restore(self, snapshot: dict[str, dict]) -> None:
		for name, rows in snapshot.items():
			setattr(self, name, rows)

	def counter_violations(self) -> list[str]:
		"""Describe every stored counter that disagrees with the live row count."""
		problems: list[str] = []
		for post in self.posts.values():
			likes = sum(1 for like in self.post_likes.values() if like.post_id == post.id)
			comments = sum(1 for c in self.comments.values() if c.post_id == post.id)
			if post.likes_count != likes:
				problems.append(f"post {post.id} likes_count={post.likes_count} actual={likes}")
			if post.comments_count != comments:
				problems.append(f"post {post.id} comments_count={post.comments_count} actual={comments}")
		for comment in self.comments.values():
			likes = sum(1 for like in self.comment_likes.values() if like.comment_id == comment.id)
			replies = sum(1 for c in self.comments.values() if c.parent_id == comment.id)
			if comment.likes_count != likes:
				problems.append(f"comment {comment.id} likes_count={comment.likes_count} actual={likes}")
			if comment.replies_count != replies:
				problems.append(f"comment {comment.id} replies_count={comment.replies_count} actual={replies}")
		return problems

	def add_user(self, username: str, role: str = ROLE_USER) -> models.User:
		user = models.User(id=uuid4(), username=username, role=role)
		self.users[user.id] = user
		return user

	# --- Users

	async def get_user(self, user_id: UUID, *, conn=None):
		return self.users.get(user_id)

	async def list_users_by_role(self, role: str, *, conn=None):
		return sorted((u for u in self.users.values() if u.role == role), key=lambda u: u.username)

	# --- Events

	async def create_event(self, *, conn=None, **fields: Any):
		now = self._now()
		event = models.Event(id=uuid4(), status=models.EVENT_PENDING, created_at=now, updated_at=now, **fields)
		self.events[event.id] = event
		return event

	async def get_event(self, event_id: UUID, *, conn=None, for_update: bool = False):
		return self.events.get(event_id)

	async def update_event(self, event_id: UUID, *, fields: dict[str, Any], conn=None):
		if not fields:
			raise ConflictError("no_event_updates_requested")
		event = self.events.get(event_id)
		if event is None:
			return None
		updated = event.model_copy(update={**fields, "updated_at": self._now()})
		self.events[event_id] = updated
		return updated

	async def set_event_status(self, event_id: UUID, status: str, *, conn=None):
		event = self.events.get(event_id)
		if event is None:
			return None
		updated = event.model_copy(update={"status": status, "updated_at": self._now()})
		self.events[event_id] = updated
		return updated

	async def delete_event(self, event_id: UUID, *, conn=None):
		if any(p.event_id == event_id for p in self.posts.values()) or any(
			r.event_id == event_id for r in self.registrations.values()
		):
			raise ForeignKeyViolation("event_entity still referenced")
		return self.events.pop(event_id, None) is not None

	async def list_events(
		self,
		*,
		status: Optional[str] = None,
		manager_id: Optional[UUID] = None,
		query_text: Optional[str] = None,
		event_type: Optional[str] = None,
		conn=None,
	):
		items = [
			e
			for e in self.events.values()
			if (status is None or e.status == status)
			and (manager_id is None or e.manager_id == manager_id)
			and (not query_text or query_text.lower() in e.title.lower())
			and (not event_type or (e.type or "").lower() == event_type.lower())
		]
		return sorted(items, key=lambda e: (e.created_at, e.id), reverse=True)

	# --- Registrations

	async def get_registration(self, registration_id: UUID, *, conn=None, for_update: bool = False):
		return self.registrations.get(registration_id)

	async def get_registration_for(self, user_id: UUID, event_id: UUID, *, conn=None):
		for item in self.registrations.values():
			if item.user_id == user_id and item.event_id == event_id:
				return item
		return None

	async def insert_registration(self, user_id: UUID, event_id: UUID, *, conn=None):
		if await self.get_registration_for(user_id, event_id) is not None:
			return None
		registration = models.EventUser(id=uuid4(), user_id=user_id, event_id=event_id, created_at=self._now())
		self.registrations[registration.id] = registration
		return registration

	async def update_registration(
		self,
		registration_id: UUID,
		*,
		accepted: Optional[bool] = None,
		completed: Optional[bool] = None,
		conn=None,
	):
		registration = self.registrations.get(registration_id)
		if registration is None:
			return None
		changes: dict[str, bool] = {}
		if accepted is not None:
			changes["accepted"] = accepted
		if completed is not None:
			changes["completed"] = completed
		updated = registration.model_copy(update=changes)
		self.registrations[registration_id] = updated
		return updated

	async def delete_registration(self, registration_id: UUID, *, conn=None):
		return self.registrations.pop(registration_id, None)

	async def delete_registrations_for_event(self, event_id: UUID, *, conn=None):
		doomed = [key for key, item in self.registrations.items() if item.event_id == event_id]
		for key in doomed:
			del self.registrations[key]
		return len(doomed)

	async def list_registrations(
		self,
		*,
		event_id: Optional[UUID] = None,
		user_id: Optional[UUID] = None,
		accepted: Optional[bool] = None,
		conn=None,
	):
		items = [
			r
			for r in self.registrations.values()
			if (event_id is None or r.event_id == event_id)
			and (user_id is None or r.user_id == user_id)
			and (accepted is None or r.accepted == accepted)
		]
		return sorted(items, key=lambda r: (r.created_at, r.id))

	async def list_accepted_event_ids(self, user_id: UUID, *, conn=None):
		return [r.event_id for r in self.registrations.values() if r.user_id == user_id and r.accepted]

	# --- Posts

	async def create_post(self, *, event_id, author_id, content, image_url, conn=None):
		now = self._now()
		post = models.Post(
			id=uuid4(),
			event_id=event_id,
			author_id=author_id,
			content=content,
			image_url=image_url,
			created_at=now,
			updated_at=now,
		)
		self.posts[post.id] = post
		return post

	async def get_post(self, post_id: UUID, *, conn=None, for_update: bool = False):
		return self.posts.get(post_id)

	async def update_post(self, post_id: UUID, *, content, image_url, conn=None):
		post = self.posts.get(post_id)
		if post is None:
			return None
		changes: dict[str, Any] = {"updated_at": self._now()}
		if content is not None:
			changes["content"] = content
		if image_url is not None:
			changes["image_url"] = image_url
		updated = post.model_copy(update=changes)
		self.posts[post_id] = updated
		return updated

	async def adjust_post_counters(self, post_id: UUID, *, likes_delta: int = 0, comments_delta: int = 0, conn=None):
		post = self.posts.get(post_id)
		if post is None:
			return None
		updated = post.model_copy(
			update={
				"likes_count": max(0, post.likes_count + likes_delta),
				"comments_count": max(0, post.comments_count + comments_delta),
			}
		)
		self.posts[post_id] = updated
		return updated

	async def delete_post(self, post_id: UUID, *, conn=None):
		if any(c.post_id == post_id for c in self.comments.values()) or any(
			like.post_id == post_id for like in self.post_likes.values()
		):
			raise ForeignKeyViolation("post still referenced")
		return self.posts.pop(post_id, None) is not None

	async def list_posts(self, *, event_id: Optional[UUID] = None, author_id: Optional[UUID] = None, conn=None):
		items = [
			p
			for p in self.posts.values()
			if (event_id is None or p.event_id == event_id) and (author_id is None or p.author_id == author_id)
		]
		return sorted(items, key=lambda p: (p.created_at, p.id), reverse=True)

	async def list_posts_for_member(self, user_id: UUID, event_ids: Sequence[UUID], *, conn=None):
		wanted = set(event_ids)
		items = [p for p in self.posts.values() if p.author_id == user_id or p.event_id in wanted]
		return sorted(items, key=lambda p: (p.created_at, p.id), reverse=True)

	async def list_feed_posts(self, *, event_ids: Sequence[UUID], limit: int, after=None, conn=None):
		wanted = set(event_ids)
		items = [p for p in self.posts.values() if p.event_id is None or p.event_id in wanted]
		items.sort(key=lambda p: (p.created_at, p.id), reverse=True)
		if after is not None:
			items = [p for p in items if (p.created_at, p.id) < after]
		page = items[: limit + 1]
		next_cursor = None
		if len(page) > limit:
			page.pop()
			next_cursor = repo_module.encode_cursor((page[-1].created_at, page[-1].id))
		return page, next_cursor

	# --- Comments

	async def create_comment(self, *, post_id, author_id, parent_id, content, conn=None):
		now = self._now()
		comment = models.Comment(
			id=uuid4(),
			post_id=post_id,
			author_id=author_id,
			parent_id=parent_id,
			content=content,
			created_at=now,
			updated_at=now,
		)
		self.comments[comment.id] = comment
		return comment

	async def get_comment(self, comment_id: UUID, *, conn=None, for_update: bool = False):
		return self.comments.get(comment_id)

	async def update_comment(self, comment_id: UUID, *, content: str, conn=None):
		comment = self.comments.get(comment_id)
		if comment is None:
			return None
		updated = comment.model_copy(update={"content": content, "updated_at": self._now()})
		self.comments[comment_id] = updated
		return updated

	async def adjust_comment_counters(
		self,
		comment_id: UUID,
		*,
		likes_delta: int = 0,
		replies_delta: int = 0,
		conn=None,
	):
		comment = self.comments.get(comment_id)
		if comment is None:
			return None
		updated = comment.model_copy(
			update={
				"likes_count": max(0, comment.likes_count + likes_delta),
				"replies_count": max(0, comment.replies_count + replies_delta),
			}
		)
		self.comments[comment_id] = updated
		return updated

	async def delete_comment(self, comment_id: UUID, *, conn=None):
		if any(c.parent_id == comment_id for c in self.comments.values()) or any(
			like.comment_id == comment_id for like in self.comment_likes.values()
		):
			raise ForeignKeyViolation("comment still referenced")
		return self.comments.pop(comment_id, None) is not None

	async def list_comments(self, post_id: UUID, *, top_level_only: bool = False, conn=None):
		items = [
			c
			for c in self.comments.values()
			if c.post_id == post_id and (not top_level_only or c.parent_id is None)
		]
		return sorted(items, key=lambda c: (c.created_at, c.id))

	async def list_replies(self, parent_id: UUID, *, conn=None):
		items = [c for c in self.comments.values() if c.parent_id == parent_id]
		return sorted(items, key=lambda c: (c.created_at, c.id))

	# --- Likes

	async def get_post_like(self, user_id: UUID, post_id: UUID, *, conn=None):
		for like in self.post_likes.values():
			if like.user_id == user_id and like.post_id == post_id:
				return like
		return None

	async def insert_post_like(self, user_id: UUID, post_id: UUID, *, conn=None):
		if await self.get_post_like(user_id, post_id) is not None:
			return None
		like = models.LikePost(id=uuid4(), user_id=user_id, post_id=post_id, created_at=self._now())
		self.post_likes[like.id] = like
		return like

	async def delete_post_like(self, like_id: UUID, *, conn=None):
		return self.post_likes.pop(like_id, None) is not None

	async def delete_post_likes(self, post_id: UUID, *, conn=None):
		doomed = [key for key, like in self.post_likes.items() if like.post_id == post_id]
		for key in doomed:
			del self.post_likes[key]
		return len(doomed)

	async def get_comment_like(self, user_id: UUID, comment_id: UUID, *, conn=None):
		for like in self.comment_likes.values():
			if like.user_id == user_id and like.comment_id == comment_id:
				return like
		return None

	async def insert_comment_like(self, user_id: UUID, comment_id: UUID, *, conn=None):
		if await self.get_comment_like(user_id, comment_id) is not None:
			return None
		like = models.LikeComment(id=uuid4(), user_id=user_id, comment_id=comment_id, created_at=self._now())
		self.comment_likes[like.id] = like
		return like

	async def delete_comment_like(self, like_id: UUID, *, conn=None):
		return self.comment_likes.pop(like_id, None) is not None

	async def delete_comment_likes(self, comment_id: UUID, *, conn=None):
		doomed = [key for key, like in self.comment_likes.items() if like.comment_id == comment_id]
		for key in doomed:
			del self.comment_likes[key]
		return len(doomed)

	# --- Notifications

	async def insert_notification(self, *, user_id: UUID, content: str, link: Optional[str], conn=None):
		notification = models.Notification(
			id=uuid4(),
			user_id=user_id,
			content=content,
			link=link,
			created_at=self._now(),
		)
		self.notifications[notification.id] = notification
		return notification

	async def get_notification(self, notification_id: UUID, *, conn=None):
		return self.notifications.get(notification_id)

	async def list_notifications(self, user_id: UUID, *, conn=None):
		items = [n for n in self.notifications.values() if n.user_id == user_id]
		return sorted(items, key=lambda n: (n.created_at, n.id), reverse=True)

	async def mark_notification_read(self, notification_id: UUID, *, conn=None):
		notification = self.notifications.get(notification_id)
		if notification is None:
			return None
		updated = notification.model_copy(update={"is_read": True})
		self.notifications[notification_id] = updated
		return updated

	async def count_unread_notifications(self, user_id: UUID, *, conn=None):
		return sum(1 for n in self.notifications.values() if n.user_id == user_id and not n.is_read)

	# --- Push subscriptions

	async def get_push_subscription(self, user_id: UUID, endpoint: str, *, conn=None):
		for item in self.subscriptions.values():
			if item.user_id == user_id and item.endpoint == endpoint:
				return item
		return None

	async def insert_push_subscription(self, *, user_id: UUID, endpoint: str, p256dh: str, auth: str, conn=None):
		if await self.get_push_subscription(user_id, endpoint) is not None:
			return None
		subscription = models.PushSubscription(
			id=uuid4(),
			user_id=user_id,
			endpoint=endpoint,
			p256dh=p256dh,
			auth=auth,
			created_at=self._now(),
		)
		self.subscriptions[subscription.id] = subscription
		return subscription

	async def list_push_subscriptions(self, user_id: UUID, *, conn=None):
		items = [s for s in self.subscriptions.values() if s.user_id == user_id]
		return sorted(items, key=lambda s: s.created_at)

	async def delete_push_subscription(self, subscription_id: UUID, *, conn=None):
		return self.subscriptions.pop(subscription_id, None) is not None


class _FakeTransaction:
	"""Restores the store snapshot when the block raises, like a Postgres rollback."""

	def __init__(self, store: InMemoryRepository) -> None:
		self._store = store
		self._snapshot: dict[str, dict] | None = None

	async def __aenter__(self):
		self._snapshot = self._store.snapshot()
		return None

	async def __aexit__(self, exc_type, exc, tb):
		if exc_type is not None and self._snapshot is not None:
			self._store.restore(self._snapshot)
		return False


class _FakeConnection:
	def __init__(self, store: InMemoryRepository) -> None:
		self._store = store

	async def fetchval(self, query, *args):
		return 1

	def transaction(self):
		return _FakeTransaction(self._store)


class _FakeAcquire:
	def __init__(self, conn):
		self._conn = conn

	async def __aenter__(self):
		return self._conn

	async def __aexit__(self, exc_type, exc, tb):
		return False


class _FakePool:
	def __init__(self, store: InMemoryRepository) -> None:
		self._conn = _FakeConnection(store)

	def acquire(self):
		return _FakeAcquire(self._conn)


class FakeGateway:
	"""Records deliveries; per-endpoint outcomes can be scripted."""

	def __init__(self) -> None:
		self.outcomes: dict[str, DeliveryResult] = {}
		self.calls: list[tuple[str, dict]] = []

	async def deliver(self, endpoint, keys, payload):
		self.calls.append((endpoint, payload))
		return self.outcomes.get(endpoint, DeliveryResult(outcome=DELIVERED, status_code=201))


def event_payload(title: str = "Board Games Night", *, starts_in: timedelta = timedelta(days=2), **overrides):
	start_at = datetime.now(timezone.utc) + starts_in
	values = {
		"type": "social",
		"title": title,
		"start_at": start_at,
		"end_at": start_at + timedelta(hours=3),
		"location": "Hall B",
		"description": "Bring your favourite game.",
	}
	values.update(overrides)
	return dto.EventCreateRequest(**values)


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate via X-User-Id/X-User-Role headers, accepted only in dev."""
	original_env = settings.environment
	original_notify = settings.notify_admins_on_event_created
	settings.environment = "dev"
	settings.notify_admins_on_event_created = False
	try:
		yield
	finally:
		settings.environment = original_env
		settings.notify_admins_on_event_created = original_notify


@pytest.fixture
def store():
	return InMemoryRepository()


@pytest.fixture(autouse=True)
def fake_pool(store):
	pool = _FakePool(store)
	postgres.set_pool(pool)
	try:
		yield pool
	finally:
		postgres.set_pool(None)


@pytest.fixture
def gateway():
	return FakeGateway()


@pytest.fixture
def dispatcher(store, gateway):
	instance = PushDispatcher(repository=store, gateway=gateway, workers=1, queue_size=100)
	set_dispatcher(instance)
	try:
		yield instance
	finally:
		set_dispatcher(None)


@pytest.fixture
def notifications(store, dispatcher):
	return NotificationService(repository=store, dispatcher=dispatcher)


@pytest.fixture
def content_service(store, notifications):
	return ContentService(repository=store, notifications=notifications)


@pytest.fixture
def events_service(store, notifications, content_service):
	return EventsService(repository=store, notifications=notifications, content=content_service)


@pytest.fixture
def registrations_service(store, notifications):
	return RegistrationsService(repository=store, notifications=notifications)


@pytest.fixture
def manager(store):
	return store.add_user("mira", ROLE_HOST)


@pytest.fixture
def member(store):
	return store.add_user("uma", ROLE_USER)


@pytest.fixture
def admin(store):
	return store.add_user("ada", ROLE_ADMIN)


@pytest.fixture
def wired_api(monkeypatch, store, notifications, content_service, events_service, registrations_service):
	monkeypatch.setattr(events_api, "_service", events_service)
	monkeypatch.setattr(registrations_api, "_service", registrations_service)
	monkeypatch.setattr(posts_api, "_service", content_service)
	monkeypatch.setattr(comments_api, "_service", content_service)
	monkeypatch.setattr(likes_api, "_service", content_service)
	monkeypatch.setattr(feeds_api, "_service", content_service)
	monkeypatch.setattr(notifications_api, "_service", notifications)
	return store


@pytest_asyncio.fixture
async def api_client(wired_api):
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


def auth_headers(user: models.User) -> dict[str, str]:
	return {"X-User-Id": str(user.id), "X-User-Role": user.role}


@pytest.fixture
def make_event_payload():
	return event_payload


@pytest.fixture
def headers_for():
	return auth_headers
