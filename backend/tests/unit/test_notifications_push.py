from __future__ import annotations

import asyncio
import logging
from types import SimpleNamespace
from uuid import uuid4

import pytest
from pywebpush import WebPushException

import gatherly.infra.webpush as webpush_module
from gatherly.events.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from gatherly.events.workers.push_dispatcher import PushDispatcher, PushJob
from gatherly.infra.auth import Principal
from gatherly.infra.webpush import DELIVERED, FAILED, GONE, DeliveryResult, PushKeys, WebPushGateway
from gatherly.settings import settings


@pytest.mark.asyncio
async def test_notify_persists_and_queues_push(store, notifications, dispatcher, gateway, member):
	await notifications.subscribe(member.id, "https://push.example/a", "p256", "auth")

	note = await notifications.notify(member.id, "Hello there", "/events/1")

	assert store.notifications[note.id].content == "Hello there"
	assert gateway.calls == []
	assert dispatcher.pending() == 1
	await dispatcher.drain()
	assert gateway.calls == [
		("https://push.example/a", {"title": settings.push_title, "body": "Hello there", "url": "/events/1"})
	]


@pytest.mark.asyncio
async def test_gone_endpoint_prunes_only_that_subscription(store, notifications, dispatcher, gateway, member):
	dead = await notifications.subscribe(member.id, "https://push.example/dead", "p1", "a1")
	alive = await notifications.subscribe(member.id, "https://push.example/alive", "p2", "a2")
	gateway.outcomes[dead.endpoint] = DeliveryResult(outcome=GONE, status_code=410, reason="Gone")

	note = await notifications.notify(member.id, "ping", None)
	await dispatcher.drain()

	assert dead.id not in store.subscriptions
	assert alive.id in store.subscriptions
	assert note.id in store.notifications
	assert len(gateway.calls) == 2


@pytest.mark.asyncio
async def test_failed_delivery_is_logged_and_kept(store, notifications, dispatcher, gateway, member, caplog):
	sub = await notifications.subscribe(member.id, "https://push.example/flaky", "p", "a")
	gateway.outcomes[sub.endpoint] = DeliveryResult(outcome=FAILED, status_code=500, reason="boom")

	with caplog.at_level(logging.WARNING, logger="gatherly.events.workers.push_dispatcher"):
		await notifications.notify(member.id, "ping", None)
		await dispatcher.drain()

	assert sub.id in store.subscriptions
	assert any(record.getMessage() == "push_dispatcher.delivery_failed" for record in caplog.records)


@pytest.mark.asyncio
async def test_gateway_crash_never_reaches_caller(store, member):
	class _Exploding:
		async def deliver(self, endpoint, keys, payload):
			raise RuntimeError("socket closed")

	dispatcher = PushDispatcher(repository=store, gateway=_Exploding(), workers=1, queue_size=10)
	job = PushJob(
		subscription_id=uuid4(),
		user_id=member.id,
		endpoint="https://push.example/x",
		keys=PushKeys(p256dh="p", auth="a"),
	)

	assert dispatcher.submit(job) is True
	await dispatcher.drain()
	assert await dispatcher.process(job) is None


@pytest.mark.asyncio
async def test_full_queue_drops_job(store, gateway, member):
	dispatcher = PushDispatcher(repository=store, gateway=gateway, workers=1, queue_size=1)
	job = PushJob(
		subscription_id=uuid4(),
		user_id=member.id,
		endpoint="https://push.example/x",
		keys=PushKeys(p256dh="p", auth="a"),
	)

	assert dispatcher.submit(job) is True
	assert dispatcher.submit(job) is False
	assert dispatcher.pending() == 1


@pytest.mark.asyncio
async def test_running_workers_deliver_in_background(store, gateway, notifications, dispatcher, member):
	await notifications.subscribe(member.id, "https://push.example/bg", "p", "a")
	await dispatcher.start()
	try:
		await notifications.notify(member.id, "background", None)
		await asyncio.wait_for(dispatcher.drain(), timeout=2)
	finally:
		await dispatcher.stop()

	assert [endpoint for endpoint, _payload in gateway.calls] == ["https://push.example/bg"]
	assert dispatcher.running is False


@pytest.mark.asyncio
async def test_subscribe_is_idempotent_per_endpoint(store, notifications, member):
	first = await notifications.subscribe(member.id, "https://push.example/a", "p", "a")
	second = await notifications.subscribe(member.id, "https://push.example/a", "other", "keys")

	assert first.id == second.id
	assert len(store.subscriptions) == 1
	with pytest.raises(ValidationError):
		await notifications.subscribe(member.id, "", "p", "a")


@pytest.mark.asyncio
async def test_unsubscribe(store, notifications, member):
	await notifications.subscribe(member.id, "https://push.example/a", "p", "a")

	assert await notifications.unsubscribe(member.id, "https://push.example/a") is True
	assert await notifications.unsubscribe(member.id, "https://push.example/a") is False
	assert store.subscriptions == {}


@pytest.mark.asyncio
async def test_list_mark_read_and_unread_count(notifications, member, manager):
	older = await notifications.notify(member.id, "first", None)
	newer = await notifications.notify(member.id, "second", None)

	assert [n.id for n in await notifications.list_for_user(member.id)] == [newer.id, older.id]
	assert await notifications.unread_count(member.id) == 2

	read = await notifications.mark_read(older.id, Principal(id=member.id, role=member.role))
	assert read.is_read is True
	assert await notifications.unread_count(member.id) == 1

	with pytest.raises(NotFoundError):
		await notifications.mark_read(uuid4())
	with pytest.raises(ForbiddenError):
		await notifications.mark_read(newer.id, Principal(id=manager.id, role=manager.role))


@pytest.mark.asyncio
async def test_notify_many_skips_duplicates(store, notifications, member, manager):
	created = await notifications.notify_many([member.id, manager.id, member.id], "hi", None)

	assert len(created) == 2
	assert {n.user_id for n in store.notifications.values()} == {member.id, manager.id}


@pytest.mark.asyncio
async def test_gateway_maps_gone_status(monkeypatch):
	def _reject(**kwargs):
		raise WebPushException("Push failed: 410 Gone", response=SimpleNamespace(status_code=410))

	monkeypatch.setattr(webpush_module, "webpush", _reject)
	gateway = WebPushGateway(private_key="private", subject="mailto:ops@example.com", timeout=1)

	result = await gateway.deliver("https://push.example/a", PushKeys(p256dh="p", auth="a"), {"body": "x"})

	assert result.outcome == GONE
	assert result.is_gone is True
	assert result.status_code == 410


@pytest.mark.asyncio
async def test_gateway_maps_other_errors_to_failed(monkeypatch):
	def _reject(**kwargs):
		raise WebPushException("Push failed: 429", response=SimpleNamespace(status_code=429))

	monkeypatch.setattr(webpush_module, "webpush", _reject)
	gateway = WebPushGateway(private_key="private", subject="mailto:ops@example.com", timeout=1)

	result = await gateway.deliver("https://push.example/a", PushKeys(p256dh="p", auth="a"), {})

	assert result.outcome == FAILED
	assert result.status_code == 429


@pytest.mark.asyncio
async def test_gateway_success_and_missing_vapid(monkeypatch):
	captured = {}

	def _accept(**kwargs):
		captured.update(kwargs)
		return SimpleNamespace(status_code=201)

	monkeypatch.setattr(webpush_module, "webpush", _accept)
	configured = WebPushGateway(private_key="private", subject="mailto:ops@example.com", timeout=1)
	unconfigured = WebPushGateway(private_key="", subject="mailto:ops@example.com", timeout=1)

	ok = await configured.deliver("https://push.example/a", PushKeys(p256dh="p", auth="a"), {"title": "t"})
	missing = await unconfigured.deliver("https://push.example/a", PushKeys(p256dh="p", auth="a"), {})

	assert ok.outcome == DELIVERED
	assert captured["subscription_info"]["keys"] == {"p256dh": "p", "auth": "a"}
	assert captured["vapid_claims"] == {"sub": "mailto:ops@example.com"}
	assert missing.outcome == FAILED
	assert missing.reason == "vapid_not_configured"
