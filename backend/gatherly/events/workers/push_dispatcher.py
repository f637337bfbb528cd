"""Background Web Push delivery workers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from gatherly.events.domain import repo as repo_module
from gatherly.infra.webpush import FAILED, DeliveryResult, PushKeys, WebPushGateway
from gatherly.obs import metrics as obs_metrics
from gatherly.settings import settings

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PushJob:
	subscription_id: UUID
	user_id: UUID
	endpoint: str
	keys: PushKeys
	payload: dict[str, Any] = field(default_factory=dict)


class PushDispatcher:
	"""Queues push jobs and delivers them on worker tasks.

	Delivery outcomes never reach the code that submitted the job: a gone
	endpoint prunes its subscription, anything else is logged and counted.
	"""

	def __init__(
		self,
		*,
		repository: repo_module.EventsRepository | None = None,
		gateway: WebPushGateway | None = None,
		workers: int | None = None,
		queue_size: int | None = None,
	) -> None:
		self.repo = repository or repo_module.EventsRepository()
		self.gateway = gateway or WebPushGateway()
		self.workers = max(1, workers if workers is not None else settings.push_workers)
		self._queue: asyncio.Queue[PushJob] = asyncio.Queue(
			maxsize=queue_size if queue_size is not None else settings.push_queue_size
		)
		self._tasks: list[asyncio.Task[None]] = []
		self._running = False

	@property
	def running(self) -> bool:
		return self._running

	def pending(self) -> int:
		return self._queue.qsize()

	def submit(self, job: PushJob) -> bool:
		try:
			self._queue.put_nowait(job)
		except asyncio.QueueFull:
			obs_metrics.push_dropped("queue_full")
			_LOG.warning(
				"push_dispatcher.queue_full",
				extra={"user_id": str(job.user_id), "subscription_id": str(job.subscription_id)},
			)
			return False
		return True

	async def start(self) -> None:
		if self._running:
			return
		self._running = True
		for index in range(self.workers):
			self._tasks.append(asyncio.create_task(self.run_forever(), name=f"push-dispatcher-{index}"))
		_LOG.info("push_dispatcher.started", extra={"workers": self.workers})

	async def stop(self) -> None:
		if not self._running:
			return
		self._running = False
		for task in self._tasks:
			task.cancel()
		await asyncio.gather(*self._tasks, return_exceptions=True)
		self._tasks.clear()
		_LOG.info("push_dispatcher.stopped", extra={"pending": self._queue.qsize()})

	async def drain(self) -> None:
		"""Wait until every queued job has been handled.

		Without running workers the queue is processed inline.
		"""
		if self._running:
			await self._queue.join()
			return
		while not self._queue.empty():
			job = self._queue.get_nowait()
			try:
				await self.process(job)
			finally:
				self._queue.task_done()

	async def run_forever(self) -> None:
		while True:
			job = await self._queue.get()
			try:
				await self.process(job)
			finally:
				self._queue.task_done()

	async def process(self, job: PushJob) -> DeliveryResult | None:
		try:
			result = await self.gateway.deliver(job.endpoint, job.keys, job.payload)
		except asyncio.CancelledError:
			raise
		except Exception:
			obs_metrics.push_delivery(FAILED)
			_LOG.exception("push_dispatcher.deliver_crashed", extra={"subscription_id": str(job.subscription_id)})
			return None
		obs_metrics.push_delivery(result.outcome)
		if result.is_gone:
			await self._prune(job, result)
		elif result.outcome == FAILED:
			_LOG.warning(
				"push_dispatcher.delivery_failed",
				extra={
					"subscription_id": str(job.subscription_id),
					"status_code": result.status_code,
					"reason": result.reason,
				},
			)
		return result

	async def _prune(self, job: PushJob, result: DeliveryResult) -> None:
		try:
			deleted = await self.repo.delete_push_subscription(job.subscription_id)
		except asyncio.CancelledError:
			raise
		except Exception:
			_LOG.exception("push_dispatcher.prune_failed", extra={"subscription_id": str(job.subscription_id)})
			return
		if deleted:
			obs_metrics.push_subscription_pruned()
			_LOG.info(
				"push_dispatcher.subscription_pruned",
				extra={
					"subscription_id": str(job.subscription_id),
					"user_id": str(job.user_id),
					"status_code": result.status_code,
				},
			)


_dispatcher: PushDispatcher | None = None


def get_dispatcher() -> PushDispatcher:
	global _dispatcher
	if _dispatcher is None:
		_dispatcher = PushDispatcher()
	return _dispatcher


def set_dispatcher(dispatcher: PushDispatcher | None) -> None:
	global _dispatcher
	_dispatcher = dispatcher


__all__ = ["PushDispatcher", "PushJob", "get_dispatcher", "set_dispatcher"]
