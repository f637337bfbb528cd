"""Web Push gateway built on pywebpush (VAPID signed, aes128gcm encrypted)."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Optional

from pywebpush import WebPushException, webpush

from gatherly.events.domain.exceptions import DeliveryError
from gatherly.settings import settings

DELIVERED = "delivered"
GONE = "gone"
FAILED = "failed"

# Push services answer 404/410 for subscriptions that will never work again.
_GONE_STATUSES = frozenset({404, 410})


@dataclass(frozen=True, slots=True)
class PushKeys:
	p256dh: str
	auth: str


@dataclass(frozen=True, slots=True)
class DeliveryResult:
	outcome: str
	status_code: Optional[int] = None
	reason: Optional[str] = None

	@property
	def is_gone(self) -> bool:
		return self.outcome == GONE


class WebPushGateway:
	"""Delivers JSON payloads to browser push endpoints."""

	def __init__(
		self,
		*,
		private_key: str | None = None,
		subject: str | None = None,
		timeout: float | None = None,
	) -> None:
		self.private_key = private_key if private_key is not None else settings.vapid_private_key
		self.subject = subject or settings.vapid_subject
		self.timeout = timeout if timeout is not None else settings.push_timeout_seconds

	async def deliver(self, endpoint: str, keys: PushKeys, payload: dict[str, Any]) -> DeliveryResult:
		try:
			status_code = await asyncio.to_thread(self._send, endpoint, keys, json.dumps(payload))
		except DeliveryError as exc:
			outcome = GONE if exc.status_code in _GONE_STATUSES else FAILED
			return DeliveryResult(outcome=outcome, status_code=exc.status_code, reason=exc.detail)
		return DeliveryResult(outcome=DELIVERED, status_code=status_code)

	def _send(self, endpoint: str, keys: PushKeys, data: str) -> int | None:
		if not self.private_key:
			raise DeliveryError("vapid_not_configured")
		try:
			response = webpush(
				subscription_info={"endpoint": endpoint, "keys": {"p256dh": keys.p256dh, "auth": keys.auth}},
				data=data,
				vapid_private_key=self.private_key,
				vapid_claims={"sub": self.subject},
				timeout=self.timeout,
			)
		except WebPushException as exc:
			response = getattr(exc, "response", None)
			status_code = getattr(response, "status_code", None)
			raise DeliveryError(str(exc) or "push_rejected", status_code=status_code) from exc
		except Exception as exc:
			raise DeliveryError(f"transport_error:{type(exc).__name__}") from exc
		return getattr(response, "status_code", None)
