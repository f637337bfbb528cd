"""JSON log records with per-request context and redaction of push credentials."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Mapping, Optional

from gatherly.settings import settings

_LOGGER_NAME = "gatherly"

# Request fields (request_id, route, user_id) shared by every record of a request.
_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("gatherly_log_context", default={})

# Push endpoints and keys are bearer-like credentials for the subscriber.
_REDACT_MARKERS = ("token", "secret", "authorization", "password", "endpoint", "p256dh", "vapid")
_REDACT_KEYS = frozenset({"auth", "keys"})
_REDACTED = "[redacted]"

_STRING_LIMIT = 256
_ITEM_LIMIT = 10

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "taskName"}

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("asyncpg", "urllib3", "httpx", "uvicorn.access")


@contextmanager
def request_context(**fields: Optional[str]) -> Iterator[None]:
	"""Attach ``fields`` to every record logged inside the block."""
	merged = dict(_CONTEXT.get())
	merged.update({key: value for key, value in fields.items() if value})
	token = _CONTEXT.set(merged)
	try:
		yield
	finally:
		_CONTEXT.reset(token)


def _is_sensitive(key: str) -> bool:
	lowered = key.lower()
	if lowered in _REDACT_KEYS:
		return True
	return any(marker in lowered for marker in _REDACT_MARKERS)


def _clean(value: Any) -> Any:
	if isinstance(value, str):
		return value if len(value) <= _STRING_LIMIT else value[:_STRING_LIMIT] + "..."
	if isinstance(value, Mapping):
		cleaned: Dict[str, Any] = {}
		for index, (key, nested) in enumerate(value.items()):
			if index == _ITEM_LIMIT:
				cleaned["..."] = f"+{len(value) - _ITEM_LIMIT} keys"
				break
			cleaned[str(key)] = _REDACTED if _is_sensitive(str(key)) else _clean(nested)
		return cleaned
	if isinstance(value, (list, tuple, set, frozenset)):
		items = [_clean(item) for item in list(value)[:_ITEM_LIMIT]]
		if len(value) > _ITEM_LIMIT:
			items.append("...")
		return items
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per record: fixed service fields, request context, then extras."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"event": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		payload.update(_CONTEXT.get())
		for key, value in vars(record).items():
			if key in _STANDARD_ATTRS or key in payload:
				continue
			payload[key] = _REDACTED if _is_sensitive(key) else _clean(value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(level: Optional[str] = None) -> logging.Logger:
	"""Route the root logger through a single JSON handler."""
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	root = logging.getLogger()
	root.handlers[:] = [handler]
	root.setLevel(level or settings.obs_log_level)
	for name in _QUIET_LOGGERS:
		logging.getLogger(name).setLevel(logging.WARNING)
	return logging.getLogger(_LOGGER_NAME)
