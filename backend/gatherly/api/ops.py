"""Operations endpoints providing health checks and Prometheus metrics."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from gatherly.events.workers.push_dispatcher import get_dispatcher
from gatherly.infra import postgres

_LOG = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ops"])


@router.get("/health")
async def health_live() -> dict[str, str]:
	return {"status": "ok"}


@router.get("/health/ready")
async def health_ready() -> Response:
	try:
		await postgres.ping()
	except Exception as exc:
		_LOG.warning("ops.postgres_unready", exc_info=True)
		return JSONResponse(
			{"status": "unavailable", "postgres": {"ok": False, "error": str(exc)}},
			status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
		)
	dispatcher = get_dispatcher()
	return JSONResponse(
		{
			"status": "ok",
			"postgres": {"ok": True},
			"push": {"running": dispatcher.running, "pending": dispatcher.pending()},
		}
	)


@router.get("/metrics")
async def prometheus_metrics() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
