"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gatherly.api import ops
from gatherly.events.api import router as events_router
from gatherly.events.workers.push_dispatcher import get_dispatcher
from gatherly.infra import postgres
from gatherly.obs import init as obs_init
from gatherly.settings import settings

_LOG = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	dispatcher = get_dispatcher()
	await dispatcher.start()
	app.state.push_dispatcher = dispatcher
	if not settings.vapid_private_key:
		_LOG.warning("push.vapid_not_configured")
	try:
		yield
	finally:
		await dispatcher.stop()
		await postgres.close_pool()


app = FastAPI(title="Gatherly API", lifespan=lifespan)
obs_init(app)

app.include_router(ops.router)
app.include_router(events_router)
