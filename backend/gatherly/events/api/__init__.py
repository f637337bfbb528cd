"""FastAPI routers for the events domain."""

from __future__ import annotations

from fastapi import APIRouter

from gatherly.events.api import comments, events, feeds, likes, notifications, posts, registrations

router = APIRouter(prefix="/api/v1")

router.include_router(events.router)
router.include_router(registrations.router)
router.include_router(posts.router)
router.include_router(comments.router)
router.include_router(likes.router)
router.include_router(notifications.router)
router.include_router(feeds.router)

__all__ = ["router"]
