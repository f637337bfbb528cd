"""Feed endpoints: global, news, per-user and per-event post listings."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from gatherly.events.api._errors import to_http_error
from gatherly.events.domain.content_service import ContentService
from gatherly.events.domain.exceptions import GatherlyError
from gatherly.events.schemas import dto
from gatherly.infra.auth import Principal, get_current_principal

router = APIRouter(prefix="/feeds", tags=["feeds"])
_service = ContentService()


def _page(items, next_cursor: Optional[str]) -> dto.FeedResponse:
	return dto.FeedResponse(items=[dto.PostResponse.model_validate(item) for item in items], next_cursor=next_cursor)


@router.get("/global", response_model=dto.FeedResponse)
async def global_feed_endpoint(
	limit: int = Query(default=20),
	cursor: Optional[str] = None,
	principal: Principal = Depends(get_current_principal),
) -> dto.FeedResponse:
	try:
		items, next_cursor = await _service.global_feed(limit=limit, cursor=cursor)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return _page(items, next_cursor)


@router.get("/news", response_model=dto.FeedResponse)
async def news_feed_endpoint(
	limit: int = Query(default=20),
	cursor: Optional[str] = None,
	principal: Principal = Depends(get_current_principal),
) -> dto.FeedResponse:
	try:
		items, next_cursor = await _service.news_feed(principal.id, limit=limit, cursor=cursor)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return _page(items, next_cursor)


@router.get("/users/{user_id}", response_model=dto.PostListResponse)
async def user_posts_endpoint(
	user_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.PostListResponse:
	posts = await _service.list_user_posts(user_id)
	return dto.PostListResponse(items=[dto.PostResponse.model_validate(item) for item in posts])


@router.get("/events/{event_id}", response_model=dto.PostListResponse)
async def event_posts_endpoint(
	event_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.PostListResponse:
	try:
		posts = await _service.list_event_posts(event_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.PostListResponse(items=[dto.PostResponse.model_validate(item) for item in posts])
