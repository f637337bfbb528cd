"""Like toggle endpoints for posts and comments."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from gatherly.events.api._errors import to_http_error
from gatherly.events.domain.content_service import ContentService
from gatherly.events.domain.exceptions import GatherlyError
from gatherly.events.schemas import dto
from gatherly.infra.auth import Principal, get_current_principal

router = APIRouter(prefix="/likes", tags=["likes"])
_service = ContentService()


@router.post("/posts/{post_id}", response_model=dto.LikeToggleResponse)
async def toggle_post_like_endpoint(
	post_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.LikeToggleResponse:
	try:
		outcome = await _service.toggle_like_post(principal.id, post_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.LikeToggleResponse(result=outcome.result, likes_count=outcome.likes_count)


@router.get("/posts/{post_id}", response_model=dto.LikeStatusResponse)
async def post_like_status_endpoint(
	post_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.LikeStatusResponse:
	return dto.LikeStatusResponse(liked=await _service.has_liked_post(principal.id, post_id))


@router.post("/comments/{comment_id}", response_model=dto.LikeToggleResponse)
async def toggle_comment_like_endpoint(
	comment_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.LikeToggleResponse:
	try:
		outcome = await _service.toggle_like_comment(principal.id, comment_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.LikeToggleResponse(result=outcome.result, likes_count=outcome.likes_count)


@router.get("/comments/{comment_id}", response_model=dto.LikeStatusResponse)
async def comment_like_status_endpoint(
	comment_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.LikeStatusResponse:
	return dto.LikeStatusResponse(liked=await _service.has_liked_comment(principal.id, comment_id))
