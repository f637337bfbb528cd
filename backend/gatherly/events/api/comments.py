"""Comment API endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response

from gatherly.events.api._errors import to_http_error
from gatherly.events.domain.content_service import ContentService
from gatherly.events.domain.exceptions import GatherlyError
from gatherly.events.schemas import dto
from gatherly.infra.auth import Principal, get_current_principal

router = APIRouter(tags=["comments"])
_service = ContentService()


@router.get("/comments/{comment_id}", response_model=dto.CommentResponse)
async def get_comment_endpoint(
	comment_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.CommentResponse:
	try:
		comment = await _service.get_comment(comment_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.CommentResponse.model_validate(comment)


@router.get("/comments/{comment_id}/replies", response_model=dto.CommentListResponse)
async def list_replies_endpoint(
	comment_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.CommentListResponse:
	try:
		replies = await _service.list_replies(comment_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.CommentListResponse(items=[dto.CommentResponse.model_validate(item) for item in replies])


@router.patch("/comments/{comment_id}", response_model=dto.CommentResponse)
async def update_comment_endpoint(
	comment_id: UUID,
	payload: dto.CommentUpdateRequest,
	principal: Principal = Depends(get_current_principal),
) -> dto.CommentResponse:
	try:
		comment = await _service.update_comment(comment_id, payload.content, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.CommentResponse.model_validate(comment)


@router.delete(
	"/comments/{comment_id}",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def delete_comment_endpoint(
	comment_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> None:
	try:
		await _service.delete_comment(comment_id, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return None
