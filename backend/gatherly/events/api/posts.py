"""Post API endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response

from gatherly.events.api._errors import to_http_error
from gatherly.events.domain.content_service import ContentService
from gatherly.events.domain.exceptions import GatherlyError
from gatherly.events.schemas import dto
from gatherly.infra.auth import Principal, get_current_principal

router = APIRouter(tags=["posts"])
_service = ContentService()


@router.post("/posts", response_model=dto.PostResponse, status_code=201)
async def create_post_endpoint(
	payload: dto.PostCreateRequest,
	principal: Principal = Depends(get_current_principal),
) -> dto.PostResponse:
	try:
		post = await _service.create_post(payload.event_id, principal.id, payload.content, payload.image_url)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.PostResponse.model_validate(post)


@router.get("/posts/{post_id}", response_model=dto.PostResponse)
async def get_post_endpoint(
	post_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.PostResponse:
	try:
		post = await _service.get_post(post_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.PostResponse.model_validate(post)


@router.patch("/posts/{post_id}", response_model=dto.PostResponse)
async def update_post_endpoint(
	post_id: UUID,
	payload: dto.PostUpdateRequest,
	principal: Principal = Depends(get_current_principal),
) -> dto.PostResponse:
	try:
		post = await _service.update_post(post_id, payload, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.PostResponse.model_validate(post)


@router.delete(
	"/posts/{post_id}",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def delete_post_endpoint(
	post_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> None:
	try:
		await _service.delete_post(post_id, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return None


@router.get("/posts/{post_id}/comments", response_model=dto.CommentListResponse)
async def list_comments_endpoint(
	post_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.CommentListResponse:
	try:
		comments = await _service.list_comments(post_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.CommentListResponse(items=[dto.CommentResponse.model_validate(item) for item in comments])


@router.post("/posts/{post_id}/comments", response_model=dto.CommentResponse, status_code=201)
async def create_comment_endpoint(
	post_id: UUID,
	payload: dto.CommentCreateRequest,
	principal: Principal = Depends(get_current_principal),
) -> dto.CommentResponse:
	try:
		comment = await _service.create_comment(post_id, principal.id, payload.content, payload.parent_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.CommentResponse.model_validate(comment)
