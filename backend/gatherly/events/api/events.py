"""Events API endpoints."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from gatherly.events.api._errors import to_http_error
from gatherly.events.domain.events_service import EventsService
from gatherly.events.domain.exceptions import GatherlyError
from gatherly.events.schemas import dto
from gatherly.infra.auth import ROLE_ADMIN, Principal, get_current_principal, require_roles

router = APIRouter(tags=["events"])
_service = EventsService()


@router.post("/events", response_model=dto.EventResponse, status_code=201)
async def create_event_endpoint(
	payload: dto.EventCreateRequest,
	principal: Principal = Depends(get_current_principal),
) -> dto.EventResponse:
	try:
		event = await _service.create_event(principal.id, payload)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.EventResponse.model_validate(event)


@router.get("/events", response_model=dto.EventListResponse)
async def list_events_endpoint(
	status: Optional[str] = Query(default=None, pattern="^(PENDING|ACCEPTED)$"),
	q: Optional[str] = Query(default=None, max_length=200),
	type: Optional[str] = Query(default=None, max_length=64),
	principal: Principal = Depends(get_current_principal),
) -> dto.EventListResponse:
	events = await _service.list_events(status=status, query_text=q, event_type=type)
	return dto.EventListResponse(items=[dto.EventResponse.model_validate(item) for item in events])


@router.get("/events/managed", response_model=dto.EventListResponse)
async def list_managed_events_endpoint(
	principal: Principal = Depends(get_current_principal),
) -> dto.EventListResponse:
	events = await _service.list_managed_events(principal.id)
	return dto.EventListResponse(items=[dto.EventResponse.model_validate(item) for item in events])


@router.get("/events/{event_id}", response_model=dto.EventDetailResponse)
async def get_event_endpoint(
	event_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.EventDetailResponse:
	try:
		event, manager = await _service.get_event_detail(event_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	detail = dto.EventDetailResponse.model_validate(event)
	detail.manager_name = manager.username if manager else None
	return detail


@router.patch("/events/{event_id}", response_model=dto.EventResponse)
async def update_event_endpoint(
	event_id: UUID,
	payload: dto.EventUpdateRequest,
	principal: Principal = Depends(get_current_principal),
) -> dto.EventResponse:
	try:
		event = await _service.update_event(event_id, payload, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.EventResponse.model_validate(event)


@router.post("/events/{event_id}/accept", response_model=dto.EventResponse)
async def accept_event_endpoint(
	event_id: UUID,
	principal: Principal = Depends(require_roles(ROLE_ADMIN)),
) -> dto.EventResponse:
	try:
		event = await _service.accept_event(event_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.EventResponse.model_validate(event)


@router.delete(
	"/events/{event_id}",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def delete_event_endpoint(
	event_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> None:
	try:
		await _service.delete_event(event_id, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return None
