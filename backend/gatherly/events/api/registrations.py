"""Registration API endpoints."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from gatherly.events.api._errors import to_http_error
from gatherly.events.domain.exceptions import GatherlyError
from gatherly.events.domain.registrations_service import RegistrationsService
from gatherly.events.schemas import dto
from gatherly.infra.auth import Principal, get_current_principal

router = APIRouter(tags=["registrations"])
_service = RegistrationsService()


def _items(registrations) -> dto.RegistrationListResponse:
	return dto.RegistrationListResponse(
		items=[dto.RegistrationResponse.model_validate(item) for item in registrations]
	)


@router.post("/events/{event_id}/registrations", response_model=dto.RegisterResponse)
async def register_endpoint(
	event_id: UUID,
	response: Response,
	principal: Principal = Depends(get_current_principal),
) -> dto.RegisterResponse:
	try:
		result = await _service.register(principal.id, event_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	response.status_code = 201 if result.created else 200
	return dto.RegisterResponse(
		status=result.status,
		registration=dto.RegistrationResponse.model_validate(result.registration),
	)


@router.delete("/events/{event_id}/registrations/me", response_model=dto.LeaveResponse)
async def leave_endpoint(
	event_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.LeaveResponse:
	try:
		status = await _service.leave(principal.id, event_id)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.LeaveResponse(status=status)


@router.get("/events/{event_id}/registrations/me", response_model=dto.RegistrationStatusResponse)
async def registration_status_endpoint(
	event_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.RegistrationStatusResponse:
	registration = await _service.get_status(principal.id, event_id)
	if registration is None:
		return dto.RegistrationStatusResponse(registered=False)
	return dto.RegistrationStatusResponse(
		registered=True,
		registration=dto.RegistrationResponse.model_validate(registration),
	)


@router.get("/events/{event_id}/registrations", response_model=dto.RegistrationListResponse)
async def list_event_registrations_endpoint(
	event_id: UUID,
	state: Optional[str] = Query(default=None, pattern="^(pending|accepted)$"),
	principal: Principal = Depends(get_current_principal),
) -> dto.RegistrationListResponse:
	if state == "pending":
		return _items(await _service.list_pending_by_event(event_id))
	if state == "accepted":
		return _items(await _service.list_accepted_by_event(event_id))
	return _items(await _service.list_by_event(event_id))


@router.get("/registrations/me", response_model=dto.RegistrationListResponse)
async def list_my_registrations_endpoint(
	accepted: Optional[bool] = None,
	principal: Principal = Depends(get_current_principal),
) -> dto.RegistrationListResponse:
	return _items(await _service.list_by_user(principal.id, accepted=accepted))


@router.get("/registrations/me/events", response_model=dto.EventListResponse)
async def list_my_accepted_events_endpoint(
	principal: Principal = Depends(get_current_principal),
) -> dto.EventListResponse:
	events = await _service.list_accepted_events(principal.id)
	return dto.EventListResponse(items=[dto.EventResponse.model_validate(item) for item in events])


@router.post("/registrations/{registration_id}/accept", response_model=dto.RegistrationResponse)
async def accept_registration_endpoint(
	registration_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.RegistrationResponse:
	try:
		registration = await _service.accept(registration_id, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.RegistrationResponse.model_validate(registration)


@router.post(
	"/registrations/{registration_id}/deny",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def deny_registration_endpoint(
	registration_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> None:
	try:
		await _service.deny(registration_id, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return None


@router.put("/registrations/{registration_id}/attendance", response_model=dto.RegistrationResponse)
async def mark_attendance_endpoint(
	registration_id: UUID,
	payload: dto.AttendanceRequest,
	principal: Principal = Depends(get_current_principal),
) -> dto.RegistrationResponse:
	try:
		registration = await _service.mark_attendance(registration_id, payload.completed, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.RegistrationResponse.model_validate(registration)
