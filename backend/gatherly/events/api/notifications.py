"""Notification and push subscription endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response

from gatherly.events.api._errors import to_http_error
from gatherly.events.domain.exceptions import GatherlyError
from gatherly.events.domain.notifications_service import NotificationService
from gatherly.events.schemas import dto
from gatherly.infra.auth import Principal, get_current_principal
from gatherly.settings import settings

router = APIRouter(prefix="/notifications", tags=["notifications"])
_service = NotificationService()


@router.get("", response_model=dto.NotificationListResponse)
async def list_notifications_endpoint(
	principal: Principal = Depends(get_current_principal),
) -> dto.NotificationListResponse:
	items = await _service.list_for_user(principal.id)
	return dto.NotificationListResponse(items=[dto.NotificationResponse.model_validate(item) for item in items])


@router.get("/unread", response_model=dto.NotificationUnreadResponse)
async def unread_count_endpoint(
	principal: Principal = Depends(get_current_principal),
) -> dto.NotificationUnreadResponse:
	return dto.NotificationUnreadResponse(count=await _service.unread_count(principal.id))


@router.post("/{notification_id}/read", response_model=dto.NotificationResponse)
async def mark_read_endpoint(
	notification_id: UUID,
	principal: Principal = Depends(get_current_principal),
) -> dto.NotificationResponse:
	try:
		notification = await _service.mark_read(notification_id, principal)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.NotificationResponse.model_validate(notification)


@router.get("/push/vapid-key", response_model=dto.VapidKeyResponse)
async def vapid_key_endpoint() -> dto.VapidKeyResponse:
	return dto.VapidKeyResponse(public_key=settings.vapid_public_key)


@router.post("/push/subscriptions", response_model=dto.PushSubscriptionResponse, status_code=201)
async def subscribe_endpoint(
	payload: dto.PushSubscribeRequest,
	principal: Principal = Depends(get_current_principal),
) -> dto.PushSubscriptionResponse:
	try:
		subscription = await _service.subscribe(
			principal.id,
			payload.endpoint,
			payload.keys.p256dh,
			payload.keys.auth,
		)
	except GatherlyError as exc:
		raise to_http_error(exc) from exc
	return dto.PushSubscriptionResponse.model_validate(subscription)


@router.post(
	"/push/subscriptions/remove",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def unsubscribe_endpoint(
	payload: dto.PushUnsubscribeRequest,
	principal: Principal = Depends(get_current_principal),
) -> None:
	await _service.unsubscribe(principal.id, payload.endpoint)
	return None
