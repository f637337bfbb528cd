"""Pydantic schemas for the events API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class _Response(BaseModel):
	model_config = ConfigDict(from_attributes=True)


class EventBase(BaseModel):
	type: Optional[str] = Field(default=None, max_length=64)
	title: str = Field(..., min_length=1, max_length=200)
	start_at: datetime
	end_at: datetime
	location: Optional[str] = Field(default=None, max_length=255)
	description: Optional[str] = Field(default=None, max_length=8000)
	image_url: Optional[str] = Field(default=None, max_length=2048)


class EventCreateRequest(EventBase):
	pass


class EventUpdateRequest(BaseModel):
	type: Optional[str] = Field(default=None, max_length=64)
	title: Optional[str] = Field(default=None, min_length=1, max_length=200)
	start_at: Optional[datetime] = None
	end_at: Optional[datetime] = None
	location: Optional[str] = Field(default=None, max_length=255)
	description: Optional[str] = Field(default=None, max_length=8000)
	image_url: Optional[str] = Field(default=None, max_length=2048)


class EventResponse(_Response, EventBase):
	id: UUID
	manager_id: UUID
	status: str
	created_at: datetime
	updated_at: datetime


class EventDetailResponse(EventResponse):
	manager_name: Optional[str] = None


class EventListResponse(BaseModel):
	items: List[EventResponse]


class RegistrationResponse(_Response):
	id: UUID
	user_id: UUID
	event_id: UUID
	accepted: bool
	completed: bool
	created_at: datetime


class RegistrationListResponse(BaseModel):
	items: List[RegistrationResponse]


class RegisterResponse(BaseModel):
	status: str
	registration: RegistrationResponse


class RegistrationStatusResponse(BaseModel):
	registered: bool
	registration: Optional[RegistrationResponse] = None


class LeaveResponse(BaseModel):
	status: str


class AttendanceRequest(BaseModel):
	completed: bool


class PostCreateRequest(BaseModel):
	event_id: Optional[UUID] = None
	content: str = Field(..., min_length=1, max_length=10000)
	image_url: Optional[str] = Field(default=None, max_length=2048)


class PostUpdateRequest(BaseModel):
	content: Optional[str] = Field(default=None, min_length=1, max_length=10000)
	image_url: Optional[str] = Field(default=None, max_length=2048)


class PostResponse(_Response):
	id: UUID
	event_id: Optional[UUID] = None
	author_id: UUID
	content: str
	image_url: Optional[str] = None
	likes_count: int
	comments_count: int
	created_at: datetime
	updated_at: datetime


class PostListResponse(BaseModel):
	items: List[PostResponse]


class FeedResponse(BaseModel):
	items: List[PostResponse]
	next_cursor: Optional[str] = None


class CommentCreateRequest(BaseModel):
	content: str = Field(..., min_length=1, max_length=10000)
	parent_id: Optional[UUID] = None


class CommentUpdateRequest(BaseModel):
	content: str = Field(..., min_length=1, max_length=10000)


class CommentResponse(_Response):
	id: UUID
	post_id: UUID
	author_id: UUID
	parent_id: Optional[UUID] = None
	content: str
	likes_count: int
	replies_count: int
	created_at: datetime
	updated_at: datetime


class CommentListResponse(BaseModel):
	items: List[CommentResponse]


class LikeToggleResponse(BaseModel):
	result: str
	likes_count: int


class LikeStatusResponse(BaseModel):
	liked: bool


class NotificationResponse(_Response):
	id: UUID
	user_id: UUID
	content: str
	link: Optional[str] = None
	is_read: bool
	created_at: datetime


class NotificationListResponse(BaseModel):
	items: List[NotificationResponse]


class NotificationUnreadResponse(BaseModel):
	count: int


class PushKeysPayload(BaseModel):
	p256dh: str = Field(..., min_length=1)
	auth: str = Field(..., min_length=1)


class PushSubscribeRequest(BaseModel):
	endpoint: str = Field(..., min_length=1, max_length=2048)
	keys: PushKeysPayload


class PushUnsubscribeRequest(BaseModel):
	endpoint: str = Field(..., min_length=1, max_length=2048)


class PushSubscriptionResponse(_Response):
	id: UUID
	user_id: UUID
	created_at: datetime


class VapidKeyResponse(BaseModel):
	public_key: Optional[str] = None
