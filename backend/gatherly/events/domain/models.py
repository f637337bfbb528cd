"""Domain models for events, registrations, content and notifications."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

EVENT_PENDING = "PENDING"
EVENT_ACCEPTED = "ACCEPTED"


class User(BaseModel):
	"""Account row, owned by the identity service and read here."""

	id: UUID
	username: str
	role: str

	model_config = ConfigDict(from_attributes=True)


class Event(BaseModel):
	"""An event created by its manager and approved by an admin."""

	id: UUID
	manager_id: UUID
	type: Optional[str] = None
	title: str
	start_at: datetime
	end_at: datetime
	location: Optional[str] = None
	description: Optional[str] = None
	image_url: Optional[str] = None
	status: str = EVENT_PENDING
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)

	@property
	def is_accepted(self) -> bool:
		return self.status == EVENT_ACCEPTED


class EventUser(BaseModel):
	"""A registration of a user to an event."""

	id: UUID
	user_id: UUID
	event_id: UUID
	accepted: bool = False
	completed: bool = False
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class Post(BaseModel):
	"""A feed post; ``event_id`` is None for the global feed."""

	id: UUID
	event_id: Optional[UUID] = None
	author_id: UUID
	content: str
	image_url: Optional[str] = None
	likes_count: int = 0
	comments_count: int = 0
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)


class Comment(BaseModel):
	"""A comment on a post; replies point at their parent comment."""

	id: UUID
	post_id: UUID
	author_id: UUID
	parent_id: Optional[UUID] = None
	content: str
	likes_count: int = 0
	replies_count: int = 0
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)


class LikePost(BaseModel):
	id: UUID
	user_id: UUID
	post_id: UUID
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class LikeComment(BaseModel):
	id: UUID
	user_id: UUID
	comment_id: UUID
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class Notification(BaseModel):
	"""Stored in-app notification destined for a user."""

	id: UUID
	user_id: UUID
	content: str
	link: Optional[str] = None
	is_read: bool = False
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class PushSubscription(BaseModel):
	"""Browser push endpoint registered by a user."""

	id: UUID
	user_id: UUID
	endpoint: str
	p256dh: str
	auth: str
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)
