"""Async repository for events, registrations, content and notifications.

Every method accepts an optional ``conn`` so callers can run several calls in
one transaction; without it a pooled connection is used for the single call.
"""

from __future__ import annotations

from base64 import b64decode, b64encode
from datetime import datetime
from typing import Any, Awaitable, Callable, Sequence, TypeVar
from uuid import UUID, uuid4

import asyncpg

from gatherly.events.domain import models
from gatherly.events.domain.exceptions import ConflictError, ValidationError
from gatherly.infra.postgres import get_pool

CursorPair = tuple[datetime, UUID]
T = TypeVar("T")

_EVENT_UPDATABLE = ("type", "title", "start_at", "end_at", "location", "description", "image_url")


def encode_cursor(value: CursorPair) -> str:
	created_at, entity_id = value
	payload = f"{created_at.isoformat()}|{entity_id}"
	return b64encode(payload.encode()).decode()


def decode_cursor(cursor: str) -> CursorPair:
	try:
		decoded = b64decode(cursor.encode()).decode()
		created_str, id_str = decoded.split("|", maxsplit=1)
		return datetime.fromisoformat(created_str), UUID(id_str)
	except (ValueError, UnicodeDecodeError) as exc:
		raise ValidationError("invalid_cursor") from exc


async def _with_conn(conn: asyncpg.Connection | None, func: Callable[[asyncpg.Connection], Awaitable[T]]) -> T:
	if conn is not None:
		return await func(conn)
	pool = await get_pool()
	async with pool.acquire() as pooled_conn:
		return await func(pooled_conn)


def _escape_like(value: str) -> str:
	return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _deleted_rows(status: str) -> int:
	# asyncpg returns command tags such as "DELETE 3".
	try:
		return int(status.split()[-1])
	except (AttributeError, IndexError, ValueError):
		return 0


class EventsRepository:
	"""Thin data-access layer around asyncpg."""

	# --- Users ------------------------------------------------------------

	async def get_user(self, user_id: UUID, *, conn: asyncpg.Connection | None = None) -> models.User | None:
		async def _fetch(connection: asyncpg.Connection) -> models.User | None:
			record = await connection.fetchrow("SELECT id, username, role FROM app_user WHERE id=$1", user_id)
			return models.User.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def list_users_by_role(self, role: str, *, conn: asyncpg.Connection | None = None) -> list[models.User]:
		async def _fetch(connection: asyncpg.Connection) -> list[models.User]:
			rows = await connection.fetch("SELECT id, username, role FROM app_user WHERE role=$1 ORDER BY username", role)
			return [models.User.model_validate(dict(row)) for row in rows]

		return await _with_conn(conn, _fetch)

	# --- Events -----------------------------------------------------------

	async def create_event(
		self,
		*,
		manager_id: UUID,
		type: str | None,
		title: str,
		start_at: datetime,
		end_at: datetime,
		location: str | None,
		description: str | None,
		image_url: str | None,
		conn: asyncpg.Connection | None = None,
	) -> models.Event:
		async def _insert(connection: asyncpg.Connection) -> models.Event:
			record = await connection.fetchrow(
				"""
				INSERT INTO event_entity (id, manager_id, type, title, start_at, end_at, location, description,
					image_url, status)
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
				RETURNING *
				""",
				uuid4(),
				manager_id,
				type,
				title,
				start_at,
				end_at,
				location,
				description,
				image_url,
				models.EVENT_PENDING,
			)
			return models.Event.model_validate(dict(record))

		return await _with_conn(conn, _insert)

	async def get_event(
		self,
		event_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.Event | None:
		query = "SELECT * FROM event_entity WHERE id=$1"
		if for_update:
			query += " FOR UPDATE"

		async def _fetch(connection: asyncpg.Connection) -> models.Event | None:
			record = await connection.fetchrow(query, event_id)
			return models.Event.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def update_event(
		self,
		event_id: UUID,
		*,
		fields: dict[str, Any],
		conn: asyncpg.Connection | None = None,
	) -> models.Event | None:
		assignments: list[str] = []
		params: list[object] = []
		for name in _EVENT_UPDATABLE:
			if name in fields:
				assignments.append("%s=$%d" % (name, len(params) + 2))
				params.append(fields[name])
		if not assignments:
			raise ConflictError("no_event_updates_requested")
		assignments.append("updated_at=NOW()")
		query = f"UPDATE event_entity SET {', '.join(assignments)} WHERE id=$1 RETURNING *"

		async def _update(connection: asyncpg.Connection) -> models.Event | None:
			record = await connection.fetchrow(query, event_id, *params)
			return models.Event.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _update)

	async def set_event_status(
		self,
		event_id: UUID,
		status: str,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.Event | None:
		async def _update(connection: asyncpg.Connection) -> models.Event | None:
			record = await connection.fetchrow(
				"UPDATE event_entity SET status=$2, updated_at=NOW() WHERE id=$1 RETURNING *",
				event_id,
				status,
			)
			return models.Event.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _update)

	async def delete_event(self, event_id: UUID, *, conn: asyncpg.Connection | None = None) -> bool:
		async def _delete(connection: asyncpg.Connection) -> bool:
			result = await connection.execute("DELETE FROM event_entity WHERE id=$1", event_id)
			return _deleted_rows(result) > 0

		return await _with_conn(conn, _delete)

	async def list_events(
		self,
		*,
		status: str | None = None,
		manager_id: UUID | None = None,
		query_text: str | None = None,
		event_type: str | None = None,
		conn: asyncpg.Connection | None = None,
	) -> list[models.Event]:
		conditions: list[str] = []
		params: list[object] = []
		if status is not None:
			params.append(status)
			conditions.append("status=$%d" % len(params))
		if manager_id is not None:
			params.append(manager_id)
			conditions.append("manager_id=$%d" % len(params))
		if query_text:
			params.append(f"%{_escape_like(query_text)}%")
			conditions.append("title ILIKE $%d ESCAPE '\\'" % len(params))
		if event_type:
			params.append(event_type)
			conditions.append("lower(type)=lower($%d)" % len(params))
		where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
		query = f"SELECT * FROM event_entity {where_clause} ORDER BY created_at DESC, id DESC"

		async def _fetch(connection: asyncpg.Connection) -> list[models.Event]:
			rows = await connection.fetch(query, *params)
			return [models.Event.model_validate(dict(row)) for row in rows]

		return await _with_conn(conn, _fetch)

	# --- Registrations ----------------------------------------------------

	async def get_registration(
		self,
		registration_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.EventUser | None:
		query = "SELECT * FROM event_user WHERE id=$1"
		if for_update:
			query += " FOR UPDATE"

		async def _fetch(connection: asyncpg.Connection) -> models.EventUser | None:
			record = await connection.fetchrow(query, registration_id)
			return models.EventUser.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def get_registration_for(
		self,
		user_id: UUID,
		event_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.EventUser | None:
		async def _fetch(connection: asyncpg.Connection) -> models.EventUser | None:
			record = await connection.fetchrow(
				"SELECT * FROM event_user WHERE user_id=$1 AND event_id=$2",
				user_id,
				event_id,
			)
			return models.EventUser.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def insert_registration(
		self,
		user_id: UUID,
		event_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.EventUser | None:
		"""Insert a pending registration; None when the pair already exists."""

		async def _insert(connection: asyncpg.Connection) -> models.EventUser | None:
			record = await connection.fetchrow(
				"""
				INSERT INTO event_user (id, user_id, event_id, accepted, completed)
				VALUES ($1, $2, $3, FALSE, FALSE)
				ON CONFLICT (user_id, event_id) DO NOTHING
				RETURNING *
				""",
				uuid4(),
				user_id,
				event_id,
			)
			return models.EventUser.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _insert)

	async def update_registration(
		self,
		registration_id: UUID,
		*,
		accepted: bool | None = None,
		completed: bool | None = None,
		conn: asyncpg.Connection | None = None,
	) -> models.EventUser | None:
		assignments: list[str] = []
		params: list[object] = []
		if accepted is not None:
			assignments.append("accepted=$%d" % (len(params) + 2))
			params.append(accepted)
		if completed is not None:
			assignments.append("completed=$%d" % (len(params) + 2))
			params.append(completed)
		if not assignments:
			raise ConflictError("no_registration_updates_requested")
		query = f"UPDATE event_user SET {', '.join(assignments)} WHERE id=$1 RETURNING *"

		async def _update(connection: asyncpg.Connection) -> models.EventUser | None:
			record = await connection.fetchrow(query, registration_id, *params)
			return models.EventUser.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _update)

	async def delete_registration(
		self,
		registration_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.EventUser | None:
		async def _delete(connection: asyncpg.Connection) -> models.EventUser | None:
			record = await connection.fetchrow("DELETE FROM event_user WHERE id=$1 RETURNING *", registration_id)
			return models.EventUser.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _delete)

	async def delete_registrations_for_event(self, event_id: UUID, *, conn: asyncpg.Connection | None = None) -> int:
		async def _delete(connection: asyncpg.Connection) -> int:
			return _deleted_rows(await connection.execute("DELETE FROM event_user WHERE event_id=$1", event_id))

		return await _with_conn(conn, _delete)

	async def list_registrations(
		self,
		*,
		event_id: UUID | None = None,
		user_id: UUID | None = None,
		accepted: bool | None = None,
		conn: asyncpg.Connection | None = None,
	) -> list[models.EventUser]:
		conditions: list[str] = []
		params: list[object] = []
		if event_id is not None:
			params.append(event_id)
			conditions.append("event_id=$%d" % len(params))
		if user_id is not None:
			params.append(user_id)
			conditions.append("user_id=$%d" % len(params))
		if accepted is not None:
			params.append(accepted)
			conditions.append("accepted=$%d" % len(params))
		where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
		query = f"SELECT * FROM event_user {where_clause} ORDER BY created_at ASC, id ASC"

		async def _fetch(connection: asyncpg.Connection) -> list[models.EventUser]:
			rows = await connection.fetch(query, *params)
			return [models.EventUser.model_validate(dict(row)) for row in rows]

		return await _with_conn(conn, _fetch)

	async def list_accepted_event_ids(self, user_id: UUID, *, conn: asyncpg.Connection | None = None) -> list[UUID]:
		async def _fetch(connection: asyncpg.Connection) -> list[UUID]:
			rows = await connection.fetch(
				"SELECT event_id FROM event_user WHERE user_id=$1 AND accepted = TRUE",
				user_id,
			)
			return [UUID(str(row["event_id"])) for row in rows]

		return await _with_conn(conn, _fetch)

	# --- Posts ------------------------------------------------------------

	async def create_post(
		self,
		*,
		event_id: UUID | None,
		author_id: UUID,
		content: str,
		image_url: str | None,
		conn: asyncpg.Connection | None = None,
	) -> models.Post:
		async def _insert(connection: asyncpg.Connection) -> models.Post:
			record = await connection.fetchrow(
				"""
				INSERT INTO post (id, event_id, author_id, content, image_url, likes_count, comments_count)
				VALUES ($1, $2, $3, $4, $5, 0, 0)
				RETURNING *
				""",
				uuid4(),
				event_id,
				author_id,
				content,
				image_url,
			)
			return models.Post.model_validate(dict(record))

		return await _with_conn(conn, _insert)

	async def get_post(
		self,
		post_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.Post | None:
		query = "SELECT * FROM post WHERE id=$1"
		if for_update:
			query += " FOR UPDATE"

		async def _fetch(connection: asyncpg.Connection) -> models.Post | None:
			record = await connection.fetchrow(query, post_id)
			return models.Post.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def update_post(
		self,
		post_id: UUID,
		*,
		content: str | None,
		image_url: str | None,
		conn: asyncpg.Connection | None = None,
	) -> models.Post | None:
		assignments: list[str] = []
		params: list[object] = []
		if content is not None:
			assignments.append("content=$%d" % (len(params) + 2))
			params.append(content)
		if image_url is not None:
			assignments.append("image_url=$%d" % (len(params) + 2))
			params.append(image_url)
		if not assignments:
			raise ConflictError("no_post_updates_requested")
		assignments.append("updated_at=NOW()")
		query = f"UPDATE post SET {', '.join(assignments)} WHERE id=$1 RETURNING *"

		async def _update(connection: asyncpg.Connection) -> models.Post | None:
			record = await connection.fetchrow(query, post_id, *params)
			return models.Post.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _update)

	async def adjust_post_counters(
		self,
		post_id: UUID,
		*,
		likes_delta: int = 0,
		comments_delta: int = 0,
		conn: asyncpg.Connection | None = None,
	) -> models.Post | None:
		async def _update(connection: asyncpg.Connection) -> models.Post | None:
			record = await connection.fetchrow(
				"""
				UPDATE post
				SET likes_count = GREATEST(likes_count + $2, 0),
					comments_count = GREATEST(comments_count + $3, 0)
				WHERE id=$1
				RETURNING *
				""",
				post_id,
				likes_delta,
				comments_delta,
			)
			return models.Post.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _update)

	async def delete_post(self, post_id: UUID, *, conn: asyncpg.Connection | None = None) -> bool:
		async def _delete(connection: asyncpg.Connection) -> bool:
			return _deleted_rows(await connection.execute("DELETE FROM post WHERE id=$1", post_id)) > 0

		return await _with_conn(conn, _delete)

	async def list_posts(
		self,
		*,
		event_id: UUID | None = None,
		author_id: UUID | None = None,
		conn: asyncpg.Connection | None = None,
	) -> list[models.Post]:
		conditions: list[str] = []
		params: list[object] = []
		if event_id is not None:
			params.append(event_id)
			conditions.append("event_id=$%d" % len(params))
		if author_id is not None:
			params.append(author_id)
			conditions.append("author_id=$%d" % len(params))
		where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
		query = f"SELECT * FROM post {where_clause} ORDER BY created_at DESC, id DESC"

		async def _fetch(connection: asyncpg.Connection) -> list[models.Post]:
			rows = await connection.fetch(query, *params)
			return [models.Post.model_validate(dict(row)) for row in rows]

		return await _with_conn(conn, _fetch)

	async def list_posts_for_member(
		self,
		user_id: UUID,
		event_ids: Sequence[UUID],
		*,
		conn: asyncpg.Connection | None = None,
	) -> list[models.Post]:
		"""Posts authored by ``user_id`` plus posts of ``event_ids``, newest first."""

		async def _fetch(connection: asyncpg.Connection) -> list[models.Post]:
			rows = await connection.fetch(
				"""
				SELECT * FROM post
				WHERE author_id=$1 OR event_id = ANY($2::uuid[])
				ORDER BY created_at DESC, id DESC
				""",
				user_id,
				list(event_ids),
			)
			return [models.Post.model_validate(dict(row)) for row in rows]

		return await _with_conn(conn, _fetch)

	async def list_feed_posts(
		self,
		*,
		event_ids: Sequence[UUID],
		limit: int,
		after: CursorPair | None = None,
		conn: asyncpg.Connection | None = None,
	) -> tuple[list[models.Post], str | None]:
		"""Global posts plus posts of ``event_ids``, newest first, keyset paginated."""
		params: list[object] = [list(event_ids)]
		conditions = ["(event_id IS NULL OR event_id = ANY($1::uuid[]))"]
		if after:
			params.extend([after[0], after[1]])
			conditions.append("(created_at, id) < ($%d, $%d)" % (len(params) - 1, len(params)))
		params.append(limit + 1)
		query = f"""
			SELECT * FROM post
			WHERE {" AND ".join(conditions)}
			ORDER BY created_at DESC, id DESC
			LIMIT ${len(params)}
		"""

		async def _fetch(connection: asyncpg.Connection) -> list[models.Post]:
			rows = await connection.fetch(query, *params)
			return [models.Post.model_validate(dict(row)) for row in rows]

		items = await _with_conn(conn, _fetch)
		next_cursor = None
		if len(items) > limit:
			items.pop()  # drop sentinel row
			tail = items[-1]
			next_cursor = encode_cursor((tail.created_at, tail.id))
		return items, next_cursor

	# --- Comments ---------------------------------------------------------

	async def create_comment(
		self,
		*,
		post_id: UUID,
		author_id: UUID,
		parent_id: UUID | None,
		content: str,
		conn: asyncpg.Connection | None = None,
	) -> models.Comment:
		async def _insert(connection: asyncpg.Connection) -> models.Comment:
			record = await connection.fetchrow(
				"""
				INSERT INTO comment (id, post_id, author_id, parent_id, content, likes_count, replies_count)
				VALUES ($1, $2, $3, $4, $5, 0, 0)
				RETURNING *
				""",
				uuid4(),
				post_id,
				author_id,
				parent_id,
				content,
			)
			return models.Comment.model_validate(dict(record))

		return await _with_conn(conn, _insert)

	async def get_comment(
		self,
		comment_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.Comment | None:
		query = "SELECT * FROM comment WHERE id=$1"
		if for_update:
			query += " FOR UPDATE"

		async def _fetch(connection: asyncpg.Connection) -> models.Comment | None:
			record = await connection.fetchrow(query, comment_id)
			return models.Comment.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def update_comment(
		self,
		comment_id: UUID,
		*,
		content: str,
		conn: asyncpg.Connection | None = None,
	) -> models.Comment | None:
		async def _update(connection: asyncpg.Connection) -> models.Comment | None:
			record = await connection.fetchrow(
				"UPDATE comment SET content=$2, updated_at=NOW() WHERE id=$1 RETURNING *",
				comment_id,
				content,
			)
			return models.Comment.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _update)

	async def adjust_comment_counters(
		self,
		comment_id: UUID,
		*,
		likes_delta: int = 0,
		replies_delta: int = 0,
		conn: asyncpg.Connection | None = None,
	) -> models.Comment | None:
		async def _update(connection: asyncpg.Connection) -> models.Comment | None:
			record = await connection.fetchrow(
				"""
				UPDATE comment
				SET likes_count = GREATEST(likes_count + $2, 0),
					replies_count = GREATEST(replies_count + $3, 0)
				WHERE id=$1
				RETURNING *
				""",
				comment_id,
				likes_delta,
				replies_delta,
			)
			return models.Comment.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _update)

	async def delete_comment(self, comment_id: UUID, *, conn: asyncpg.Connection | None = None) -> bool:
		async def _delete(connection: asyncpg.Connection) -> bool:
			return _deleted_rows(await connection.execute("DELETE FROM comment WHERE id=$1", comment_id)) > 0

		return await _with_conn(conn, _delete)

	async def list_comments(
		self,
		post_id: UUID,
		*,
		top_level_only: bool = False,
		conn: asyncpg.Connection | None = None,
	) -> list[models.Comment]:
		query = "SELECT * FROM comment WHERE post_id=$1"
		if top_level_only:
			query += " AND parent_id IS NULL"
		query += " ORDER BY created_at ASC, id ASC"

		async def _fetch(connection: asyncpg.Connection) -> list[models.Comment]:
			rows = await connection.fetch(query, post_id)
			return [models.Comment.model_validate(dict(row)) for row in rows]

		return await _with_conn(conn, _fetch)

	async def list_replies(self, parent_id: UUID, *, conn: asyncpg.Connection | None = None) -> list[models.Comment]:
		async def _fetch(connection: asyncpg.Connection) -> list[models.Comment]:
			rows = await connection.fetch(
				"SELECT * FROM comment WHERE parent_id=$1 ORDER BY created_at ASC, id ASC",
				parent_id,
			)
			return [models.Comment.model_validate(dict(row)) for row in rows]

		return await _with_conn(conn, _fetch)

	# --- Likes ------------------------------------------------------------

	async def get_post_like(
		self,
		user_id: UUID,
		post_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.LikePost | None:
		async def _fetch(connection: asyncpg.Connection) -> models.LikePost | None:
			record = await connection.fetchrow(
				"SELECT * FROM like_post WHERE user_id=$1 AND post_id=$2",
				user_id,
				post_id,
			)
			return models.LikePost.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def insert_post_like(
		self,
		user_id: UUID,
		post_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.LikePost | None:
		async def _insert(connection: asyncpg.Connection) -> models.LikePost | None:
			record = await connection.fetchrow(
				"""
				INSERT INTO like_post (id, user_id, post_id)
				VALUES ($1, $2, $3)
				ON CONFLICT (user_id, post_id) DO NOTHING
				RETURNING *
				""",
				uuid4(),
				user_id,
				post_id,
			)
			return models.LikePost.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _insert)

	async def delete_post_like(self, like_id: UUID, *, conn: asyncpg.Connection | None = None) -> bool:
		async def _delete(connection: asyncpg.Connection) -> bool:
			return _deleted_rows(await connection.execute("DELETE FROM like_post WHERE id=$1", like_id)) > 0

		return await _with_conn(conn, _delete)

	async def delete_post_likes(self, post_id: UUID, *, conn: asyncpg.Connection | None = None) -> int:
		async def _delete(connection: asyncpg.Connection) -> int:
			return _deleted_rows(await connection.execute("DELETE FROM like_post WHERE post_id=$1", post_id))

		return await _with_conn(conn, _delete)

	async def get_comment_like(
		self,
		user_id: UUID,
		comment_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.LikeComment | None:
		async def _fetch(connection: asyncpg.Connection) -> models.LikeComment | None:
			record = await connection.fetchrow(
				"SELECT * FROM like_comment WHERE user_id=$1 AND comment_id=$2",
				user_id,
				comment_id,
			)
			return models.LikeComment.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def insert_comment_like(
		self,
		user_id: UUID,
		comment_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.LikeComment | None:
		async def _insert(connection: asyncpg.Connection) -> models.LikeComment | None:
			record = await connection.fetchrow(
				"""
				INSERT INTO like_comment (id, user_id, comment_id)
				VALUES ($1, $2, $3)
				ON CONFLICT (user_id, comment_id) DO NOTHING
				RETURNING *
				""",
				uuid4(),
				user_id,
				comment_id,
			)
			return models.LikeComment.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _insert)

	async def delete_comment_like(self, like_id: UUID, *, conn: asyncpg.Connection | None = None) -> bool:
		async def _delete(connection: asyncpg.Connection) -> bool:
			return _deleted_rows(await connection.execute("DELETE FROM like_comment WHERE id=$1", like_id)) > 0

		return await _with_conn(conn, _delete)

	async def delete_comment_likes(self, comment_id: UUID, *, conn: asyncpg.Connection | None = None) -> int:
		async def _delete(connection: asyncpg.Connection) -> int:
			return _deleted_rows(await connection.execute("DELETE FROM like_comment WHERE comment_id=$1", comment_id))

		return await _with_conn(conn, _delete)

	# --- Notifications ----------------------------------------------------

	async def insert_notification(
		self,
		*,
		user_id: UUID,
		content: str,
		link: str | None,
		conn: asyncpg.Connection | None = None,
	) -> models.Notification:
		async def _insert(connection: asyncpg.Connection) -> models.Notification:
			record = await connection.fetchrow(
				"""
				INSERT INTO notification (id, user_id, content, link, is_read)
				VALUES ($1, $2, $3, $4, FALSE)
				RETURNING *
				""",
				uuid4(),
				user_id,
				content,
				link,
			)
			return models.Notification.model_validate(dict(record))

		return await _with_conn(conn, _insert)

	async def get_notification(
		self,
		notification_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.Notification | None:
		async def _fetch(connection: asyncpg.Connection) -> models.Notification | None:
			record = await connection.fetchrow("SELECT * FROM notification WHERE id=$1", notification_id)
			return models.Notification.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def list_notifications(
		self,
		user_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> list[models.Notification]:
		async def _fetch(connection: asyncpg.Connection) -> list[models.Notification]:
			rows = await connection.fetch(
				"SELECT * FROM notification WHERE user_id=$1 ORDER BY created_at DESC, id DESC",
				user_id,
			)
			return [models.Notification.model_validate(dict(row)) for row in rows]

		return await _with_conn(conn, _fetch)

	async def mark_notification_read(
		self,
		notification_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.Notification | None:
		async def _update(connection: asyncpg.Connection) -> models.Notification | None:
			record = await connection.fetchrow(
				"UPDATE notification SET is_read = TRUE WHERE id=$1 RETURNING *",
				notification_id,
			)
			return models.Notification.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _update)

	async def count_unread_notifications(self, user_id: UUID, *, conn: asyncpg.Connection | None = None) -> int:
		async def _fetch(connection: asyncpg.Connection) -> int:
			value = await connection.fetchval(
				"SELECT COUNT(*) FROM notification WHERE user_id=$1 AND is_read = FALSE",
				user_id,
			)
			return int(value or 0)

		return await _with_conn(conn, _fetch)

	# --- Push subscriptions -----------------------------------------------

	async def get_push_subscription(
		self,
		user_id: UUID,
		endpoint: str,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.PushSubscription | None:
		async def _fetch(connection: asyncpg.Connection) -> models.PushSubscription | None:
			record = await connection.fetchrow(
				"SELECT * FROM push_subscription WHERE user_id=$1 AND endpoint=$2",
				user_id,
				endpoint,
			)
			return models.PushSubscription.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _fetch)

	async def insert_push_subscription(
		self,
		*,
		user_id: UUID,
		endpoint: str,
		p256dh: str,
		auth: str,
		conn: asyncpg.Connection | None = None,
	) -> models.PushSubscription | None:
		async def _insert(connection: asyncpg.Connection) -> models.PushSubscription | None:
			record = await connection.fetchrow(
				"""
				INSERT INTO push_subscription (id, user_id, endpoint, p256dh, auth)
				VALUES ($1, $2, $3, $4, $5)
				ON CONFLICT (user_id, endpoint) DO NOTHING
				RETURNING *
				""",
				uuid4(),
				user_id,
				endpoint,
				p256dh,
				auth,
			)
			return models.PushSubscription.model_validate(dict(record)) if record else None

		return await _with_conn(conn, _insert)

	async def list_push_subscriptions(
		self,
		user_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> list[models.PushSubscription]:
		async def _fetch(connection: asyncpg.Connection) -> list[models.PushSubscription]:
			rows = await connection.fetch(
				"SELECT * FROM push_subscription WHERE user_id=$1 ORDER BY created_at ASC",
				user_id,
			)
			return [models.PushSubscription.model_validate(dict(row)) for row in rows]

		return await _with_conn(conn, _fetch)

	async def delete_push_subscription(
		self,
		subscription_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> bool:
		async def _delete(connection: asyncpg.Connection) -> bool:
			result = await connection.execute("DELETE FROM push_subscription WHERE id=$1", subscription_id)
			return _deleted_rows(result) > 0

		return await _with_conn(conn, _delete)


__all__ = ["EventsRepository", "CursorPair", "encode_cursor", "decode_cursor"]
