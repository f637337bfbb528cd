"""Posts, comments and likes with their derived counters and cascades."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import asyncpg

from gatherly.events.domain import models, policies, repo as repo_module
from gatherly.events.domain.exceptions import NotFoundError
from gatherly.events.domain.notifications_service import NotificationService
from gatherly.events.schemas import dto
from gatherly.infra.auth import Principal
from gatherly.infra.postgres import get_pool
from gatherly.obs import metrics as obs_metrics
from gatherly.settings import settings

_LOG = logging.getLogger(__name__)

LIKED = "liked"
UNLIKED = "unliked"


@dataclass(slots=True)
class ToggleResult:
	result: str
	likes_count: int


@dataclass(slots=True)
class _Notice:
	user_id: UUID
	content: str
	link: str


class ContentService:
	"""Owns the post -> comment -> like graph.

	Every counter change happens in the same transaction as the row insert or
	delete that causes it, so counters always equal the live row counts.
	"""

	def __init__(
		self,
		*,
		repository: repo_module.EventsRepository | None = None,
		notifications: NotificationService | None = None,
	) -> None:
		self.repo = repository or repo_module.EventsRepository()
		self.notifications = notifications or NotificationService(repository=self.repo)

	# --- Posts ------------------------------------------------------------

	async def create_post(
		self,
		event_id: Optional[UUID],
		user_id: UUID,
		content: str,
		image_url: Optional[str] = None,
	) -> models.Post:
		text = policies.ensure_content(content)
		pool = await get_pool()
		recipients: list[UUID] = []
		async with pool.acquire() as conn:
			async with conn.transaction():
				author = await self.repo.get_user(user_id, conn=conn)
				if author is None:
					raise NotFoundError("user_not_found")
				event = None
				if event_id is not None:
					event = await self.repo.get_event(event_id, conn=conn)
					if event is None:
						raise NotFoundError("event_not_found")
				post = await self.repo.create_post(
					event_id=event_id,
					author_id=user_id,
					content=text,
					image_url=image_url,
					conn=conn,
				)
				if event is not None:
					registrations = await self.repo.list_registrations(event_id=event.id, conn=conn)
					recipients = [item.user_id for item in registrations if item.user_id != user_id]
		obs_metrics.inc_post_created("event" if event is not None else "global")
		_LOG.info("content.post_created", extra={"post_id": str(post.id), "event_id": str(event_id) if event_id else None})
		if event is not None and recipients:
			await self.notifications.notify_many(
				recipients,
				f"{author.username} posted in {event.title}",
				f"/posts/{post.id}",
			)
		return post

	async def get_post(self, post_id: UUID) -> models.Post:
		post = await self.repo.get_post(post_id)
		if post is None:
			raise NotFoundError("post_not_found")
		return post

	async def update_post(self, post_id: UUID, payload: dto.PostUpdateRequest, principal: Principal) -> models.Post:
		content = policies.ensure_content(payload.content) if payload.content is not None else None
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				post = await self.repo.get_post(post_id, conn=conn, for_update=True)
				if post is None:
					raise NotFoundError("post_not_found")
				policies.assert_can_modify_content(post.author_id, principal)
				if content is None and payload.image_url is None:
					return post
				updated = await self.repo.update_post(post_id, content=content, image_url=payload.image_url, conn=conn)
		if updated is None:
			raise NotFoundError("post_not_found")
		return updated

	async def delete_post(self, post_id: UUID, principal: Principal) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				post = await self.repo.get_post(post_id, conn=conn, for_update=True)
				if post is None:
					raise NotFoundError("post_not_found")
				policies.assert_can_modify_content(post.author_id, principal)
				removed = await self.purge_post(post, conn=conn)
		self._record_cascade(removed)
		_LOG.info("content.post_deleted", extra={"post_id": str(post_id), "removed": dict(removed)})

	async def purge_post(
		self,
		post: models.Post,
		*,
		conn: asyncpg.Connection,
		removed: Counter[str] | None = None,
	) -> Counter[str]:
		"""Delete a post with its comment trees and likes inside ``conn``'s transaction.

		The post row is locked first so concurrent likes and comments wait for the
		cascade instead of racing it.
		"""
		removed = removed if removed is not None else Counter()
		locked = await self.repo.get_post(post.id, conn=conn, for_update=True)
		if locked is None:
			return removed
		for comment in await self.repo.list_comments(post.id, top_level_only=True, conn=conn):
			await self._delete_comment_tree(comment, conn=conn, removed=removed)
		removed["post_likes"] += await self.repo.delete_post_likes(post.id, conn=conn)
		if await self.repo.delete_post(post.id, conn=conn):
			removed["posts"] += 1
		return removed

	# --- Comments ---------------------------------------------------------

	async def create_comment(
		self,
		post_id: UUID,
		user_id: UUID,
		content: str,
		parent_id: Optional[UUID] = None,
	) -> models.Comment:
		text = policies.ensure_content(content)
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				author = await self.repo.get_user(user_id, conn=conn)
				if author is None:
					raise NotFoundError("user_not_found")
				post = await self.repo.get_post(post_id, conn=conn, for_update=True)
				if post is None:
					raise NotFoundError("post_not_found")
				parent: models.Comment | None = None
				if parent_id is not None:
					candidate = await self.repo.get_comment(parent_id, conn=conn, for_update=True)
					# An unknown parent, or one from another post, yields a top-level comment.
					if candidate is not None and candidate.post_id == post.id:
						parent = candidate
				comment = await self.repo.create_comment(
					post_id=post.id,
					author_id=user_id,
					parent_id=parent.id if parent else None,
					content=text,
					conn=conn,
				)
				await self.repo.adjust_post_counters(post.id, comments_delta=1, conn=conn)
				if parent is not None:
					await self.repo.adjust_comment_counters(parent.id, replies_delta=1, conn=conn)
		obs_metrics.inc_comment_created()
		notices: list[_Notice] = []
		link = f"/posts/{post.id}"
		if parent is not None and parent.author_id != user_id:
			notices.append(_Notice(parent.author_id, f"{author.username} replied to your comment", link))
		if post.author_id != user_id and (parent is None or parent.author_id != post.author_id):
			notices.append(_Notice(post.author_id, f"{author.username} commented on your post", link))
		for notice in notices:
			await self.notifications.notify(notice.user_id, notice.content, notice.link)
		return comment

	async def get_comment(self, comment_id: UUID) -> models.Comment:
		comment = await self.repo.get_comment(comment_id)
		if comment is None:
			raise NotFoundError("comment_not_found")
		return comment

	async def list_comments(self, post_id: UUID) -> list[models.Comment]:
		await self.get_post(post_id)
		return await self.repo.list_comments(post_id, top_level_only=True)

	async def list_replies(self, comment_id: UUID) -> list[models.Comment]:
		await self.get_comment(comment_id)
		return await self.repo.list_replies(comment_id)

	async def update_comment(self, comment_id: UUID, content: str, principal: Principal) -> models.Comment:
		text = policies.ensure_content(content)
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				comment = await self.repo.get_comment(comment_id, conn=conn, for_update=True)
				if comment is None:
					raise NotFoundError("comment_not_found")
				policies.assert_can_modify_content(comment.author_id, principal)
				updated = await self.repo.update_comment(comment_id, content=text, conn=conn)
		if updated is None:
			raise NotFoundError("comment_not_found")
		return updated

	async def delete_comment(self, comment_id: UUID, principal: Principal) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				comment = await self.repo.get_comment(comment_id, conn=conn)
				if comment is None:
					raise NotFoundError("comment_not_found")
				policies.assert_can_modify_content(comment.author_id, principal)
				# Same lock order as create_comment: post row first, then the comment.
				await self.repo.get_post(comment.post_id, conn=conn, for_update=True)
				comment = await self.repo.get_comment(comment_id, conn=conn, for_update=True)
				if comment is None:
					raise NotFoundError("comment_not_found")
				removed = await self._delete_comment_tree(comment, conn=conn, removed=Counter())
		self._record_cascade(removed)
		_LOG.info("content.comment_deleted", extra={"comment_id": str(comment_id), "removed": dict(removed)})

	async def _delete_comment_tree(
		self,
		root: models.Comment,
		*,
		conn: asyncpg.Connection,
		removed: Counter[str],
	) -> Counter[str]:
		# Pre-order walk; reversed, every reply comes before its parent.
		ordered: list[models.Comment] = []
		stack = [root]
		while stack:
			node = stack.pop()
			ordered.append(node)
			stack.extend(await self.repo.list_replies(node.id, conn=conn))
		for node in reversed(ordered):
			removed["comment_likes"] += await self.repo.delete_comment_likes(node.id, conn=conn)
			if node.parent_id is not None:
				await self.repo.adjust_comment_counters(node.parent_id, replies_delta=-1, conn=conn)
			await self.repo.adjust_post_counters(node.post_id, comments_delta=-1, conn=conn)
			if await self.repo.delete_comment(node.id, conn=conn):
				removed["comments"] += 1
		return removed

	# --- Likes ------------------------------------------------------------

	async def toggle_like_post(self, user_id: UUID, post_id: UUID) -> ToggleResult:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				liker = await self.repo.get_user(user_id, conn=conn)
				if liker is None:
					raise NotFoundError("user_not_found")
				post = await self.repo.get_post(post_id, conn=conn, for_update=True)
				if post is None:
					raise NotFoundError("post_not_found")
				existing = await self.repo.get_post_like(user_id, post_id, conn=conn)
				result = LIKED
				changed = False
				if existing is not None:
					result = UNLIKED
					if await self.repo.delete_post_like(existing.id, conn=conn):
						changed = True
						post = await self.repo.adjust_post_counters(post_id, likes_delta=-1, conn=conn) or post
				elif await self.repo.insert_post_like(user_id, post_id, conn=conn) is not None:
					changed = True
					post = await self.repo.adjust_post_counters(post_id, likes_delta=1, conn=conn) or post
		obs_metrics.inc_like_toggled("post", result)
		if changed and result == LIKED and post.author_id != user_id:
			await self.notifications.notify(post.author_id, f"{liker.username} liked your post", f"/posts/{post.id}")
		return ToggleResult(result=result, likes_count=post.likes_count)

	async def toggle_like_comment(self, user_id: UUID, comment_id: UUID) -> ToggleResult:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				liker = await self.repo.get_user(user_id, conn=conn)
				if liker is None:
					raise NotFoundError("user_not_found")
				comment = await self.repo.get_comment(comment_id, conn=conn, for_update=True)
				if comment is None:
					raise NotFoundError("comment_not_found")
				existing = await self.repo.get_comment_like(user_id, comment_id, conn=conn)
				result = LIKED
				changed = False
				if existing is not None:
					result = UNLIKED
					if await self.repo.delete_comment_like(existing.id, conn=conn):
						changed = True
						comment = await self.repo.adjust_comment_counters(comment_id, likes_delta=-1, conn=conn) or comment
				elif await self.repo.insert_comment_like(user_id, comment_id, conn=conn) is not None:
					changed = True
					comment = await self.repo.adjust_comment_counters(comment_id, likes_delta=1, conn=conn) or comment
		obs_metrics.inc_like_toggled("comment", result)
		if changed and result == LIKED and comment.author_id != user_id:
			await self.notifications.notify(
				comment.author_id,
				f"{liker.username} liked your comment",
				f"/posts/{comment.post_id}",
			)
		return ToggleResult(result=result, likes_count=comment.likes_count)

	async def has_liked_post(self, user_id: UUID, post_id: UUID) -> bool:
		return await self.repo.get_post_like(user_id, post_id) is not None

	async def has_liked_comment(self, user_id: UUID, comment_id: UUID) -> bool:
		return await self.repo.get_comment_like(user_id, comment_id) is not None

	# --- Feeds ------------------------------------------------------------

	async def list_event_posts(self, event_id: UUID) -> list[models.Post]:
		if await self.repo.get_event(event_id) is None:
			raise NotFoundError("event_not_found")
		return await self.repo.list_posts(event_id=event_id)

	async def list_user_posts(self, user_id: UUID) -> list[models.Post]:
		event_ids = await self.repo.list_accepted_event_ids(user_id)
		return await self.repo.list_posts_for_member(user_id, event_ids)

	async def global_feed(self, *, limit: int = 20, cursor: str | None = None) -> tuple[list[models.Post], str | None]:
		policies.ensure_cursor_limit(limit, maximum=settings.feed_page_max)
		after = repo_module.decode_cursor(cursor) if cursor else None
		return await self.repo.list_feed_posts(event_ids=[], limit=limit, after=after)

	async def news_feed(
		self,
		user_id: UUID,
		*,
		limit: int = 20,
		cursor: str | None = None,
	) -> tuple[list[models.Post], str | None]:
		policies.ensure_cursor_limit(limit, maximum=settings.feed_page_max)
		after = repo_module.decode_cursor(cursor) if cursor else None
		event_ids = await self.repo.list_accepted_event_ids(user_id)
		return await self.repo.list_feed_posts(event_ids=event_ids, limit=limit, after=after)

	@staticmethod
	def _record_cascade(removed: Counter[str]) -> None:
		for kind, count in removed.items():
			obs_metrics.inc_cascade_deleted(kind, count)


__all__ = ["ContentService", "ToggleResult", "LIKED", "UNLIKED"]
