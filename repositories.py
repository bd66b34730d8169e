"""Persistence for forums, topics and posts.

Each repository wraps the request's SQLAlchemy session. Mutations commit on
success; on a database error they roll back, log, and return ``None`` (or
``False``) so the caller can tell the user instead of crashing the request.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from db_models import Forum, Post, Topic, User

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    s = (name or "").strip().lower()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    s = s.strip("-")
    return s or "item"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ForumRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find(self, forum_id: int) -> Optional[Forum]:
        return self.db.get(Forum, forum_id)

    def find_by_slug(self, slug: str) -> Optional[Forum]:
        return self.db.execute(select(Forum).where(Forum.slug == slug)).scalar_one_or_none()

    def all(self) -> list[Forum]:
        return list(self.db.execute(select(Forum).order_by(Forum.title.asc())).scalars().all())

    def topics_for_forum(self, forum: Forum) -> list[Topic]:
        """Active topics of ``forum``, latest activity first."""
        return list(
            self.db.execute(
                select(Topic)
                .where(Topic.forum_id == forum.id, Topic.deleted_at.is_(None))
                .options(joinedload(Topic.user))
                .order_by(Topic.last_post_id.desc(), Topic.id.desc())
            )
            .scalars()
            .all()
        )


class TopicRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_slug(self, slug: str) -> Optional[Topic]:
        if not slug:
            return None
        return (
            self.db.execute(
                select(Topic)
                .where(Topic.slug == slug, Topic.deleted_at.is_(None))
                .options(joinedload(Topic.forum))
            )
            .scalars()
            .first()
        )

    def increment_view_count(self, topic: Topic) -> None:
        topic.views = (topic.views or 0) + 1
        self.db.commit()

    def _unique_slug(self, title: str) -> str:
        base = slugify(title) or "topic"
        slug = base
        suffix = 1
        while self.db.execute(select(Topic.id).where(Topic.slug == slug)).scalar_one_or_none():
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    def create(
        self,
        *,
        title: str,
        forum_id: int,
        content: str,
        user: Optional[User] = None,
    ) -> Optional[Topic]:
        """Create a topic together with its first post.

        The topic starts with zeroed post references and counters; they are
        filled in once the first post has an id.
        """
        try:
            forum = self.db.get(Forum, forum_id)
            if forum is None:
                return None
            topic = Topic(
                title=title,
                slug=self._unique_slug(title),
                forum_id=forum.id,
                user_id=user.id if user else None,
                first_post_id=0,
                last_post_id=0,
                views=0,
                num_posts=0,
            )
            self.db.add(topic)
            self.db.flush()

            post = Post(topic_id=topic.id, user_id=topic.user_id, content=content)
            self.db.add(post)
            self.db.flush()

            topic.first_post_id = post.id
            topic.last_post_id = post.id
            topic.num_posts = 1
            forum.num_topics = (forum.num_topics or 0) + 1
            forum.num_posts = (forum.num_posts or 0) + 1
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to create topic %r in forum %s", title, forum_id)
            return None
        self.db.refresh(topic)
        logger.info("Created topic %s (%s) in forum %s", topic.id, topic.slug, forum_id)
        return topic

    def delete_topic(self, topic: Topic) -> bool:
        """Soft-delete ``topic``; its posts stay attached for the record."""
        try:
            topic.deleted_at = _now()
            forum = topic.forum
            if forum is not None:
                forum.num_topics = max((forum.num_topics or 0) - 1, 0)
                forum.num_posts = max((forum.num_posts or 0) - (topic.num_posts or 0), 0)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to delete topic %s", topic.id)
            return False
        logger.info("Deleted topic %s (%s)", topic.id, topic.slug)
        return True


class PostRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find(self, post_id: int) -> Optional[Post]:
        return self.db.get(Post, post_id)

    def all_for_topic(self, topic: Topic, with_trashed: bool = False) -> list[Post]:
        """Posts of ``topic`` in reading order; soft-deleted ones only on request."""
        stmt = select(Post).where(Post.topic_id == topic.id)
        if not with_trashed:
            stmt = stmt.where(Post.deleted_at.is_(None))
        stmt = stmt.options(joinedload(Post.user)).order_by(Post.created_at.asc(), Post.id.asc())
        return list(self.db.execute(stmt).scalars().all())

    def add_post_to_topic(self, topic: Topic, *, content: str, user: Optional[User] = None) -> Optional[Post]:
        try:
            post = Post(topic_id=topic.id, user_id=user.id if user else None, content=content)
            self.db.add(post)
            self.db.flush()
            topic.last_post_id = post.id
            topic.num_posts = (topic.num_posts or 0) + 1
            if topic.forum is not None:
                topic.forum.num_posts = (topic.forum.num_posts or 0) + 1
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to add a post to topic %s", topic.id)
            return None
        logger.info("Added post %s to topic %s", post.id, topic.id)
        return post

    def edit_post(self, post: Post, *, content: str, topic_title: Optional[str] = None) -> Optional[Post]:
        """Update ``post``; ``topic_title`` renames its topic in the same commit."""
        try:
            post.content = content
            if topic_title is not None:
                post.topic.title = topic_title
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to edit post %s", post.id)
            return None
        return post

    def delete_post(self, post: Post, *, new_last_post_id: Optional[int] = None) -> bool:
        """Soft-delete an active post; a post already in the trash is removed for good.

        ``new_last_post_id`` moves the topic's last-post reference in the same commit.
        """
        try:
            if new_last_post_id is not None and post.topic is not None:
                post.topic.last_post_id = new_last_post_id
            if post.deleted_at is None:
                post.deleted_at = _now()
                self._adjust_counts(post.topic, -1)
            else:
                self.db.delete(post)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to delete post %s", post.id)
            return False
        logger.info("Deleted post %s", post.id)
        return True

    def restore_post(self, post: Post) -> Optional[Post]:
        """Bring a trashed post back and point its topic at the newest active post."""
        if post.deleted_at is None:
            return post
        try:
            post.deleted_at = None
            self._adjust_counts(post.topic, 1)
            self.db.flush()
            active = self.all_for_topic(post.topic)
            post.topic.last_post_id = active[-1].id
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to restore post %s", post.id)
            return None
        logger.info("Restored post %s", post.id)
        return post

    def _adjust_counts(self, topic: Optional[Topic], delta: int) -> None:
        if topic is None:
            return
        topic.num_posts = max((topic.num_posts or 0) + delta, 0)
        if topic.forum is not None:
            topic.forum.num_posts = max((topic.forum.num_posts or 0) + delta, 0)
