"""Topic pages: reading, replying, editing, creating, deleting and restoring.

Every handler resolves the topic (and post or forum) named in the URL first
and aborts with 404 before touching anything. Mutations go through the
repositories; a failed mutation is flashed and the user is sent back to the
form they came from.
"""

from __future__ import annotations

import logging
import math

from flask import Blueprint, abort, current_app, flash, redirect, render_template, url_for

from auth import Guard, current_guard, require_csrf
from db_models import Forum, Post, Topic, get_db
from forms import CreateForm, ReplyForm
from messages import trans
from repositories import ForumRepository, PostRepository, TopicRepository

logger = logging.getLogger(__name__)

topics_bp = Blueprint("topics", __name__, url_prefix="/topic")


# -----------------------------
# Lookup + pagination helpers
# -----------------------------

def _topic_or_404(topics: TopicRepository, slug: str) -> Topic:
    topic = topics.find_by_slug(slug)
    if topic is None:
        abort(404, description=trans("errors.topic_not_found"))
    return topic


def _topic_post_or_404(
    topics: TopicRepository,
    posts: PostRepository,
    slug: str,
    post_id: int,
    require_deleted: bool = False,
) -> tuple[Topic, Post]:
    topic = topics.find_by_slug(slug)
    post = posts.find(post_id)
    if post is None or topic is None or post.topic_id != topic.id:
        abort(404, description=trans("errors.post_not_found"))
    if require_deleted and post.deleted_at is None:
        abort(404, description=trans("errors.post_not_found"))
    return topic, post


def _forum_or_404(forums: ForumRepository, forum_id: int) -> Forum:
    forum = forums.find(forum_id)
    if forum is None:
        abort(404, description=trans("errors.forum_not_found"))
    return forum


def posts_per_page(guard: Guard) -> int:
    return guard.posts_per_page(current_app.config["DEFAULT_POSTS_PER_PAGE"])


def last_page(num_posts: int, ppp: int) -> int:
    return max(math.ceil((num_posts or 0) / ppp), 1)


def post_url(topic: Topic, post_id: int, guard: Guard) -> str:
    """URL of the topic's last page, anchored at ``post_id``."""
    page = last_page(topic.num_posts, posts_per_page(guard))
    anchor = f"post-{post_id}"
    if page == 1:
        return url_for("topics.show", slug=topic.slug, _anchor=anchor)
    return url_for("topics.show", slug=topic.slug, page=page, _anchor=anchor)


# -----------------------------
# Routes
# -----------------------------

@topics_bp.route("/<slug>")
def show(slug):
    db = get_db()
    topics = TopicRepository(db)
    topic = _topic_or_404(topics, slug)

    topics.increment_view_count(topic)
    posts = PostRepository(db).all_for_topic(topic, with_trashed=True)

    return render_template("topic/show.html", topic=topic, posts=posts)


@topics_bp.route("/<slug>/last")
def last(slug):
    topic = _topic_or_404(TopicRepository(get_db()), slug)
    return redirect(post_url(topic, topic.last_post_id, current_guard()))


@topics_bp.route("/<slug>/reply")
def reply(slug):
    topic = _topic_or_404(TopicRepository(get_db()), slug)
    return render_template("topic/reply.html", topic=topic)


@topics_bp.route("/<slug>/reply", methods=["POST"])
def post_reply(slug):
    require_csrf()
    form = ReplyForm.from_request()
    db = get_db()
    guard = current_guard()
    topic = _topic_or_404(TopicRepository(db), slug)

    post = PostRepository(db).add_post_to_topic(topic, content=form.content, user=guard.user)
    if post is None:
        flash(trans("errors.error_creating_post"), "error")
        return redirect(url_for("topics.reply", slug=topic.slug))

    return redirect(post_url(topic, post.id, guard))


@topics_bp.route("/<slug>/edit/<int:post_id>")
def edit(slug, post_id):
    db = get_db()
    topic, post = _topic_post_or_404(TopicRepository(db), PostRepository(db), slug, post_id)
    return render_template("topic/edit.html", topic=topic, post=post)


@topics_bp.route("/<slug>/edit/<int:post_id>", methods=["POST"])
def post_edit(slug, post_id):
    require_csrf()
    form = ReplyForm.from_request()
    db = get_db()
    posts = PostRepository(db)
    topic, post = _topic_post_or_404(TopicRepository(db), posts, slug, post_id)

    # The first post carries the topic's title.
    title = form.title if post.id == topic.first_post_id and form.title else None
    if posts.edit_post(post, content=form.content, topic_title=title) is None:
        flash(trans("errors.error_editing_post"), "error")
        return redirect(url_for("topics.edit", slug=topic.slug, post_id=post_id))

    return redirect(url_for("topics.show", slug=topic.slug))


@topics_bp.route("/create/<int:forum_id>")
def create(forum_id):
    forum = _forum_or_404(ForumRepository(get_db()), forum_id)
    return render_template("topic/create.html", forum=forum)


@topics_bp.route("/create/<int:forum_id>", methods=["POST"])
def post_create(forum_id):
    require_csrf()
    form = CreateForm.from_request()
    db = get_db()
    forum = _forum_or_404(ForumRepository(db), forum_id)

    topic = TopicRepository(db).create(
        title=form.title,
        forum_id=forum.id,
        content=form.content,
        user=current_guard().user,
    )
    if topic is None:
        flash(trans("errors.error_creating_topic"), "error")
        return redirect(url_for("topics.create", forum_id=forum.id))

    return redirect(url_for("topics.show", slug=topic.slug))


@topics_bp.route("/<slug>/restore/<int:post_id>", methods=["POST"])
def restore(slug, post_id):
    require_csrf()
    db = get_db()
    posts = PostRepository(db)
    topic, post = _topic_post_or_404(TopicRepository(db), posts, slug, post_id, require_deleted=True)

    # Also moves the topic's last post to the newest active one.
    if posts.restore_post(post) is None:
        flash(trans("errors.error_restoring_post"), "error")

    return redirect(url_for("topics.show", slug=topic.slug))


@topics_bp.route("/<slug>/delete/<int:post_id>", methods=["POST"])
def delete(slug, post_id):
    require_csrf()
    db = get_db()
    topics = TopicRepository(db)
    posts = PostRepository(db)
    topic, post = _topic_post_or_404(topics, posts, slug, post_id)

    if post.id == topic.first_post_id:
        forum_slug = topic.forum.slug
        if not topics.delete_topic(topic):
            flash(trans("errors.error_deleting_topic"), "error")
            return redirect(url_for("topics.show", slug=topic.slug))
        return redirect(url_for("forums.show", slug=forum_slug))

    new_last_post_id = None
    if post.id == topic.last_post_id and post.deleted_at is None:
        active = posts.all_for_topic(topic)
        new_last_post_id = active[-2].id if len(active) > 1 else topic.first_post_id

    if not posts.delete_post(post, new_last_post_id=new_last_post_id):
        flash(trans("errors.error_deleting_post"), "error")

    return redirect(url_for("topics.show", slug=topic.slug))
