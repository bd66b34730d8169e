"""Shared fixtures: a fresh app per test backed by a temporary SQLite file."""

from urllib.parse import urlsplit

import pytest
from werkzeug.security import generate_password_hash

import db_models
from app import create_app
from db_models import Forum, Post, SessionLocal, Topic, User, UserSettings
from repositories import PostRepository, TopicRepository

CSRF_TOKEN = "test-csrf-token"


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "DATABASE_URL": f"sqlite:///{tmp_path / 'forum.db'}",
            "FORUM_SEED_PATH": str(tmp_path / "no-seed.json"),
            "DEFAULT_POSTS_PER_PAGE": 10,
        }
    )
    yield app
    db_models.engine.dispose()


@pytest.fixture
def client(app):
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF_TOKEN
    return client


@pytest.fixture
def forum(app):
    with SessionLocal() as db:
        forum = Forum(title="General Discussion", slug="general", description="Anything goes")
        db.add(forum)
        db.commit()
        return {"id": forum.id, "slug": forum.slug}


@pytest.fixture
def make_topic(forum):
    """Create a topic with ``num_posts`` posts; returns its slug, id and post ids."""

    def _make(num_posts=1, title="Hello world", forum_id=None):
        with SessionLocal() as db:
            topic = TopicRepository(db).create(
                title=title,
                forum_id=forum_id or forum["id"],
                content="First post",
            )
            posts = PostRepository(db)
            for i in range(1, num_posts):
                posts.add_post_to_topic(topic, content=f"Reply {i}")
            post_ids = [p.id for p in posts.all_for_topic(topic)]
            return {"id": topic.id, "slug": topic.slug, "post_ids": post_ids}

    return _make


@pytest.fixture
def login(client):
    """Create a user with the given posts-per-page setting and log the client in."""

    def _login(username="alice", password="secret", posts_per_page=10):
        with SessionLocal() as db:
            user = User(username=username, password_hash=generate_password_hash(password))
            user.settings = UserSettings(posts_per_page=posts_per_page)
            db.add(user)
            db.commit()
            user_id = user.id
        with client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["username"] = username
        return user_id

    return _login


def get_topic(topic_id):
    with SessionLocal() as db:
        return db.get(Topic, topic_id)


def get_post(post_id):
    with SessionLocal() as db:
        return db.get(Post, post_id)


def get_forum(forum_id):
    with SessionLocal() as db:
        return db.get(Forum, forum_id)


def location(response):
    """Redirect target without scheme and host."""
    parts = urlsplit(response.headers["Location"])
    target = parts.path
    if parts.query:
        target += "?" + parts.query
    if parts.fragment:
        target += "#" + parts.fragment
    return target
