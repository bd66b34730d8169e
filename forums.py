from __future__ import annotations

import json
import logging
from pathlib import Path

from flask import Blueprint, abort, render_template
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from db_models import Forum, SessionLocal, get_db
from messages import trans
from repositories import ForumRepository, slugify

logger = logging.getLogger(__name__)

forums_bp = Blueprint("forums", __name__)


def ensure_seed_forums(seed_path: Path) -> int:
    """Create or update forums listed in ``seed_path``. Returns how many were created."""
    if not seed_path.exists():
        return 0

    try:
        seed = json.loads(seed_path.read_text(encoding="utf-8")).get("forums", [])
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read %s: %s", seed_path, exc)
        return 0

    created = 0
    db = SessionLocal()
    try:
        for entry in seed:
            title = (entry.get("title") or "").strip()
            if not title:
                continue
            slug = entry.get("slug") or slugify(title)
            existing = db.execute(select(Forum).where(Forum.slug == slug)).scalar_one_or_none()
            if existing:
                existing.title = title
                existing.description = entry.get("description", existing.description)
            else:
                db.add(Forum(title=title, slug=slug, description=entry.get("description", "")))
                created += 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to seed forums from %s", seed_path)
        return 0
    finally:
        db.close()

    if created:
        logger.info("Seeded %d forums from %s", created, seed_path)
    return created


@forums_bp.route("/")
def index():
    forums = ForumRepository(get_db()).all()
    return render_template("forum/index.html", forums=forums)


@forums_bp.route("/forum/<slug>")
def show(slug):
    repo = ForumRepository(get_db())
    forum = repo.find_by_slug(slug)
    if forum is None:
        abort(404, description=trans("errors.forum_not_found"))
    return render_template("forum/show.html", forum=forum, topics=repo.topics_for_forum(forum))
