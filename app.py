from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from flask import Flask, g, render_template
from markupsafe import Markup, escape
from werkzeug.exceptions import HTTPException

from auth import auth_bp, generate_csrf_token, load_guard
from db_models import get_db, init_db
from forums import ensure_seed_forums, forums_bp
from messages import trans
from topics import topics_bp

logger = logging.getLogger(__name__)


def _env_bool(key: str, default: bool = False) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


def _default_config() -> dict[str, Any]:
    return {
        "SECRET_KEY": os.environ.get("APP_SECRET", "dev-secret-key"),
        "DATABASE_URL": os.environ.get("DATABASE_URL", "sqlite:///forum.db"),
        "SESSION_COOKIE_SECURE": _env_bool("SESSION_COOKIE_SECURE", default=False),
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": os.environ.get("SESSION_COOKIE_SAMESITE", "Lax"),
        # Guests and users without settings get this many posts per page.
        "DEFAULT_POSTS_PER_PAGE": int(os.environ.get("DEFAULT_POSTS_PER_PAGE", "10")),
        "MAX_POSTS_PER_PAGE": int(os.environ.get("MAX_POSTS_PER_PAGE", "100")),
        "MAX_TITLE_LENGTH": int(os.environ.get("MAX_TITLE_LENGTH", "120")),
        "MAX_POST_LENGTH": int(os.environ.get("MAX_POST_LENGTH", "10000")),
        "FORUM_SEED_PATH": os.environ.get("FORUM_SEED_PATH", str(Path(__file__).parent / "data" / "forums.json")),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO").upper(),
    }


def nl2br(value: str) -> Markup:
    return Markup("<br>\n").join(escape(value or "").split("\n"))


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.update(_default_config())
    if config:
        app.config.update(config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    init_db(app.config["DATABASE_URL"])
    ensure_seed_forums(Path(app.config["FORUM_SEED_PATH"]))

    app.register_blueprint(forums_bp)
    app.register_blueprint(topics_bp)
    app.register_blueprint(auth_bp)

    app.jinja_env.globals["trans"] = trans
    app.jinja_env.filters["nl2br"] = nl2br

    @app.before_request
    def attach_guard():
        g.guard = load_guard(get_db())
        generate_csrf_token()

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        db = g.pop("db", None)
        if db is not None:
            if exception:
                db.rollback()
            db.close()

    @app.context_processor
    def inject_globals():
        guard = g.get("guard")
        return {
            "csrf_token": generate_csrf_token(),
            "current_user": guard.user if guard else None,
        }

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        # Routing redirects are HTTPExceptions too.
        if exc.code is None or exc.code < 400:
            return exc
        if exc.code >= 500:
            logger.error("HTTP %s: %s", exc.code, exc.description)
        return (
            render_template("error.html", code=exc.code, name=exc.name, description=exc.description),
            exc.code,
        )

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=False)
