from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    g,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from db_models import User, UserSettings, get_db
from messages import trans

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


@dataclass
class Guard:
    """The authenticated user (if any) for the current request."""

    user: Optional[User] = None

    def check(self) -> bool:
        return self.user is not None

    def posts_per_page(self, default: int) -> int:
        if self.user is None or self.user.settings is None:
            return default
        return self.user.settings.posts_per_page or default


def get_current_user(db) -> Optional[User]:
    uid = session.get("user_id")
    if not uid:
        return None
    return db.get(User, uid)


def load_guard(db) -> Guard:
    return Guard(user=get_current_user(db))


def current_guard() -> Guard:
    guard = g.get("guard")
    if guard is None:
        guard = g.guard = load_guard(get_db())
    return guard


# -----------------------------
# CSRF helpers
# -----------------------------

def generate_csrf_token() -> str:
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def require_csrf():
    token = session.get("csrf_token")
    submitted = request.form.get("csrf_token") or request.headers.get("X-CSRF-Token")
    if not token or not submitted or not hmac.compare_digest(token, submitted):
        abort(400, description=trans("errors.invalid_csrf"))


def require_login(next_url: str = "/"):
    user = current_guard().user
    if not user:
        return redirect(url_for("auth.login", next=next_url))
    return user


def _safe_next(next_url: Optional[str]) -> str:
    # Only same-site relative paths.
    if not next_url or not next_url.startswith("/") or next_url.startswith("//"):
        return url_for("forums.index")
    return next_url


# -----------------------------
# Routes
# -----------------------------

@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    db = get_db()
    next_url = _safe_next(request.args.get("next") or request.form.get("next"))
    error = None
    if request.method == "POST":
        require_csrf()
        username = (request.form.get("username") or "").strip()
        password = (request.form.get("password") or "").strip()
        user = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
        if user and check_password_hash(user.password_hash, password):
            session["user_id"] = user.id
            session["username"] = user.username
            logger.info("User %s logged in", user.id)
            return redirect(next_url)
        error = trans("errors.invalid_credentials")
    return render_template("auth/login.html", next_url=next_url, error=error)


@auth_bp.route("/logout")
def logout():
    session.pop("user_id", None)
    session.pop("username", None)
    return redirect(url_for("forums.index"))


@auth_bp.route("/signup", methods=["GET", "POST"])
def signup():
    db = get_db()
    error = None
    next_url = _safe_next(request.args.get("next") or request.form.get("next"))
    if request.method == "POST":
        require_csrf()
        username = (request.form.get("username") or "").strip()
        password = (request.form.get("password") or "").strip()
        if not username or not password or len(username) > 64:
            error = trans("errors.credentials_required")
        else:
            hashed = generate_password_hash(password, method="pbkdf2:sha256")
            new_user = User(username=username, password_hash=hashed)
            new_user.settings = UserSettings(posts_per_page=current_app.config["DEFAULT_POSTS_PER_PAGE"])
            db.add(new_user)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                error = trans("errors.username_taken")
            else:
                session["user_id"] = new_user.id
                session["username"] = new_user.username
                logger.info("User %s signed up", new_user.id)
                return redirect(next_url)
    return render_template("auth/signup.html", error=error, next_url=next_url)


@auth_bp.route("/account/settings", methods=["GET", "POST"])
def settings():
    user = require_login(url_for("auth.settings"))
    if not isinstance(user, User):
        return user

    db = get_db()
    if request.method == "POST":
        require_csrf()
        limit = current_app.config["MAX_POSTS_PER_PAGE"]
        try:
            ppp = int(request.form.get("posts_per_page") or "")
        except ValueError:
            ppp = 0
        if ppp < 1 or ppp > limit:
            abort(400, description=trans("errors.invalid_posts_per_page", max=limit))
        # The settings row is created on first save.
        if user.settings is None:
            user.settings = UserSettings(user_id=user.id)
        user.settings.posts_per_page = ppp
        db.commit()
        flash(trans("messages.settings_saved"), "success")
        return redirect(url_for("auth.settings"))

    ppp = user.settings.posts_per_page if user.settings else current_app.config["DEFAULT_POSTS_PER_PAGE"]
    return render_template("auth/settings.html", posts_per_page=ppp)
