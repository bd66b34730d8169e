from __future__ import annotations

from dataclasses import dataclass

from flask import abort, current_app, request

from messages import trans


def _field(name: str) -> str:
    return (request.form.get(name) or "").strip()


def _check_content(content: str) -> None:
    limit = current_app.config["MAX_POST_LENGTH"]
    if not content or len(content) > limit:
        abort(400, description=trans("errors.invalid_content", max=limit))


def _check_title(title: str, required: bool) -> None:
    limit = current_app.config["MAX_TITLE_LENGTH"]
    if (required and not title) or len(title) > limit:
        abort(400, description=trans("errors.invalid_title", max=limit))


@dataclass
class ReplyForm:
    """A reply or an edit. ``title`` only matters when editing a first post."""

    content: str
    title: str = ""

    @classmethod
    def from_request(cls) -> "ReplyForm":
        content = _field("content")
        title = _field("title")
        _check_content(content)
        _check_title(title, required=False)
        return cls(content=content, title=title)


@dataclass
class CreateForm:
    title: str
    content: str

    @classmethod
    def from_request(cls) -> "CreateForm":
        title = _field("title")
        content = _field("content")
        _check_title(title, required=True)
        _check_content(content)
        return cls(title=title, content=content)
