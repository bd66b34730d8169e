"""User-facing message catalogue.

Handlers and templates refer to messages by key (``errors.topic_not_found``)
and resolve them through :func:`trans`, so wording lives in one place.
"""

from __future__ import annotations

MESSAGES: dict[str, str] = {
    "errors.topic_not_found": "The topic you are looking for could not be found.",
    "errors.post_not_found": "The post you are looking for could not be found.",
    "errors.forum_not_found": "The forum you are looking for could not be found.",
    "errors.error_creating_post": "Your reply could not be saved. Please try again.",
    "errors.error_editing_post": "Your changes could not be saved. Please try again.",
    "errors.error_creating_topic": "The topic could not be created. Please try again.",
    "errors.error_deleting_topic": "The topic could not be deleted. Please try again.",
    "errors.error_deleting_post": "The post could not be deleted. Please try again.",
    "errors.error_restoring_post": "The post could not be restored. Please try again.",
    "errors.invalid_content": "Posts must contain between 1 and {max} characters.",
    "errors.invalid_title": "Titles must contain between 1 and {max} characters.",
    "errors.invalid_csrf": "Your session has expired. Reload the page and try again.",
    "errors.invalid_credentials": "Invalid username or password.",
    "errors.credentials_required": "Username and password are required.",
    "errors.username_taken": "That username is already taken.",
    "errors.invalid_posts_per_page": "Posts per page must be between 1 and {max}.",
    "messages.settings_saved": "Your settings have been saved.",
}


def trans(key: str, **params) -> str:
    """Return the message for ``key``, or the key itself when it is unknown."""
    text = MESSAGES.get(key, key)
    if params:
        return text.format(**params)
    return text
