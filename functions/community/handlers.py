"""
Resource handlers: forum posts, the announcement and user submissions.

Handlers hold no state between requests. Everything they need (store,
logger, clock, id source) is passed in, which keeps them usable outside the
HTTP layer.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from community.errors import ValidationError
from community.records import Post, RecordLog, Submission
from community.store import KeyValueStore

Clock = Callable[[], float]
IdFactory = Callable[[], str]

FORUM_LOG_NAME = "posts"
SUBMISSION_LOG_NAME = "list"
ANNOUNCEMENT_CONTENT_KEY = "latest"
ANNOUNCEMENT_UPDATED_KEY = "updatedAt"


def _new_id() -> str:
    return uuid4().hex


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field}' is required")
    return value


class ForumHandler:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        logger: Optional[logging.Logger] = None,
        default_author: str = "anonymous",
        clock: Clock = time.time,
        id_factory: IdFactory = _new_id,
    ):
        self.posts = RecordLog(store, FORUM_LOG_NAME)
        self.logger = logger or logging.getLogger(__name__)
        self.default_author = default_author
        self.clock = clock
        self.id_factory = id_factory

    def list(self) -> list[dict]:
        """Return every post in creation order."""
        return self.posts.list()

    def create(self, content: Any, author: Optional[str] = None) -> Post:
        content = _require_text(content, "content")
        if not isinstance(author, str) or not author.strip():
            author = self.default_author
        post = Post(
            id=self.id_factory(),
            content=content,
            author=author,
            timestamp=int(self.clock() * 1000),
        )
        slot = self.posts.append(post.as_dict())
        self.logger.info("Stored forum post %s in slot %d", post.id, slot)
        return post


class AnnouncementHandler:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        logger: Optional[logging.Logger] = None,
        default_content: str = "no announcement",
        clock: Clock = time.time,
    ):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.default_content = default_content
        self.clock = clock

    def get(self) -> dict:
        content, updated_at = self.store.get_many(
            [ANNOUNCEMENT_CONTENT_KEY, ANNOUNCEMENT_UPDATED_KEY]
        )
        return {
            "content": content if content is not None else self.default_content,
            "updatedAt": updated_at,
        }

    def set(self, content: Any) -> dict:
        """Replace the announcement wholesale; no history is kept."""
        content = _require_text(content, "content")
        updated_at = datetime.fromtimestamp(self.clock(), tz=timezone.utc).isoformat()
        self.store.put_many(
            {ANNOUNCEMENT_CONTENT_KEY: content, ANNOUNCEMENT_UPDATED_KEY: updated_at}
        )
        self.logger.info("Announcement updated at %s", updated_at)
        return {"success": True, "content": content, "updatedAt": updated_at}


class SubmissionHandler:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        logger: Optional[logging.Logger] = None,
        clock: Clock = time.time,
        id_factory: IdFactory = _new_id,
    ):
        self.submissions = RecordLog(store, SUBMISSION_LOG_NAME)
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock
        self.id_factory = id_factory

    def create(self, message: Any, origin_ip: Optional[str] = None) -> Submission:
        message = _require_text(message, "message").strip()
        submission = Submission(
            id=self.id_factory(),
            message=message,
            timestamp=int(self.clock() * 1000),
            origin_ip=origin_ip,
        )
        slot = self.submissions.append(submission.as_dict())
        self.logger.info(
            "Stored submission %s in slot %d (origin=%s)",
            submission.id,
            slot,
            origin_ip,
        )
        return submission
