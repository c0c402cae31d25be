"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Depends

from community.config import Settings, get_settings
from community.handlers import AnnouncementHandler, ForumHandler, SubmissionHandler
from community.store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    NamespacedStore,
    RedisKeyValueStore,
    SqlKeyValueStore,
)

_store: KeyValueStore | None = None


def get_store() -> KeyValueStore:
    """
    Return a singleton store so in-memory data persists across requests.
    """
    global _store
    if _store:
        return _store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _store = InMemoryKeyValueStore()
    elif settings.redis_url:
        _store = RedisKeyValueStore(url=settings.redis_url)
    elif settings.database_url:
        _store = SqlKeyValueStore(settings.database_url)
    else:
        _store = InMemoryKeyValueStore()
    return _store


def get_forum_handler(
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> ForumHandler:
    return ForumHandler(
        NamespacedStore(store, settings.forum_namespace),
        logger=logging.getLogger("community.forum"),
        default_author=settings.default_author,
    )


def get_announcement_handler(
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> AnnouncementHandler:
    return AnnouncementHandler(
        NamespacedStore(store, settings.announcement_namespace),
        logger=logging.getLogger("community.announcement"),
        default_content=settings.default_announcement,
    )


def get_submission_handler(
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> SubmissionHandler:
    return SubmissionHandler(
        NamespacedStore(store, settings.submissions_namespace),
        logger=logging.getLogger("community.submissions"),
    )
