"""
HTTP routes: forum, announcement and submission resources.

Each resource is matched by path prefix, so ``/api/forum``, ``/api/forum/``
and ``/api/forum/anything`` all reach the forum handler. Verbs a resource
does not support fall through to a route that answers 405.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

import pydantic
from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from community.config import Settings, get_settings
from community.dependencies import (
    get_announcement_handler,
    get_forum_handler,
    get_submission_handler,
)
from community.errors import MethodNotAllowed, NotFound, ValidationError
from community.handlers import AnnouncementHandler, ForumHandler, SubmissionHandler
from community.schemas import (
    AnnouncementPayload,
    AnnouncementResponse,
    AnnouncementUpdateResponse,
    ForumPostPayload,
    PostResponse,
    SubmissionPayload,
    SubmitResponse,
)

logger = logging.getLogger(__name__)

FORUM_PATH = "/forum{suffix:path}"
ANNOUNCEMENT_PATH = "/announcement{suffix:path}"
SUBMIT_PATH = "/submit{suffix:path}"

router = APIRouter()


async def _read_payload(
    request: Request, model: type[pydantic.BaseModel], settings: Settings
) -> pydantic.BaseModel:
    raw = await request.body()
    logger.debug("Raw body for %s %s: %r", request.method, request.url.path, raw)
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        if settings.reject_malformed_json:
            raise ValidationError(f"Malformed JSON body: {exc}") from exc
        raise
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        fields = ", ".join(".".join(str(loc) for loc in e["loc"]) for e in exc.errors())
        raise ValidationError(f"Invalid field(s): {fields}") from exc


def _origin_ip(request: Request) -> Optional[str]:
    connecting_ip = request.headers.get("cf-connecting-ip")
    if connecting_ip:
        return connecting_ip.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _reject_other_methods(path: str, allowed: Sequence[str]) -> None:
    # No method filter: every verb the routes above leave unclaimed lands here.
    async def method_not_allowed(request: Request):
        raise MethodNotAllowed(request.method, allowed)

    router.add_route(path, method_not_allowed, include_in_schema=False)


@router.get(FORUM_PATH, response_model=list[PostResponse])
async def list_posts(handler: ForumHandler = Depends(get_forum_handler)):
    return await run_in_threadpool(handler.list)


@router.post(FORUM_PATH, response_model=PostResponse, status_code=201)
async def create_post(
    request: Request,
    handler: ForumHandler = Depends(get_forum_handler),
    settings: Settings = Depends(get_settings),
):
    payload = await _read_payload(request, ForumPostPayload, settings)
    post = await run_in_threadpool(handler.create, payload.content, payload.author)
    return post.as_dict()


_reject_other_methods(FORUM_PATH, ("GET", "POST"))


@router.get(ANNOUNCEMENT_PATH, response_model=AnnouncementResponse)
async def get_announcement(
    handler: AnnouncementHandler = Depends(get_announcement_handler),
):
    return await run_in_threadpool(handler.get)


@router.post(ANNOUNCEMENT_PATH, response_model=AnnouncementUpdateResponse)
async def set_announcement(
    request: Request,
    handler: AnnouncementHandler = Depends(get_announcement_handler),
    settings: Settings = Depends(get_settings),
):
    payload = await _read_payload(request, AnnouncementPayload, settings)
    return await run_in_threadpool(handler.set, payload.content)


_reject_other_methods(ANNOUNCEMENT_PATH, ("GET", "POST"))


@router.post(SUBMIT_PATH, response_model=SubmitResponse)
async def submit(
    request: Request,
    handler: SubmissionHandler = Depends(get_submission_handler),
    settings: Settings = Depends(get_settings),
):
    payload = await _read_payload(request, SubmissionPayload, settings)
    submission = await run_in_threadpool(
        handler.create, payload.message, _origin_ip(request)
    )
    return SubmitResponse(success=True, id=submission.id)


_reject_other_methods(SUBMIT_PATH, ("POST",))


async def not_found(request: Request):
    """Fallback for paths no resource claims when no static site is served."""
    raise NotFound()
