"""
Pydantic schemas for request bodies and responses.

Field names follow the wire format, hence the camelCase ones.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class ForumPostPayload(BaseModel):
    content: Optional[str] = None
    author: Optional[str] = None


class PostResponse(BaseModel):
    id: str
    content: str
    author: str
    timestamp: int


class AnnouncementPayload(BaseModel):
    content: Optional[str] = None


class AnnouncementResponse(BaseModel):
    content: str
    updatedAt: Optional[str] = None


class AnnouncementUpdateResponse(BaseModel):
    success: bool
    content: str
    updatedAt: str


class SubmissionPayload(BaseModel):
    message: Optional[str] = None


class SubmitResponse(BaseModel):
    success: bool
    id: str
