"""GitHub-facing response data models."""

from typing import List, Optional

from pydantic import BaseModel, Field, StrictStr


class ContentItem(BaseModel):
    """The body and author of an issue, pull request or comment."""

    body: str = ""
    login: str = ""


class ThreadContents(BaseModel):
    """An issue or pull request and its conversation."""

    number: int
    title: str = ""
    content: ContentItem
    comments: List[ContentItem] = Field(default_factory=list)


class FeaturePlanItem(BaseModel):
    """One entry of a feature plan produced with ``--create-issues``."""

    title: StrictStr
    description: StrictStr


class PublishResult(BaseModel):
    """Result of an issue creation run."""

    success: bool
    published_count: int
    failed_count: int
    issue_numbers: List[int] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None
