"""Domain models describing projects, pages, assets and subscriptions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from ..enums import ArtStyle, AssetType, ProjectGenre, ProjectType, SubscriptionTier


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class StoryPage(BaseModel):
    """Single illustrated frame of a project."""

    id: str = Field(default_factory=new_id)
    image_prompt: str = Field(..., min_length=1)
    image_url: str = Field(..., min_length=1, description="Generated image or placeholder reference")
    caption: str = Field(default="")
    audio_url: Optional[str] = Field(
        None, description="Base64 encoded 24kHz mono 16-bit PCM narration"
    )
    video_url: Optional[str] = None


class Project(BaseModel):
    """Multi-page illustrated project produced by the generation pipeline."""

    id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1, max_length=300)
    genre: ProjectGenre
    style: ArtStyle
    type: ProjectType = ProjectType.STORY
    pages: list[StoryPage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    is_published: bool = False
    price: Optional[float] = Field(None, ge=0)

    @field_validator("pages")
    @classmethod
    def validate_unique_page_ids(cls, pages: list[StoryPage]) -> list[StoryPage]:
        ids = [page.id for page in pages]
        if len(ids) != len(set(ids)):
            raise ValueError("Page ids must be unique within a project")
        return pages


class Asset(BaseModel):
    """Side production of the ad-hoc generation tools."""

    id: str = Field(default_factory=new_id)
    type: AssetType
    url: str = Field(..., min_length=1)
    prompt: str
    created_at: datetime = Field(default_factory=utcnow)


class LedgerSnapshot(BaseModel):
    """Read-only view of the credit ledger."""

    balance: int = Field(..., ge=0)
    tier: SubscriptionTier
    unlimited: bool = False
