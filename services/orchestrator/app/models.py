"""Pydantic models for the orchestrator API and pipeline."""

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, RootModel, field_validator

from lumina_schemas import (
    ArtStyle,
    Asset,
    AssetType,
    EnrichmentKind,
    LedgerSnapshot,
    PipelineState,
    Project,
    ProjectGenre,
)
from lumina_schemas.utils.validators import ensure_max_word_count, ensure_not_blank

MAX_PAGES = 10


class StoryBrief(BaseModel):
    kind: Literal["story"] = "story"
    theme: str = Field(..., description="Up to 400 words describing the story")
    genre: ProjectGenre = ProjectGenre.KIDS
    style: ArtStyle = ArtStyle.WATERCOLOR
    page_count: int = Field(3, ge=1, le=MAX_PAGES)

    @field_validator("theme")
    @classmethod
    def validate_theme(cls, value: str) -> str:
        ensure_max_word_count(value, limit=400, field_name="Story theme")
        return ensure_not_blank(value, field_name="Story theme")


class AdBrief(BaseModel):
    kind: Literal["ad"] = "ad"
    product: str
    audience: str = "general audience"
    style: ArtStyle = ArtStyle.UGC_AD

    @field_validator("product", "audience")
    @classmethod
    def validate_text(cls, value: str) -> str:
        return ensure_not_blank(value, field_name="Ad brief field")


class CharacterBrief(BaseModel):
    kind: Literal["character"] = "character"
    description: str
    genre: ProjectGenre = ProjectGenre.FANTASY
    style: ArtStyle = ArtStyle.ANIME

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str) -> str:
        ensure_max_word_count(value, limit=200, field_name="Character description")
        return ensure_not_blank(value, field_name="Character description")


class EnrichmentRequest(BaseModel):
    kind: Literal["enrichment"] = "enrichment"
    operation: EnrichmentKind
    project_id: str = Field(..., min_length=1)
    page_index: int = Field(..., description="0-based page index")


GenerationRequest = Annotated[
    Union[StoryBrief, AdBrief, CharacterBrief, EnrichmentRequest],
    Field(discriminator="kind"),
]


class GenerationPayload(RootModel[GenerationRequest]):
    """Request body for /generate, discriminated on ``kind``."""


class PipelineResult(BaseModel):
    """Outcome of a completed (possibly degraded) generation run."""

    project: Project
    state: PipelineState
    credits_charged: int = 0
    placeholder_pages: List[int] = Field(default_factory=list)
    save_failed: bool = False
    warnings: List[str] = Field(default_factory=list)
    copy_text: Optional[dict] = Field(
        None, description="Structured text returned by ad and character generation"
    )


class GenerateResponse(BaseModel):
    result: PipelineResult
    ledger: LedgerSnapshot


class EnrichmentResponse(BaseModel):
    project: Project
    ledger: LedgerSnapshot


class PageUpdateRequest(BaseModel):
    caption: Optional[str] = None
    image_prompt: Optional[str] = Field(None, min_length=1)


class PublishRequest(BaseModel):
    is_published: bool
    price: Optional[float] = Field(None, ge=0, description="Listing price; omitted keeps the current one")


class PurchaseRequest(BaseModel):
    pack_id: str


class SubscribeRequest(BaseModel):
    plan_id: str


class LabAssetRequest(BaseModel):
    type: AssetType = AssetType.IMAGE
    prompt: str
    style: ArtStyle = ArtStyle.REALISTIC
    source_image: Optional[str] = None

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, value: str) -> str:
        return ensure_not_blank(value, field_name="Prompt")


class LabAssetResponse(BaseModel):
    asset: Asset
    ledger: LedgerSnapshot


class RefinePromptRequest(BaseModel):
    prompt: str

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, value: str) -> str:
        return ensure_not_blank(value, field_name="Prompt")


class RefinePromptResponse(BaseModel):
    prompt: str
