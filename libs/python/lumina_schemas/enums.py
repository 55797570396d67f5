"""Enum definitions shared across services."""

from __future__ import annotations

from enum import Enum


class ProjectGenre(str, Enum):
    KIDS = "Kids"
    HORROR = "Horror"
    SCIFI = "Sci-Fi"
    EDUCATION = "Education"
    FANTASY = "Fantasy"
    CINEMATIC = "Cinematic"
    MARKETING = "Marketing"


class ArtStyle(str, Enum):
    ANIME = "Anime"
    COMIC = "Comic Book"
    REALISTIC = "Cinematic Realistic"
    WATERCOLOR = "Watercolor Painting"
    PIXEL = "8-bit Pixel Art"
    VEO_CINEMATIC = "Veo Cinematic"
    UGC_AD = "Authentic UGC"


class ProjectType(str, Enum):
    STORY = "story"
    VIDEO = "video"
    AUDIO = "audio"
    EBOOK = "ebook"
    AD = "ad"
    CHARACTER = "character"


class SubscriptionTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ELITE = "elite"


class AssetType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class GenerationKind(str, Enum):
    """Every costed operation the studio knows how to price."""

    STORY = "story"
    AD = "ad"
    CHARACTER = "character"
    REGENERATE = "regenerate"
    UPSCALE = "upscale"
    VIDEO = "video"
    AUDIO = "audio"
    LAB_IMAGE = "lab_image"
    LAB_VIDEO = "lab_video"


class EnrichmentKind(str, Enum):
    REGENERATE = "regenerate"
    UPSCALE = "upscale"
    VIDEO = "video"
    AUDIO = "audio"


class PipelineState(str, Enum):
    IDLE = "IDLE"
    COST_CHECK = "COST_CHECK"
    OUTLINE_GENERATION = "OUTLINE_GENERATION"
    PAGE_IMAGE_GENERATION = "PAGE_IMAGE_GENERATION"
    ASSEMBLY = "ASSEMBLY"
    PERSISTED = "PERSISTED"
    ABORTED = "ABORTED"
