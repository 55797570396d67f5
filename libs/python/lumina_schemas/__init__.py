"""Shared schemas for Lumina Studio services."""

from .enums import (
    ArtStyle,
    AssetType,
    EnrichmentKind,
    GenerationKind,
    PipelineState,
    ProjectGenre,
    ProjectType,
    SubscriptionTier,
)
from .models.project import Asset, LedgerSnapshot, Project, StoryPage
from .models.workspace import FileDoc, FolderDoc, NoteDoc, TeamMemberDoc

__all__ = [
    "ArtStyle",
    "Asset",
    "AssetType",
    "EnrichmentKind",
    "FileDoc",
    "FolderDoc",
    "GenerationKind",
    "LedgerSnapshot",
    "NoteDoc",
    "PipelineState",
    "Project",
    "ProjectGenre",
    "ProjectType",
    "StoryPage",
    "SubscriptionTier",
    "TeamMemberDoc",
]
