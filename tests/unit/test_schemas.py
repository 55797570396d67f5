"""Smoke tests for Pydantic schema validation."""

import pytest
from pydantic import ValidationError

from lumina_providers import AdCopy, OutlinePage
from lumina_schemas import ArtStyle, EnrichmentKind, LedgerSnapshot, Project, ProjectGenre, StoryPage, SubscriptionTier
from lumina_schemas.utils.validators import WordCountError, ensure_max_word_count, ensure_not_blank

from services.orchestrator.app.models import (
    AdBrief,
    EnrichmentRequest,
    GenerationPayload,
    StoryBrief,
)


def test_story_brief_defaults_and_bounds() -> None:
    brief = StoryBrief(theme="  a fox  ")
    assert brief.theme == "a fox"
    assert brief.page_count == 3
    assert brief.genre == ProjectGenre.KIDS
    with pytest.raises(ValidationError):
        StoryBrief(theme="a fox", page_count=11)
    with pytest.raises(ValidationError):
        StoryBrief(theme="a fox", page_count=0)
    with pytest.raises(ValidationError):
        StoryBrief(theme="   ")


def test_story_theme_word_limit() -> None:
    StoryBrief(theme="word " * 400)
    with pytest.raises(ValidationError):
        StoryBrief(theme="word " * 401)


def test_generation_payload_discriminates_on_kind() -> None:
    story = GenerationPayload.model_validate({"kind": "story", "theme": "a fox", "page_count": 2}).root
    ad = GenerationPayload.model_validate({"kind": "ad", "product": "Glow Lamp"}).root
    enrichment = GenerationPayload.model_validate(
        {"kind": "enrichment", "operation": "video", "project_id": "p1", "page_index": 0}
    ).root
    assert isinstance(story, StoryBrief)
    assert isinstance(ad, AdBrief)
    assert ad.style == ArtStyle.UGC_AD
    assert isinstance(enrichment, EnrichmentRequest)
    assert enrichment.operation == EnrichmentKind.VIDEO
    with pytest.raises(ValidationError):
        GenerationPayload.model_validate({"kind": "podcast"})


def test_project_rejects_duplicate_page_ids() -> None:
    page = StoryPage(image_prompt="fox", image_url="https://images.test/0.png")
    with pytest.raises(ValidationError):
        Project(title="Fox", genre=ProjectGenre.KIDS, style=ArtStyle.ANIME, pages=[page, page])


def test_ledger_snapshot_never_negative() -> None:
    with pytest.raises(ValidationError):
        LedgerSnapshot(balance=-1, tier=SubscriptionTier.FREE)


def test_provider_payload_aliases() -> None:
    page = OutlinePage.model_validate({"imagePrompt": "fox", "caption": "hello"})
    assert page.image_prompt == "fox"
    copy = AdCopy.model_validate({"headline": "h", "body": "b", "background_prompt": "studio shot"})
    assert copy.visual_prompt == "studio shot"


def test_validators() -> None:
    assert ensure_not_blank("  hi ", field_name="x") == "hi"
    with pytest.raises(ValueError):
        ensure_not_blank("", field_name="x")
    with pytest.raises(WordCountError):
        ensure_max_word_count("a b c", limit=2, field_name="x")
