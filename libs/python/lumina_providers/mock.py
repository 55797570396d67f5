"""Deterministic mock provider for tests and offline development."""

from __future__ import annotations

import hashlib

from lumina_schemas import ArtStyle

from .base import GenerationProvider, ProviderCapabilities
from .config import ProviderConfig, ProviderSettings
from .models import AdCopy, CharacterSheet, OutlinePage, StoryOutline
from .polling import VideoJob

# 1x1 transparent PNG.
MOCK_IMAGE_DATA_URL = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
MOCK_SPEECH_SECONDS = 0.5


def _digest(*parts: str) -> str:
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:12]


class MockProvider(GenerationProvider):
    """Returns canned, input-derived results without touching the network.

    Video jobs complete on the first refresh so the polling loop is still
    exercised.
    """

    name = "mock"

    def __init__(self, config: ProviderConfig | None = None) -> None:
        if config is None:
            settings = ProviderSettings(temperature=0.1)
            config = ProviderConfig(name="mock", api_key="mock", settings=settings)
        self._config = config

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_video=True,
            supports_speech=True,
            supports_image_input=True,
            max_pages=10,
        )

    async def generate_outline(self, theme: str, genre: str, page_count: int) -> StoryOutline:
        pages = [
            OutlinePage(
                image_prompt=f"{genre} scene {index + 1} of {theme}",
                caption=f"Scene {index + 1}: {theme}",
            )
            for index in range(page_count)
        ]
        return StoryOutline(title=f"The {genre} Tale of {theme}"[:300], pages=pages)

    async def generate_image(self, prompt: str, style: ArtStyle | str) -> str:
        return MOCK_IMAGE_DATA_URL

    async def generate_speech(self, text: str) -> bytes:
        # Silence: 24kHz mono 16-bit.
        return b"\x00\x00" * int(24000 * MOCK_SPEECH_SECONDS)

    async def refine_prompt(self, prompt: str) -> str:
        return f"{prompt}, ultra detailed, 4k, sharp focus"

    async def generate_ad_copy(self, product: str, audience: str) -> AdCopy:
        return AdCopy(
            headline=f"Meet {product}",
            body=f"{product} is made for {audience}.",
            call_to_action="Shop now",
            visual_prompt=f"Handheld photo of {product} used by {audience}",
            hashtags=["#ad", "#new"],
        )

    async def generate_character(self, description: str) -> CharacterSheet:
        return CharacterSheet(
            name=f"Character {_digest(description)[:4].upper()}",
            archetype="Hero",
            backstory=f"Born from the idea of {description}.",
            traits=["brave", "curious", "loyal"],
            image_prompt=f"Full-body portrait of {description}",
        )

    async def submit_video_job(self, prompt: str, source_image: str | None) -> VideoJob:
        return VideoJob(handle=f"mock-video-{_digest(prompt, source_image or '')}")

    async def refresh_video_job(self, job: VideoJob) -> VideoJob:
        job.done = True
        job.output_uri = f"mock://videos/{job.handle}.mp4"
        return job

    async def fetch_video(self, job: VideoJob) -> str:
        return job.output_uri or ""
