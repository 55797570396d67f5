"""Core interfaces and dataclasses for provider interactions."""

from __future__ import annotations

import base64
import binascii
from abc import ABC, abstractmethod
from dataclasses import dataclass

from lumina_schemas import ArtStyle

from .config import ProviderConfig
from .exceptions import GenerationError
from .models import AdCopy, CharacterSheet, StoryOutline
from .polling import CancellationToken, VideoJob, VideoPoller


@dataclass(slots=True)
class ProviderCapabilities:
    """Capability flags used when choosing a provider."""

    supports_video: bool = False
    supports_speech: bool = False
    supports_image_input: bool = False
    max_pages: int | None = None


@dataclass(slots=True)
class InlineMedia:
    """Raw media bytes decoded from a ``data:`` URL."""

    data: bytes
    mime_type: str

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def decode_data_url(value: str | None) -> InlineMedia | None:
    """Return the embedded bytes of a ``data:`` URL, or ``None`` for remote URLs."""

    if not value or not value.startswith("data:"):
        return None
    header, _, payload = value.partition(",")
    mime_type = header[5:].split(";")[0] or "application/octet-stream"
    try:
        return InlineMedia(data=base64.b64decode(payload), mime_type=mime_type)
    except (ValueError, binascii.Error):
        return None


class GenerationProvider(ABC):
    """Abstract base class implemented by concrete providers.

    Every operation is an independent remote call; the only state carried
    between calls is the job handle inside :meth:`generate_video`.
    """

    name: str
    poller: VideoPoller | None = None
    _config: ProviderConfig

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @abstractmethod
    def capabilities(self) -> ProviderCapabilities:
        """Return capability metadata."""

    @abstractmethod
    async def generate_outline(self, theme: str, genre: str, page_count: int) -> StoryOutline:
        """Return a titled outline with one image prompt and caption per page."""

    @abstractmethod
    async def generate_image(self, prompt: str, style: ArtStyle | str) -> str:
        """Return a URL or ``data:`` URL for an image rendered from ``prompt``."""

    @abstractmethod
    async def generate_speech(self, text: str) -> bytes:
        """Return mono 24kHz 16-bit PCM narration of ``text``."""

    @abstractmethod
    async def refine_prompt(self, prompt: str) -> str:
        """Return a more detailed rewrite of an image prompt."""

    @abstractmethod
    async def generate_ad_copy(self, product: str, audience: str) -> AdCopy:
        """Return ad copy plus a visual prompt for the hero image."""

    @abstractmethod
    async def generate_character(self, description: str) -> CharacterSheet:
        """Return a character sheet plus a portrait prompt."""

    @abstractmethod
    async def submit_video_job(self, prompt: str, source_image: str | None) -> VideoJob:
        """Start a long-running video job and return its handle."""

    @abstractmethod
    async def refresh_video_job(self, job: VideoJob) -> VideoJob:
        """Fetch the latest status of ``job``."""

    @abstractmethod
    async def fetch_video(self, job: VideoJob) -> str:
        """Resolve the finished job's output reference into playable media."""

    async def generate_video(
        self,
        prompt: str,
        source_image: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> str:
        """Submit a video job, poll until it completes, then fetch the result."""

        if cancel is not None:
            cancel.raise_if_cancelled()
        job = await self.submit_video_job(prompt, source_image)
        job = await self._video_poller().wait(job, self.refresh_video_job, cancel)
        if job.error:
            raise GenerationError(f"Video job {job.handle} failed: {job.error}")
        if not job.output_uri:
            raise GenerationError(f"Video job {job.handle} finished without an output reference")
        return await self.fetch_video(job)

    def _video_poller(self) -> VideoPoller:
        if self.poller is not None:
            return self.poller
        settings = self._config.settings
        return VideoPoller(
            interval_seconds=settings.video_poll_interval_seconds,
            timeout_seconds=settings.video_timeout_seconds,
        )
