"""Google Gemini provider implementation."""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from lumina_schemas import ArtStyle

from .audio import decode_audio_payload
from .base import GenerationProvider, ProviderCapabilities, decode_data_url
from .config import ProviderConfig
from .exceptions import GenerationError
from .models import AdCopy, CharacterSheet, StoryOutline, parse_structured
from .polling import VideoJob
from .prompts import (
    AD_COPY_PROMPT,
    CHARACTER_PROMPT,
    IMAGE_PROMPT,
    OUTLINE_PROMPT,
    REFINE_PROMPT,
    SPEECH_PROMPT,
    VIDEO_PROMPT,
)

logger = logging.getLogger(__name__)

OUTLINE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "pages": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "image_prompt": {"type": "STRING"},
                    "caption": {"type": "STRING"},
                },
                "required": ["image_prompt", "caption"],
            },
        },
    },
    "required": ["title", "pages"],
}

AD_COPY_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "headline": {"type": "STRING"},
        "body": {"type": "STRING"},
        "call_to_action": {"type": "STRING"},
        "visual_prompt": {"type": "STRING"},
        "hashtags": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["headline", "body", "visual_prompt"],
}

CHARACTER_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING"},
        "archetype": {"type": "STRING"},
        "backstory": {"type": "STRING"},
        "traits": {"type": "ARRAY", "items": {"type": "STRING"}},
        "image_prompt": {"type": "STRING"},
    },
    "required": ["name", "backstory", "image_prompt"],
}


def _first_inline_data(response: Any) -> Any | None:
    """Return the first inline media part of a ``generate_content`` response."""

    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                return inline
    return None


class GeminiProvider(GenerationProvider):
    name = "gemini"

    def __init__(self, config: ProviderConfig, client: Any | None = None) -> None:
        self._config = config
        self._client = client or genai.Client(api_key=config.api_key)

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_video=bool(self._config.video_model),
            supports_speech=True,
            supports_image_input=True,
        )

    async def _generate_text(self, prompt: str, *, schema: Dict[str, Any] | None = None) -> str:
        config_kwargs: Dict[str, Any] = {"temperature": self._config.settings.temperature}
        if schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = schema
        try:
            response = await self._client.aio.models.generate_content(
                model=self._config.text_model,
                contents=prompt,
                config=types.GenerateContentConfig(**config_kwargs),
            )
        except genai_errors.APIError as err:
            raise GenerationError(f"Gemini text call failed: {err}") from err
        return getattr(response, "text", None) or ""

    async def generate_outline(self, theme: str, genre: str, page_count: int) -> StoryOutline:
        text = await self._generate_text(
            OUTLINE_PROMPT.format(genre=genre, page_count=page_count, theme=theme),
            schema=OUTLINE_SCHEMA,
        )
        return parse_structured(text, StoryOutline, label="Outline")

    async def generate_image(self, prompt: str, style: ArtStyle | str) -> str:
        style_label = style.value if isinstance(style, ArtStyle) else style
        try:
            response = await self._client.aio.models.generate_content(
                model=self._config.image_model,
                contents=IMAGE_PROMPT.format(style=style_label, prompt=prompt),
                config=types.GenerateContentConfig(
                    image_config=types.ImageConfig(
                        aspect_ratio=self._config.settings.image_aspect_ratio
                    ),
                ),
            )
        except genai_errors.APIError as err:
            raise GenerationError(f"Gemini image call failed: {err}") from err

        inline = _first_inline_data(response)
        if inline is None:
            raise GenerationError("Gemini returned no image data")
        data = inline.data
        if isinstance(data, bytes):
            data = base64.b64encode(data).decode("ascii")
        mime_type = getattr(inline, "mime_type", None) or "image/png"
        return f"data:{mime_type};base64,{data}"

    async def generate_speech(self, text: str) -> bytes:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._config.speech_model,
                contents=SPEECH_PROMPT.format(text=text),
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(
                                voice_name=self._config.settings.voice,
                            )
                        )
                    ),
                ),
            )
        except genai_errors.APIError as err:
            raise GenerationError(f"Gemini speech call failed: {err}") from err

        inline = _first_inline_data(response)
        if inline is None:
            raise GenerationError("Gemini returned no audio data")
        if isinstance(inline.data, str):
            return decode_audio_payload(inline.data)
        return bytes(inline.data)

    async def refine_prompt(self, prompt: str) -> str:
        text = await self._generate_text(REFINE_PROMPT.format(prompt=prompt))
        return text.strip()

    async def generate_ad_copy(self, product: str, audience: str) -> AdCopy:
        text = await self._generate_text(
            AD_COPY_PROMPT.format(product=product, audience=audience),
            schema=AD_COPY_SCHEMA,
        )
        return parse_structured(text, AdCopy, label="Ad copy")

    async def generate_character(self, description: str) -> CharacterSheet:
        text = await self._generate_text(
            CHARACTER_PROMPT.format(description=description),
            schema=CHARACTER_SCHEMA,
        )
        return parse_structured(text, CharacterSheet, label="Character")

    async def submit_video_job(self, prompt: str, source_image: str | None) -> VideoJob:
        if not self._config.video_model:
            raise GenerationError("No video model configured for Gemini")

        kwargs: Dict[str, Any] = {
            "model": self._config.video_model,
            "prompt": VIDEO_PROMPT.format(style="Veo Cinematic", prompt=prompt),
            "config": types.GenerateVideosConfig(number_of_videos=1, aspect_ratio="16:9"),
        }
        media = decode_data_url(source_image)
        if media is not None:
            kwargs["image"] = types.Image(image_bytes=media.data, mime_type=media.mime_type)

        try:
            operation = await self._client.aio.models.generate_videos(**kwargs)
        except genai_errors.APIError as err:
            raise GenerationError(f"Gemini video submission failed: {err}") from err
        logger.info("Submitted video job", extra={"job_handle": getattr(operation, "name", "")})
        return self._job_from_operation(VideoJob(handle=getattr(operation, "name", "") or ""), operation)

    async def refresh_video_job(self, job: VideoJob) -> VideoJob:
        try:
            operation = await self._client.aio.operations.get(job.raw)
        except genai_errors.APIError as err:
            raise GenerationError(f"Gemini video status check failed: {err}") from err
        return self._job_from_operation(job, operation)

    @staticmethod
    def _job_from_operation(job: VideoJob, operation: Any) -> VideoJob:
        job.raw = operation
        job.done = bool(getattr(operation, "done", False))
        if not job.done:
            return job
        error = getattr(operation, "error", None)
        if error:
            job.error = str(error.get("message", error)) if isinstance(error, dict) else str(error)
            return job
        response = getattr(operation, "response", None)
        videos = getattr(response, "generated_videos", None) or []
        if videos:
            video = getattr(videos[0], "video", None)
            job.output_uri = getattr(video, "uri", None)
        return job

    async def fetch_video(self, job: VideoJob) -> str:
        try:
            async with httpx.AsyncClient(timeout=120.0, follow_redirects=True) as client:
                response = await client.get(job.output_uri or "", params={"key": self._config.api_key})
                response.raise_for_status()
        except httpx.HTTPError as err:
            raise GenerationError(f"Failed to download video for job {job.handle}") from err
        content_type = response.headers.get("content-type", "video/mp4").split(";")[0]
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{content_type};base64,{encoded}"
