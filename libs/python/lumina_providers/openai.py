"""OpenAI provider implementation."""

from __future__ import annotations

from typing import Any, Dict, List

from openai import AsyncOpenAI, OpenAIError

from lumina_schemas import ArtStyle

from .base import GenerationProvider, ProviderCapabilities
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
)

_STRING = {"type": "string"}
_STRING_LIST = {"type": "array", "items": _STRING}

OUTLINE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": _STRING,
        "pages": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"image_prompt": _STRING, "caption": _STRING},
                "required": ["image_prompt", "caption"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["title", "pages"],
    "additionalProperties": False,
}

AD_COPY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "headline": _STRING,
        "body": _STRING,
        "call_to_action": _STRING,
        "visual_prompt": _STRING,
        "hashtags": _STRING_LIST,
    },
    "required": ["headline", "body", "call_to_action", "visual_prompt", "hashtags"],
    "additionalProperties": False,
}

CHARACTER_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": _STRING,
        "archetype": _STRING,
        "backstory": _STRING,
        "traits": _STRING_LIST,
        "image_prompt": _STRING,
    },
    "required": ["name", "archetype", "backstory", "traits", "image_prompt"],
    "additionalProperties": False,
}


class OpenAIProvider(GenerationProvider):
    name = "openai"

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None) -> None:
        self._config = config
        self._client = client or AsyncOpenAI(api_key=config.api_key)

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_video=False,
            supports_speech=True,
            supports_image_input=False,
        )

    async def _complete(
        self,
        prompt: str,
        *,
        schema: Dict[str, Any] | None = None,
        schema_name: str = "structured",
    ) -> str:
        messages: List[Dict[str, Any]] = [{"role": "user", "content": prompt}]
        params: Dict[str, Any] = {
            "model": self._config.text_model,
            "messages": messages,
            "temperature": self._config.settings.temperature,
        }
        if schema is not None:
            params["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": True},
            }

        try:
            response = await self._client.chat.completions.create(**params)
        except OpenAIError as err:
            raise GenerationError(f"OpenAI text call failed: {err}") from err

        try:
            return response.choices[0].message.content or ""
        except (IndexError, AttributeError) as err:
            raise GenerationError("OpenAI response missing content") from err

    async def generate_outline(self, theme: str, genre: str, page_count: int) -> StoryOutline:
        text = await self._complete(
            OUTLINE_PROMPT.format(genre=genre, page_count=page_count, theme=theme),
            schema=OUTLINE_SCHEMA,
            schema_name="story_outline",
        )
        return parse_structured(text, StoryOutline, label="Outline")

    async def generate_image(self, prompt: str, style: ArtStyle | str) -> str:
        style_label = style.value if isinstance(style, ArtStyle) else style
        try:
            response = await self._client.images.generate(
                model=self._config.image_model,
                prompt=IMAGE_PROMPT.format(style=style_label, prompt=prompt),
                size="1024x1024",
                n=1,
            )
        except OpenAIError as err:
            raise GenerationError(f"OpenAI image call failed: {err}") from err

        data = getattr(response, "data", None) or []
        if not data:
            raise GenerationError("OpenAI returned no image data")
        image = data[0]
        if getattr(image, "b64_json", None):
            return f"data:image/png;base64,{image.b64_json}"
        if getattr(image, "url", None):
            return image.url
        raise GenerationError("OpenAI returned no image data")

    async def generate_speech(self, text: str) -> bytes:
        try:
            response = await self._client.audio.speech.create(
                model=self._config.speech_model,
                voice=self._config.settings.voice.lower(),
                input=text,
                response_format="pcm",
            )
        except OpenAIError as err:
            raise GenerationError(f"OpenAI speech call failed: {err}") from err

        # The "pcm" format is already 24kHz mono 16-bit little endian.
        audio = response.content
        if not audio:
            raise GenerationError("OpenAI returned no audio data")
        return audio

    async def refine_prompt(self, prompt: str) -> str:
        text = await self._complete(REFINE_PROMPT.format(prompt=prompt))
        return text.strip()

    async def generate_ad_copy(self, product: str, audience: str) -> AdCopy:
        text = await self._complete(
            AD_COPY_PROMPT.format(product=product, audience=audience),
            schema=AD_COPY_SCHEMA,
            schema_name="ad_copy",
        )
        return parse_structured(text, AdCopy, label="Ad copy")

    async def generate_character(self, description: str) -> CharacterSheet:
        text = await self._complete(
            CHARACTER_PROMPT.format(description=description),
            schema=CHARACTER_SCHEMA,
            schema_name="character_sheet",
        )
        return parse_structured(text, CharacterSheet, label="Character")

    async def submit_video_job(self, prompt: str, source_image: str | None) -> VideoJob:
        raise GenerationError("The OpenAI provider does not support video generation")

    async def refresh_video_job(self, job: VideoJob) -> VideoJob:
        raise GenerationError("The OpenAI provider does not support video generation")

    async def fetch_video(self, job: VideoJob) -> str:
        raise GenerationError("The OpenAI provider does not support video generation")
