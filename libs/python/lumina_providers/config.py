"""Configuration models and helpers for provider selection."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

PROVIDER_ENV_VAR = "LUMINA_PROVIDER"
DEFAULT_PROVIDER = "gemini"

DEFAULT_MODELS: dict[str, dict[str, str]] = {
    "gemini": {
        "text_model": "gemini-3-flash-preview",
        "image_model": "gemini-2.5-flash-image",
        "video_model": "veo-3.1-fast-generate-preview",
        "speech_model": "gemini-2.5-flash-preview-tts",
    },
    "openai": {
        "text_model": "gpt-5-mini",
        "image_model": "gpt-image-1",
        "video_model": "",
        "speech_model": "gpt-4o-mini-tts",
    },
}


class ProviderSettings(BaseModel):
    """Per-call default parameters."""

    temperature: float = Field(0.8, ge=0, le=2)
    video_poll_interval_seconds: float = Field(
        10.0, ge=5, description="Delay between video job status checks"
    )
    video_timeout_seconds: float = Field(
        600.0, gt=0, description="Give up on a video job after this many seconds"
    )
    voice: str = Field("Kore", description="Prebuilt voice used for narration")
    image_aspect_ratio: str = Field("1:1")


class ProviderConfig(BaseModel):
    """Configuration for a single provider instance."""

    model_config = ConfigDict(frozen=True)

    name: str
    api_key: str
    text_model: str = ""
    image_model: str = ""
    video_model: str = ""
    speech_model: str = ""
    settings: ProviderSettings = Field(default_factory=ProviderSettings)


def load_provider_config(prefix: str | None = None) -> ProviderConfig:
    """Load configuration from environment variables.

    Args:
        prefix: Optional prefix for environment variables (default uses provider name).

    Environment variables used (assuming prefix "GEMINI"):
        GEMINI_API_KEY
        GEMINI_TEXT_MODEL / GEMINI_IMAGE_MODEL / GEMINI_VIDEO_MODEL / GEMINI_SPEECH_MODEL (optional)
        GEMINI_TEMPERATURE (optional)
        GEMINI_VIDEO_POLL_INTERVAL (optional, seconds, minimum 5)
        GEMINI_VIDEO_TIMEOUT (optional, seconds)
        GEMINI_VOICE (optional)

    Returns:
        ProviderConfig object populated from environment variables.

    Raises:
        ValidationError: If required variables are missing or invalid.
    """

    provider_name = (prefix or os.getenv(PROVIDER_ENV_VAR, DEFAULT_PROVIDER)).upper()
    env_prefix = provider_name
    defaults = DEFAULT_MODELS.get(provider_name.lower(), {})

    def read_env(key: str, default: Any | None = None) -> Any:
        value = os.getenv(f"{env_prefix}_{key}")
        if value is None or not str(value).strip():
            return default
        return value.strip()

    api_key = read_env("API_KEY", "mock" if provider_name.lower() == "mock" else None)
    if not api_key:
        raise ValidationError.from_exception_data(
            ProviderConfig.__name__,
            [
                {
                    "type": "missing",
                    "loc": ("api_key",),
                    "input": None,
                }
            ],
        )

    settings_kwargs: dict[str, Any] = {}
    for env_key, field_name in (
        ("TEMPERATURE", "temperature"),
        ("VIDEO_POLL_INTERVAL", "video_poll_interval_seconds"),
        ("VIDEO_TIMEOUT", "video_timeout_seconds"),
        ("VOICE", "voice"),
        ("IMAGE_ASPECT_RATIO", "image_aspect_ratio"),
    ):
        value = read_env(env_key)
        if value is not None:
            settings_kwargs[field_name] = value

    return ProviderConfig(
        name=provider_name.lower(),
        api_key=api_key,
        text_model=read_env("TEXT_MODEL", defaults.get("text_model", "")),
        image_model=read_env("IMAGE_MODEL", defaults.get("image_model", "")),
        video_model=read_env("VIDEO_MODEL", defaults.get("video_model", "")),
        speech_model=read_env("SPEECH_MODEL", defaults.get("speech_model", "")),
        settings=ProviderSettings(**settings_kwargs),
    )
