"""Generation gateway: one provider abstraction over Gemini and OpenAI."""

from .base import GenerationProvider, ProviderCapabilities, decode_data_url
from .config import ProviderConfig, ProviderSettings, load_provider_config
from .exceptions import (
    GenerationCancelled,
    GenerationError,
    GenerationTimeout,
    ProviderConfigError,
    ProviderError,
)
from .factory import ProviderFactory
from .mock import MockProvider
from .models import AdCopy, CharacterSheet, OutlinePage, StoryOutline
from .polling import CancellationToken, VideoJob, VideoPoller

__all__ = [
    "AdCopy",
    "CancellationToken",
    "CharacterSheet",
    "GenerationCancelled",
    "GenerationError",
    "GenerationProvider",
    "GenerationTimeout",
    "MockProvider",
    "OutlinePage",
    "ProviderCapabilities",
    "ProviderConfig",
    "ProviderConfigError",
    "ProviderError",
    "ProviderFactory",
    "ProviderSettings",
    "StoryOutline",
    "VideoJob",
    "VideoPoller",
    "decode_data_url",
    "load_provider_config",
]
