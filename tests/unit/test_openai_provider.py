"""Tests for the OpenAI adapter against a fake SDK client."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import pytest

from lumina_providers import GenerationError, ProviderConfig
from lumina_providers.openai import OpenAIProvider
from lumina_schemas import ArtStyle


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


class _Recorder:
    def __init__(self, result: Any) -> None:
        self.result = result
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        return self.result

    async def generate(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        return self.result


def _provider(*, chat: Any = None, images: Any = None, speech: Any = None) -> OpenAIProvider:
    client = SimpleNamespace(
        chat=SimpleNamespace(completions=chat),
        images=images,
        audio=SimpleNamespace(speech=speech),
    )
    config = ProviderConfig(
        name="openai",
        api_key="test-key",
        text_model="text-model",
        image_model="image-model",
        speech_model="speech-model",
    )
    return OpenAIProvider(config, client=client)


def _chat_result(content: str) -> Any:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


async def test_ad_copy_uses_strict_json_schema() -> None:
    payload = {
        "headline": "Meet Glow",
        "body": "Light for night owls.",
        "call_to_action": "Buy",
        "visual_prompt": "lamp on a desk",
        "hashtags": ["#glow"],
    }
    chat = _Recorder(_chat_result(json.dumps(payload)))

    copy = await _provider(chat=chat).generate_ad_copy("Glow", "night owls")

    assert copy.headline == "Meet Glow"
    response_format = chat.calls[0]["response_format"]
    assert response_format["json_schema"]["name"] == "ad_copy"
    assert response_format["json_schema"]["strict"] is True


async def test_image_prefers_inline_base64() -> None:
    images = _Recorder(SimpleNamespace(data=[SimpleNamespace(b64_json="AAAA", url=None)]))

    url = await _provider(images=images).generate_image("a fox", ArtStyle.COMIC)

    assert url == "data:image/png;base64,AAAA"
    assert "Comic Book" in images.calls[0]["prompt"]


async def test_speech_requests_pcm() -> None:
    speech = _Recorder(SimpleNamespace(content=b"\x00\x00"))

    audio = await _provider(speech=speech).generate_speech("hello")

    assert audio == b"\x00\x00"
    assert speech.calls[0]["response_format"] == "pcm"
    assert speech.calls[0]["voice"] == "kore"


async def test_video_is_not_supported() -> None:
    provider = _provider()
    assert provider.capabilities().supports_video is False
    with pytest.raises(GenerationError):
        await provider.generate_video("a fox running")
