"""Tests for the Gemini adapter against a fake SDK client."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import pytest

from lumina_providers import GenerationError, ProviderConfig
from lumina_providers.gemini import GeminiProvider
from lumina_schemas import ArtStyle
from tests.utils.studio import instant_poller


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


class _FakeModels:
    def __init__(self, responses: list[Any]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        return self.responses.pop(0)

    async def generate_videos(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        return self.responses.pop(0)


class _FakeOperations:
    def __init__(self, operations: list[Any]) -> None:
        self.operations = list(operations)

    async def get(self, operation: Any) -> Any:
        return self.operations.pop(0)


def _provider(responses: list[Any], operations: list[Any] | None = None) -> tuple[GeminiProvider, _FakeModels]:
    models = _FakeModels(responses)
    client = SimpleNamespace(aio=SimpleNamespace(models=models, operations=_FakeOperations(operations or [])))
    config = ProviderConfig(
        name="gemini",
        api_key="test-key",
        text_model="text-model",
        image_model="image-model",
        video_model="video-model",
        speech_model="speech-model",
    )
    provider = GeminiProvider(config, client=client)
    provider.poller = instant_poller()
    return provider, models


def _inline_response(data: Any, mime_type: str) -> Any:
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


async def test_outline_requests_json_and_parses_pages() -> None:
    payload = {
        "title": "Lanterns",
        "pages": [{"image_prompt": "fox with lantern", "caption": "The fox sets out."}],
    }
    provider, models = _provider([SimpleNamespace(text=json.dumps(payload))])

    outline = await provider.generate_outline("a fox", "Kids", 1)

    assert outline.title == "Lanterns"
    assert outline.pages[0].image_prompt == "fox with lantern"
    call = models.calls[0]
    assert call["model"] == "text-model"
    assert call["config"].response_mime_type == "application/json"
    assert "a fox" in call["contents"]


async def test_malformed_outline_is_a_generation_error() -> None:
    provider, _ = _provider([SimpleNamespace(text="not json")])
    with pytest.raises(GenerationError):
        await provider.generate_outline("a fox", "Kids", 1)


async def test_image_bytes_become_data_url() -> None:
    provider, models = _provider([_inline_response(b"\x89PNG", "image/png")])

    url = await provider.generate_image("a fox", ArtStyle.PIXEL)

    assert url == "data:image/png;base64,iVBORw=="
    assert models.calls[0]["model"] == "image-model"
    assert "8-bit Pixel Art" in models.calls[0]["contents"]


async def test_image_without_inline_data_fails() -> None:
    provider, _ = _provider([SimpleNamespace(candidates=[])])
    with pytest.raises(GenerationError):
        await provider.generate_image("a fox", ArtStyle.ANIME)


async def test_speech_returns_raw_pcm() -> None:
    provider, _ = _provider([_inline_response(b"\x00\x01\x00\x01", "audio/pcm")])
    assert await provider.generate_speech("Hello") == b"\x00\x01\x00\x01"


async def test_video_job_is_polled_and_fetched() -> None:
    pending = SimpleNamespace(name="operations/42", done=False)
    finished = SimpleNamespace(
        name="operations/42",
        done=True,
        error=None,
        response=SimpleNamespace(
            generated_videos=[SimpleNamespace(video=SimpleNamespace(uri="https://files.test/v.mp4"))]
        ),
    )
    provider, models = _provider([pending], operations=[finished])
    fetched: list[str] = []

    async def fake_fetch(job):
        fetched.append(job.output_uri)
        return "data:video/mp4;base64,AAAA"

    provider.fetch_video = fake_fetch

    result = await provider.generate_video("fox running", "data:image/png;base64,iVBORw==")

    assert result == "data:video/mp4;base64,AAAA"
    assert fetched == ["https://files.test/v.mp4"]
    call = models.calls[0]
    assert call["model"] == "video-model"
    assert call["image"].mime_type == "image/png"


async def test_failed_video_operation_raises() -> None:
    pending = SimpleNamespace(name="operations/7", done=False)
    failed = SimpleNamespace(name="operations/7", done=True, error={"message": "quota"}, response=None)
    provider, _ = _provider([pending], operations=[failed])

    with pytest.raises(GenerationError, match="quota"):
        await provider.generate_video("fox running")
