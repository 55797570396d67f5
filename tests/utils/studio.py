"""Builders and provider doubles shared by the pipeline tests."""

from __future__ import annotations

from typing import Any, Iterable

from lumina_providers import GenerationError, MockProvider, StoryOutline, VideoPoller
from lumina_schemas import ArtStyle, ProjectGenre, Project, StoryPage, SubscriptionTier

from services.orchestrator.app.assets import AssetLog
from services.orchestrator.app.kv import InMemoryKeyValueStore
from services.orchestrator.app.ledger import CreditLedger
from services.orchestrator.app.pipeline import GenerationPipeline
from services.orchestrator.app.store import KeyValueProjectStore


async def _no_sleep(_: float) -> None:
    return None


def instant_poller(timeout_seconds: float = 60.0) -> VideoPoller:
    return VideoPoller(interval_seconds=1.0, timeout_seconds=timeout_seconds, sleep=_no_sleep)


class FailingKeyValueStore(InMemoryKeyValueStore):
    """In-memory store whose writes to selected keys always fail."""

    def __init__(self, fail_keys: Iterable[str]) -> None:
        super().__init__()
        self.fail_keys = set(fail_keys)

    async def set(self, key: str, value: Any) -> None:
        if key in self.fail_keys:
            raise RuntimeError(f"write to {key} refused")
        await super().set(key, value)


class RecordingProvider(MockProvider):
    """Mock provider that records calls and can fail selected image requests."""

    def __init__(self, *, failing_pages: Iterable[int] = (), outline: StoryOutline | None = None) -> None:
        super().__init__()
        self.poller = instant_poller()
        self.failing_pages = set(failing_pages)
        self.outline = outline
        self.calls: list[str] = []
        self._image_calls = 0

    async def generate_outline(self, theme: str, genre: str, page_count: int) -> StoryOutline:
        self.calls.append("outline")
        if self.outline is not None:
            return self.outline
        return await super().generate_outline(theme, genre, page_count)

    async def generate_image(self, prompt: str, style: ArtStyle | str) -> str:
        index = self._image_calls
        self._image_calls += 1
        self.calls.append("image")
        if index in self.failing_pages:
            raise GenerationError(f"image {index} rejected")
        return f"https://images.test/{index}.png"

    async def generate_speech(self, text: str) -> bytes:
        self.calls.append("speech")
        return await super().generate_speech(text)


def make_pipeline(
    provider: MockProvider | None = None,
    *,
    balance: int = 1000,
    tier: SubscriptionTier = SubscriptionTier.FREE,
    project_kv: InMemoryKeyValueStore | None = None,
) -> GenerationPipeline:
    ledger_kv = InMemoryKeyValueStore()
    ledger = CreditLedger(ledger_kv, balance=balance, tier=tier)
    store = KeyValueProjectStore(project_kv or InMemoryKeyValueStore())
    return GenerationPipeline(
        ledger,
        provider or RecordingProvider(),
        store,
        AssetLog(ledger_kv),
        placeholder_base_url="https://placeholder.test",
    )


def sample_project(page_count: int = 3) -> Project:
    return Project(
        title="The Lantern Fox",
        genre=ProjectGenre.KIDS,
        style=ArtStyle.WATERCOLOR,
        pages=[
            StoryPage(
                image_prompt=f"A fox carrying a lantern, scene {index + 1}",
                image_url=f"https://images.test/original-{index}.png",
                caption=f"Page {index + 1} of the fox's walk.",
            )
            for index in range(page_count)
        ],
    )
