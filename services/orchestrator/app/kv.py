"""Key-value persistence layer backing the ledger, asset log and project store."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from redis import asyncio as redis_asyncio

from .settings import OrchestratorSettings

CREDITS_KEY = "lumina_credits"
SUBSCRIPTION_KEY = "lumina_sub"
ASSETS_KEY = "lumina_assets"
PROJECTS_KEY = "all_projects"


class KeyValueStore(ABC):
    """Whole-value JSON get/put under well known keys."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        return None


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store; values round-trip through JSON like the real backends."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisKeyValueStore(KeyValueStore):
    def __init__(self, client: redis_asyncio.Redis, *, prefix: str = "") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, *, prefix: str = "") -> "RedisKeyValueStore":
        return cls(redis_asyncio.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(self._key(key))
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        await self._client.set(self._key(key), json.dumps(value))

    async def delete(self, key: str) -> None:
        await self._client.delete(self._key(key))

    async def close(self) -> None:
        await self._client.aclose()


def build_key_value_store(settings: OrchestratorSettings) -> KeyValueStore:
    if settings.store_backend == "redis":
        return RedisKeyValueStore.from_url(settings.redis_url, prefix=settings.key_prefix)
    return InMemoryKeyValueStore()
