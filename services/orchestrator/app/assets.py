"""Append-only log of assets produced by the ad-hoc generation tools."""

from __future__ import annotations

import asyncio
import logging

from lumina_schemas import Asset

from .kv import ASSETS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class AssetLog:
    def __init__(self, store: KeyValueStore, *, limit: int | None = None) -> None:
        self._store = store
        self._limit = limit
        self._lock = asyncio.Lock()

    async def list(self) -> list[Asset]:
        payload = await self._store.get(ASSETS_KEY) or []
        return [Asset.model_validate(item) for item in payload]

    async def append(self, asset: Asset) -> Asset:
        """Record ``asset`` as the newest entry."""

        async with self._lock:
            assets = [asset, *await self.list()]
            if self._limit is not None:
                assets = assets[: self._limit]
            await self._store.set(ASSETS_KEY, [item.model_dump(mode="json") for item in assets])
        logger.info("Asset recorded", extra={"asset_id": asset.id, "asset_type": asset.type.value})
        return asset
