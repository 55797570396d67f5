"""Service wiring: one ledger, provider and store per process."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache

from lumina_providers import CancellationToken, ProviderFactory

from .assets import AssetLog
from .errors import RunAlreadyActive
from .kv import build_key_value_store
from .ledger import CreditLedger
from .pipeline import GenerationPipeline
from .settings import OrchestratorSettings, load_settings
from .store import KeyValueProjectStore, PostgresProjectStore, ProjectStore

logger = logging.getLogger(__name__)

_PIPELINE: GenerationPipeline | None = None
_PIPELINE_LOCK = asyncio.Lock()


class CancellationRegistry:
    """Tokens for in-flight runs, keyed by run id."""

    def __init__(self) -> None:
        self._tokens: dict[str, CancellationToken] = {}

    def register(self, run_id: str) -> CancellationToken:
        if run_id in self._tokens:
            raise RunAlreadyActive(run_id)
        token = CancellationToken()
        self._tokens[run_id] = token
        return token

    def cancel(self, run_id: str, reason: str = "cancelled by user") -> bool:
        token = self._tokens.get(run_id)
        if token is None:
            return False
        token.cancel(reason)
        return True

    def release(self, run_id: str) -> None:
        self._tokens.pop(run_id, None)

    def __contains__(self, run_id: str) -> bool:
        return run_id in self._tokens


@lru_cache(maxsize=1)
def get_settings() -> OrchestratorSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_cancellations() -> CancellationRegistry:
    return CancellationRegistry()


async def build_pipeline(settings: OrchestratorSettings) -> GenerationPipeline:
    kv_store = build_key_value_store(settings)
    project_store: ProjectStore
    if settings.store_backend == "postgres":
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for the postgres store backend")
        project_store = await asyncio.to_thread(
            PostgresProjectStore.from_url, settings.database_url
        )
    else:
        project_store = KeyValueProjectStore(kv_store)

    ledger = await CreditLedger.load(kv_store, initial_credits=settings.initial_credits)
    provider = ProviderFactory.create()
    logger.info(
        "Pipeline initialised",
        extra={
            "provider": provider.name,
            "store_backend": settings.store_backend,
            "balance": ledger.balance,
            "tier": ledger.tier.value,
        },
    )
    return GenerationPipeline(
        ledger,
        provider,
        project_store,
        AssetLog(kv_store),
        placeholder_base_url=settings.placeholder_base_url,
    )


async def get_pipeline() -> GenerationPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        async with _PIPELINE_LOCK:
            if _PIPELINE is None:
                _PIPELINE = await build_pipeline(get_settings())
    return _PIPELINE


def reset_pipeline() -> None:
    global _PIPELINE
    _PIPELINE = None
    get_settings.cache_clear()
