"""Environment driven settings for the orchestrator service."""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field

StoreBackend = Literal["memory", "redis", "postgres"]


class OrchestratorSettings(BaseModel):
    store_backend: StoreBackend = "memory"
    redis_url: str = "redis://localhost:6379/0"
    database_url: str | None = None
    initial_credits: int = Field(1000, ge=0)
    placeholder_base_url: str = "https://picsum.photos/seed"
    key_prefix: str = ""


def load_settings() -> OrchestratorSettings:
    """Read ``LUMINA_*`` variables, falling back to the model defaults."""

    values: dict[str, object] = {}
    for env_key, field_name in (
        ("LUMINA_STORE_BACKEND", "store_backend"),
        ("REDIS_URL", "redis_url"),
        ("DATABASE_URL", "database_url"),
        ("LUMINA_INITIAL_CREDITS", "initial_credits"),
        ("LUMINA_PLACEHOLDER_BASE_URL", "placeholder_base_url"),
        ("LUMINA_KEY_PREFIX", "key_prefix"),
    ):
        value = os.getenv(env_key)
        if value is not None and value.strip():
            values[field_name] = value.strip()
    return OrchestratorSettings(**values)
