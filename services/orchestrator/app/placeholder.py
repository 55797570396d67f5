"""Deterministic fallback images for pages whose generation failed."""

from __future__ import annotations

import hashlib

DEFAULT_PLACEHOLDER_BASE_URL = "https://picsum.photos/seed"


def placeholder_image_url(seed: str, *, base_url: str = DEFAULT_PLACEHOLDER_BASE_URL) -> str:
    """Return a stable 1024x1024 placeholder URL for ``seed``.

    The same seed always maps to the same URL so reruns render identically.
    """

    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:12]
    return f"{base_url.rstrip('/')}/lumina-{digest}/1024/1024"
