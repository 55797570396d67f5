"""Custom exceptions used by provider adapters."""

from __future__ import annotations


class ProviderError(RuntimeError):
    """Base error raised for provider failures."""


class ProviderConfigError(ProviderError):
    """Raised when configuration is missing or invalid."""


class GenerationError(ProviderError):
    """Raised when a provider call fails or returns an unusable response."""


class GenerationTimeout(GenerationError):
    """Raised when a long-running job does not finish within its deadline."""


class GenerationCancelled(GenerationError):
    """Raised when a cancellation token fires at a suspension point."""
