"""Error taxonomy for the generation pipeline and its collaborators."""

from __future__ import annotations

from lumina_schemas import EnrichmentKind


class StudioError(Exception):
    """Base class for every error surfaced by the orchestrator."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InsufficientCredits(StudioError):
    status_code = 402

    def __init__(self, required: int, balance: int) -> None:
        super().__init__(f"Insufficient credits: {required} required, {balance} available")
        self.required = required
        self.balance = balance


class OutlineFailure(StudioError):
    """Outline call failed or returned structurally invalid data."""

    status_code = 502


class ImageGenerationFailure(StudioError):
    """A single page image failed; the pipeline substitutes a placeholder."""

    status_code = 502

    def __init__(self, page_index: int, reason: str) -> None:
        super().__init__(f"Image generation failed for page {page_index}: {reason}")
        self.page_index = page_index


class EnrichmentFailure(StudioError):
    status_code = 502
    kind: EnrichmentKind | None = None


class RegenerateFailure(EnrichmentFailure):
    kind = EnrichmentKind.REGENERATE


class UpscaleFailure(EnrichmentFailure):
    kind = EnrichmentKind.UPSCALE


class VideoGenerationFailure(EnrichmentFailure):
    kind = EnrichmentKind.VIDEO


class AudioGenerationFailure(EnrichmentFailure):
    kind = EnrichmentKind.AUDIO


ENRICHMENT_FAILURES: dict[EnrichmentKind, type[EnrichmentFailure]] = {
    EnrichmentKind.REGENERATE: RegenerateFailure,
    EnrichmentKind.UPSCALE: UpscaleFailure,
    EnrichmentKind.VIDEO: VideoGenerationFailure,
    EnrichmentKind.AUDIO: AudioGenerationFailure,
}


class PersistenceFailure(StudioError):
    """Project store write failed; carried as a warning on the result."""

    status_code = 503


class LedgerPersistenceError(StudioError):
    """Ledger state could not be persisted; in-memory state was rolled back."""

    status_code = 503


class ProjectNotFound(StudioError):
    status_code = 404

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class PageIndexError(StudioError):
    status_code = 422

    def __init__(self, index: int, page_count: int) -> None:
        super().__init__(f"Page index {index} out of range for {page_count} page(s)")
        self.index = index
        self.page_count = page_count


class UnknownCatalogueItem(StudioError):
    status_code = 404


class AssetGenerationFailure(StudioError):
    """A lab asset could not be produced; its credits were refunded."""

    status_code = 502


class RunAlreadyActive(StudioError):
    """A run with the same client-chosen id is still in flight."""

    status_code = 409

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id} is already in progress")
        self.run_id = run_id
