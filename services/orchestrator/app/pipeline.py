"""Credit-gated generation pipeline and per-page enrichment operations."""

from __future__ import annotations

import inspect
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Awaitable, Callable, Iterator, Optional
from uuid import uuid4

from lumina_observability import log_context, observe_provider_call, observe_stage_duration
from lumina_providers import (
    CancellationToken,
    GenerationCancelled,
    GenerationError,
    GenerationProvider,
    GenerationTimeout,
    OutlinePage,
    StoryOutline,
)
from lumina_providers.audio import encode_audio_payload
from lumina_providers.pricing import credit_cost
from lumina_schemas import (
    ArtStyle,
    Asset,
    AssetType,
    EnrichmentKind,
    GenerationKind,
    PipelineState,
    Project,
    ProjectGenre,
    ProjectType,
    StoryPage,
)
from lumina_schemas.models.project import new_id, utcnow

from .assets import AssetLog
from .errors import (
    ENRICHMENT_FAILURES,
    AssetGenerationFailure,
    ImageGenerationFailure,
    InsufficientCredits,
    OutlineFailure,
    PageIndexError,
)
from .ledger import CreditLedger, Reservation
from .models import (
    AdBrief,
    CharacterBrief,
    EnrichmentRequest,
    LabAssetRequest,
    PipelineResult,
    StoryBrief,
)
from .placeholder import DEFAULT_PLACEHOLDER_BASE_URL, placeholder_image_url
from .store import ProjectStore

logger = logging.getLogger(__name__)
SERVICE_NAME = "orchestrator"


@dataclass(frozen=True)
class ProgressEvent:
    state: PipelineState
    message: str
    page_index: Optional[int] = None
    page_count: Optional[int] = None


ProgressCallback = Callable[[ProgressEvent], Optional[Awaitable[None]]]


@dataclass
class _Plan:
    """Text-stage output shared by every templated generation."""

    title: str
    pages: list[OutlinePage]
    copy_text: Optional[dict] = None


PlanBuilder = Callable[[], Awaitable[_Plan]]


class GenerationPipeline:
    """Turns briefs into persisted projects, charging the ledger up front.

    Credits are reserved once before any remote call and refunded in full
    whenever the requested artifact is not produced.
    """

    def __init__(
        self,
        ledger: CreditLedger,
        provider: GenerationProvider,
        store: ProjectStore,
        assets: AssetLog,
        *,
        placeholder_base_url: str = DEFAULT_PLACEHOLDER_BASE_URL,
    ) -> None:
        self.ledger = ledger
        self.provider = provider
        self.store = store
        self.assets = assets
        self.placeholder_base_url = placeholder_base_url

    async def dispatch(
        self,
        request: StoryBrief | AdBrief | CharacterBrief | EnrichmentRequest,
        *,
        cancel: CancellationToken | None = None,
        progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Single entry point for every generation variant."""

        if isinstance(request, StoryBrief):
            return await self.run_story(request, cancel=cancel, progress=progress)
        if isinstance(request, AdBrief):
            return await self.run_ad(request, cancel=cancel, progress=progress)
        if isinstance(request, CharacterBrief):
            return await self.run_character(request, cancel=cancel, progress=progress)
        if isinstance(request, EnrichmentRequest):
            return await self.enrich(
                request.project_id, request.page_index, request.operation, cancel=cancel
            )
        raise TypeError(f"Unsupported generation request: {type(request).__name__}")

    # ------------------------------------------------------------------
    # Templated project generation

    async def run_story(
        self,
        brief: StoryBrief,
        *,
        cancel: CancellationToken | None = None,
        progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        async def build_plan() -> _Plan:
            outline = await self._call(
                "outline",
                self.provider.generate_outline,
                brief.theme,
                brief.genre.value,
                brief.page_count,
            )
            pages = _validate_outline(outline, brief.page_count)
            return _Plan(title=outline.title, pages=pages)

        return await self._execute(
            kind=GenerationKind.STORY,
            cost=credit_cost(GenerationKind.STORY, brief.page_count),
            title_fallback=brief.theme,
            genre=brief.genre,
            style=brief.style,
            project_type=ProjectType.STORY,
            build_plan=build_plan,
            cancel=cancel,
            progress=progress,
        )

    async def run_ad(
        self,
        brief: AdBrief,
        *,
        cancel: CancellationToken | None = None,
        progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        async def build_plan() -> _Plan:
            copy = await self._call(
                "ad_copy", self.provider.generate_ad_copy, brief.product, brief.audience
            )
            caption = " ".join(
                part for part in (copy.body, copy.call_to_action, " ".join(copy.hashtags)) if part
            )
            page = OutlinePage(image_prompt=copy.visual_prompt, caption=caption)
            return _Plan(
                title=copy.headline,
                pages=[page],
                copy_text=copy.model_dump(mode="json"),
            )

        return await self._execute(
            kind=GenerationKind.AD,
            cost=credit_cost(GenerationKind.AD),
            title_fallback=brief.product,
            genre=ProjectGenre.MARKETING,
            style=brief.style,
            project_type=ProjectType.AD,
            build_plan=build_plan,
            cancel=cancel,
            progress=progress,
            log_assets=True,
        )

    async def run_character(
        self,
        brief: CharacterBrief,
        *,
        cancel: CancellationToken | None = None,
        progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        async def build_plan() -> _Plan:
            sheet = await self._call(
                "character", self.provider.generate_character, brief.description
            )
            page = OutlinePage(image_prompt=sheet.image_prompt, caption=sheet.backstory)
            return _Plan(title=sheet.name, pages=[page], copy_text=sheet.model_dump(mode="json"))

        return await self._execute(
            kind=GenerationKind.CHARACTER,
            cost=credit_cost(GenerationKind.CHARACTER),
            title_fallback=brief.description,
            genre=brief.genre,
            style=brief.style,
            project_type=ProjectType.CHARACTER,
            build_plan=build_plan,
            cancel=cancel,
            progress=progress,
            log_assets=True,
        )

    async def _execute(
        self,
        *,
        kind: GenerationKind,
        cost: int,
        title_fallback: str,
        genre: ProjectGenre,
        style: ArtStyle,
        project_type: ProjectType,
        build_plan: PlanBuilder,
        cancel: CancellationToken | None,
        progress: ProgressCallback | None,
        log_assets: bool = False,
    ) -> PipelineResult:
        run_id = uuid4().hex
        with log_context(run_id=run_id, kind=kind.value, provider=self.provider.name):
            logger.info("Starting generation run", extra={"credits": cost})

            with self._stage(PipelineState.COST_CHECK):
                await _notify(progress, ProgressEvent(PipelineState.COST_CHECK, "Checking credits"))
                reservation = await self._reserve(kind, cost)

            try:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                with self._stage(PipelineState.OUTLINE_GENERATION):
                    await _notify(
                        progress,
                        ProgressEvent(PipelineState.OUTLINE_GENERATION, "Writing the outline"),
                    )
                    try:
                        plan = await build_plan()
                    except (OutlineFailure, GenerationCancelled):
                        raise
                    except Exception as exc:
                        raise OutlineFailure(f"Outline generation failed: {exc}") from exc

                with self._stage(PipelineState.PAGE_IMAGE_GENERATION):
                    pages, placeholders = await self._render_pages(plan.pages, style, cancel, progress)
            except BaseException as exc:
                # Task cancellation is a BaseException and must refund too.
                logger.warning(
                    "Generation run aborted",
                    extra={"reason": type(exc).__name__, "state": PipelineState.ABORTED.value},
                )
                await self._refund(reservation)
                raise

            with self._stage(PipelineState.ASSEMBLY):
                await _notify(progress, ProgressEvent(PipelineState.ASSEMBLY, "Assembling the project"))
                now = utcnow()
                project = Project(
                    id=new_id(),
                    title=(plan.title.strip() or title_fallback.strip())[:300],
                    genre=genre,
                    style=style,
                    type=project_type,
                    pages=pages,
                    created_at=now,
                    updated_at=now,
                )

            result = PipelineResult(
                project=project,
                state=PipelineState.ASSEMBLY,
                credits_charged=reservation.amount if reservation.charged else 0,
                placeholder_pages=placeholders,
                copy_text=plan.copy_text,
            )
            if placeholders:
                result.warnings.append(
                    f"{len(placeholders)} page(s) use a placeholder image after generation failed"
                )

            with log_context(project_id=project.id):
                await self._persist(result)
                if log_assets:
                    await self._log_page_assets(project, placeholders)
                logger.info(
                    "Generation run finished",
                    extra={
                        "page_count": len(project.pages),
                        "placeholder_count": len(placeholders),
                        "save_failed": result.save_failed,
                    },
                )
        return result

    async def _render_pages(
        self,
        outline_pages: list[OutlinePage],
        style: ArtStyle,
        cancel: CancellationToken | None,
        progress: ProgressCallback | None,
    ) -> tuple[list[StoryPage], list[int]]:
        pages: list[StoryPage] = []
        placeholders: list[int] = []
        total = len(outline_pages)
        # Strictly sequential so progress is reported in page order.
        for index, outline_page in enumerate(outline_pages):
            if cancel is not None:
                cancel.raise_if_cancelled()
            await _notify(
                progress,
                ProgressEvent(
                    PipelineState.PAGE_IMAGE_GENERATION,
                    f"Painting frame {index + 1} of {total}",
                    page_index=index,
                    page_count=total,
                ),
            )
            try:
                image_url = await self._call(
                    "image", self.provider.generate_image, outline_page.image_prompt, style
                )
                if not image_url:
                    raise GenerationError("Provider returned an empty image reference")
            except GenerationCancelled:
                raise
            except Exception as exc:
                failure = ImageGenerationFailure(index, str(exc))
                logger.warning(failure.message, extra={"page_index": index})
                image_url = self.placeholder_for(outline_page.image_prompt, index)
                placeholders.append(index)
            pages.append(
                StoryPage(
                    image_prompt=outline_page.image_prompt,
                    caption=outline_page.caption,
                    image_url=image_url,
                )
            )
        return pages, placeholders

    def placeholder_for(self, image_prompt: str, page_index: int) -> str:
        return placeholder_image_url(f"{page_index}:{image_prompt}", base_url=self.placeholder_base_url)

    async def _persist(self, result: PipelineResult) -> None:
        with self._stage(PipelineState.PERSISTED):
            try:
                await self.store.create(result.project)
            except Exception as exc:
                result.save_failed = True
                result.warnings.append(f"Project could not be saved: {exc}")
                logger.warning("Project persistence failed; returning unsaved project", exc_info=True)
                return
        result.state = PipelineState.PERSISTED

    async def _log_page_assets(self, project: Project, placeholders: list[int]) -> None:
        for index, page in enumerate(project.pages):
            if index in placeholders:
                continue
            asset = Asset(type=AssetType.IMAGE, url=page.image_url, prompt=page.image_prompt)
            try:
                await self.assets.append(asset)
            except Exception:
                logger.warning("Could not record generated asset", exc_info=True)

    # ------------------------------------------------------------------
    # Per-page operations on persisted projects

    async def enrich(
        self,
        project_id: str,
        page_index: int,
        operation: EnrichmentKind | str,
        *,
        cancel: CancellationToken | None = None,
    ) -> PipelineResult:
        """Apply one costed enrichment to a page in place.

        On failure the page is left untouched, the debit is refunded and a
        kind-specific :class:`EnrichmentFailure` is raised. Timeouts and
        cancellations keep their own exception types.
        """

        operation = EnrichmentKind(operation)
        kind = GenerationKind(operation.value)
        with log_context(project_id=project_id, kind=kind.value, page_index=page_index):
            project = await self.store.get(project_id)
            page = _page_at(project, page_index)
            cost = credit_cost(kind)
            reservation = await self._reserve(kind, cost)

            stage_start = perf_counter()
            outcome = "success"
            try:
                changes = await self._enrichment_changes(operation, page, project.style, cancel)
            except BaseException as exc:
                outcome = "error"
                await self._refund(reservation)
                if not isinstance(exc, Exception) or isinstance(
                    exc, (GenerationCancelled, GenerationTimeout)
                ):
                    logger.warning("Enrichment stopped", extra={"reason": type(exc).__name__})
                    raise
                failure_cls = ENRICHMENT_FAILURES[operation]
                logger.warning("Enrichment failed", extra={"reason": str(exc)})
                raise failure_cls(f"{operation.value.capitalize()} failed for page {page_index}: {exc}") from exc
            finally:
                observe_stage_duration(
                    stage=f"enrich_{operation.value}",
                    duration_seconds=perf_counter() - stage_start,
                    service_name=SERVICE_NAME,
                    status=outcome,
                )

            result = PipelineResult(
                project=_apply_page_changes(project, page_index, changes),
                state=PipelineState.ASSEMBLY,
                credits_charged=reservation.amount if reservation.charged else 0,
            )
            await self._save_page_changes(result, page_index, changes)
            logger.info("Enrichment applied", extra={"fields": sorted(changes)})
        return result

    async def _enrichment_changes(
        self,
        operation: EnrichmentKind,
        page: StoryPage,
        style: ArtStyle,
        cancel: CancellationToken | None,
    ) -> dict[str, Any]:
        if operation == EnrichmentKind.REGENERATE:
            url = await self._call("image", self.provider.generate_image, page.image_prompt, style)
            if not url:
                raise GenerationError("Provider returned an empty image reference")
            return {"image_url": url}

        if operation == EnrichmentKind.UPSCALE:
            refined = await self._call("refine", self.provider.refine_prompt, page.image_prompt)
            prompt = (refined or "").strip() or page.image_prompt
            url = await self._call("image", self.provider.generate_image, prompt, style)
            if not url:
                raise GenerationError("Provider returned an empty image reference")
            return {"image_prompt": prompt, "image_url": url}

        if operation == EnrichmentKind.VIDEO:
            video_url = await self._call(
                "video",
                self.provider.generate_video,
                page.image_prompt,
                page.image_url,
                cancel,
            )
            return {"video_url": video_url}

        if operation == EnrichmentKind.AUDIO:
            pcm = await self._call("speech", self.provider.generate_speech, page.caption or page.image_prompt)
            if not pcm:
                raise GenerationError("Provider returned no audio payload")
            return {"audio_url": encode_audio_payload(pcm)}

        raise ValueError(f"Unsupported enrichment: {operation}")

    async def update_page(
        self,
        project_id: str,
        page_index: int,
        *,
        caption: str | None = None,
        image_prompt: str | None = None,
    ) -> Project:
        """Edit caption and/or prompt of one page without touching the others."""

        with log_context(project_id=project_id, page_index=page_index):
            project = await self.store.get(project_id)
            _page_at(project, page_index)
            changes: dict[str, Any] = {}
            if caption is not None:
                changes["caption"] = caption
            if image_prompt is not None:
                if not image_prompt.strip():
                    raise ValueError("image_prompt cannot be empty")
                changes["image_prompt"] = image_prompt
            if not changes:
                return project
            updated = await self.store.modify(
                project_id, lambda fresh: _apply_page_changes(fresh, page_index, changes)
            )
            logger.info("Page edited", extra={"fields": sorted(changes)})
        return updated

    async def publish(
        self, project_id: str, *, is_published: bool, price: float | None = None
    ) -> Project:
        """List or unlist a project; unlisting keeps the last price."""

        if price is not None and price < 0:
            raise ValueError("price cannot be negative")

        def apply(project: Project) -> Project:
            update: dict[str, Any] = {"is_published": is_published, "updated_at": utcnow()}
            if price is not None:
                update["price"] = price
            return project.model_copy(update=update)

        with log_context(project_id=project_id):
            project = await self.store.modify(project_id, apply)
            logger.info("Publication changed", extra={"is_published": is_published, "price": project.price})
        return project

    async def _save_page_changes(
        self, result: PipelineResult, page_index: int, changes: dict[str, Any]
    ) -> None:
        # Re-applied to the stored copy so edits made during the remote call survive.
        try:
            result.project = await self.store.modify(
                result.project.id, lambda fresh: _apply_page_changes(fresh, page_index, changes)
            )
        except Exception as exc:
            result.save_failed = True
            result.warnings.append(f"Project could not be saved: {exc}")
            logger.warning("Project update failed; returning unsaved project", exc_info=True)
            return
        result.state = PipelineState.PERSISTED

    # ------------------------------------------------------------------
    # Lab tools

    async def generate_lab_asset(
        self, request: LabAssetRequest, *, cancel: CancellationToken | None = None
    ) -> Asset:
        kind = GenerationKind.LAB_VIDEO if request.type == AssetType.VIDEO else GenerationKind.LAB_IMAGE
        with log_context(kind=kind.value, provider=self.provider.name):
            reservation = await self._reserve(kind, credit_cost(kind))
            try:
                if request.type == AssetType.VIDEO:
                    url = await self._call(
                        "video",
                        self.provider.generate_video,
                        request.prompt,
                        request.source_image,
                        cancel,
                    )
                else:
                    url = await self._call(
                        "image", self.provider.generate_image, request.prompt, request.style
                    )
                if not url:
                    raise GenerationError("Provider returned an empty media reference")
            except BaseException as exc:
                await self._refund(reservation)
                if not isinstance(exc, Exception) or isinstance(
                    exc, (GenerationCancelled, GenerationTimeout)
                ):
                    raise
                logger.warning("Lab asset generation failed", extra={"reason": str(exc)})
                raise AssetGenerationFailure(f"Could not generate {request.type.value}: {exc}") from exc

            asset = Asset(type=request.type, url=url, prompt=request.prompt)
            try:
                await self.assets.append(asset)
            except Exception:
                logger.warning("Could not record lab asset", exc_info=True)
        return asset

    async def refine_prompt(self, prompt: str) -> str:
        refined = await self._call("refine", self.provider.refine_prompt, prompt)
        return (refined or "").strip() or prompt

    # ------------------------------------------------------------------
    # Helpers

    async def _reserve(self, kind: GenerationKind, cost: int) -> Reservation:
        reservation = await self.ledger.reserve(cost, kind=kind.value)
        if reservation is None:
            logger.info(
                "Generation rejected for insufficient credits",
                extra={"credits": cost, "balance": self.ledger.balance},
            )
            raise InsufficientCredits(required=cost, balance=self.ledger.balance)
        return reservation

    async def _refund(self, reservation: Reservation) -> None:
        try:
            await self.ledger.refund(reservation)
        except Exception:
            logger.error(
                "Refund failed; credits were not returned",
                extra={"credits": reservation.amount},
                exc_info=True,
            )
            raise

    async def _call(self, operation: str, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        start = perf_counter()
        status = "success"
        try:
            return await func(*args)
        except Exception:
            status = "error"
            raise
        finally:
            observe_provider_call(
                provider=self.provider.name,
                operation=operation,
                duration_seconds=perf_counter() - start,
                service_name=SERVICE_NAME,
                status=status,
            )

    @contextmanager
    def _stage(self, state: PipelineState) -> Iterator[None]:
        start = perf_counter()
        outcome = "success"
        with log_context(stage=state.value):
            try:
                yield
            except Exception:
                outcome = "error"
                raise
            finally:
                observe_stage_duration(
                    stage=state.value.lower(),
                    duration_seconds=perf_counter() - start,
                    service_name=SERVICE_NAME,
                    status=outcome,
                )


def _validate_outline(outline: StoryOutline, page_count: int) -> list[OutlinePage]:
    pages = [
        page
        for page in (outline.pages or [])
        if page.image_prompt.strip() and page.caption.strip()
    ]
    if len(pages) != len(outline.pages or []):
        raise OutlineFailure("Outline contains pages with missing prompt or caption")
    if len(pages) < page_count:
        raise OutlineFailure(
            f"Outline returned {len(pages)} page(s), {page_count} requested"
        )
    return pages[:page_count]


def _page_at(project: Project, page_index: int) -> StoryPage:
    if page_index < 0 or page_index >= len(project.pages):
        raise PageIndexError(page_index, len(project.pages))
    return project.pages[page_index]


def _apply_page_changes(project: Project, page_index: int, changes: dict[str, Any]) -> Project:
    pages = list(project.pages)
    pages[page_index] = _page_at(project, page_index).model_copy(update=changes)
    return project.model_copy(update={"pages": pages, "updated_at": utcnow()})


async def _notify(progress: ProgressCallback | None, event: ProgressEvent) -> None:
    if progress is None:
        return
    try:
        outcome = progress(event)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        logger.warning("Progress callback failed", exc_info=True)
