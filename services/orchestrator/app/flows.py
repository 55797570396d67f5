"""Prefect flow wrapping the generation pipeline."""

from __future__ import annotations

import logging
from time import perf_counter
from uuid import uuid4

from prefect import flow

from lumina_observability import log_context, observe_stage_duration

from .dependencies import get_cancellations, get_pipeline
from .models import (
    AdBrief,
    CharacterBrief,
    EnrichmentRequest,
    PipelineResult,
    StoryBrief,
)
from .pipeline import ProgressEvent

logger = logging.getLogger(__name__)
SERVICE_NAME = "orchestrator"


@flow(name="lumina-generation-flow", version="0.1.0", validate_parameters=False)
async def run_generation_flow(
    request: StoryBrief | AdBrief | CharacterBrief | EnrichmentRequest,
    run_id: str | None = None,
) -> PipelineResult:
    """Dispatch one generation request through the pipeline.

    ``run_id`` registers a cancellation token so another request can abort
    the run between pages or video polls.
    """

    run_id = run_id or uuid4().hex
    pipeline = await get_pipeline()
    cancellations = get_cancellations()
    token = cancellations.register(run_id)

    def report(event: ProgressEvent) -> None:
        logger.info(
            event.message,
            extra={"state": event.state.value, "page_index": event.page_index},
        )

    start = perf_counter()
    outcome = "success"
    with log_context(run_id=run_id, kind=request.kind):
        logger.info("Starting generation flow")
        try:
            result = await pipeline.dispatch(request, cancel=token, progress=report)
        except Exception:
            outcome = "error"
            logger.exception("Generation flow failed")
            raise
        finally:
            cancellations.release(run_id)
            observe_stage_duration(
                stage="flow",
                duration_seconds=perf_counter() - start,
                service_name=SERVICE_NAME,
                status=outcome,
            )
        logger.info(
            "Generation flow finished",
            extra={"project_id": result.project.id, "save_failed": result.save_failed},
        )
    return result
