"""FastAPI entrypoint for the Lumina generation orchestrator."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse

from lumina_observability import log_context, setup_fastapi_metrics, setup_logging
from lumina_providers import GenerationCancelled, GenerationError, GenerationTimeout
from lumina_providers.audio import decode_audio_payload, pcm_to_wav
from lumina_providers.pricing import CREDIT_PACKS, SUBSCRIPTION_PLANS
from lumina_schemas import Asset, EnrichmentKind, LedgerSnapshot, Project

from .dependencies import CancellationRegistry, get_cancellations, get_pipeline
from .errors import StudioError, UnknownCatalogueItem
from .export import DOCX_MEDIA_TYPE, render_docx, render_html
from .flows import run_generation_flow
from .models import (
    EnrichmentResponse,
    GenerateResponse,
    GenerationPayload,
    LabAssetRequest,
    LabAssetResponse,
    PageUpdateRequest,
    PipelineResult,
    PublishRequest,
    PurchaseRequest,
    RefinePromptRequest,
    RefinePromptResponse,
    SubscribeRequest,
)
from .pipeline import GenerationPipeline

SERVICE_NAME = "orchestrator"
setup_logging(SERVICE_NAME)
logger = logging.getLogger(__name__)

STATUS_CLIENT_CLOSED_REQUEST = 499

FlowRunner = Callable[..., Awaitable[PipelineResult]]

app = FastAPI(title="Lumina Studio Orchestrator", version="0.1.0")
setup_fastapi_metrics(app, service_name=SERVICE_NAME)


def get_flow_runner() -> FlowRunner:
    return run_generation_flow


@app.exception_handler(StudioError)
async def _studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    logger.warning(
        "Request failed",
        extra={"route": request.url.path, "status_code": exc.status_code, "error": type(exc).__name__},
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(GenerationError)
async def _generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    if isinstance(exc, GenerationTimeout):
        status_code = status.HTTP_504_GATEWAY_TIMEOUT
    elif isinstance(exc, GenerationCancelled):
        status_code = STATUS_CLIENT_CLOSED_REQUEST
    else:
        status_code = status.HTTP_502_BAD_GATEWAY
    logger.warning(
        "Generation failed",
        extra={"route": request.url.path, "status_code": status_code, "error": type(exc).__name__},
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def _value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/ledger", response_model=LedgerSnapshot, tags=["ledger"])
async def ledger_snapshot(pipeline: GenerationPipeline = Depends(get_pipeline)) -> LedgerSnapshot:
    return pipeline.ledger.snapshot()


@app.get("/ledger/catalogue", tags=["ledger"])
async def catalogue() -> dict[str, Any]:
    return {
        "packs": [
            {"id": pack.id, "credits": pack.credits, "price": pack.price_label}
            for pack in CREDIT_PACKS.values()
        ],
        "plans": [
            {"id": plan.id, "tier": plan.tier.value, "name": plan.name, "price": plan.price_label}
            for plan in SUBSCRIPTION_PLANS.values()
        ],
    }


@app.post("/ledger/purchase", response_model=LedgerSnapshot, tags=["ledger"])
async def purchase(
    payload: PurchaseRequest, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> LedgerSnapshot:
    pack = CREDIT_PACKS.get(payload.pack_id)
    if pack is None:
        raise UnknownCatalogueItem(f"Unknown credit pack: {payload.pack_id}")
    # Purchases are simulated; no payment processor is involved.
    await pipeline.ledger.credit(pack.credits, kind=pack.id)
    return pipeline.ledger.snapshot()


@app.post("/ledger/subscribe", response_model=LedgerSnapshot, tags=["ledger"])
async def subscribe(
    payload: SubscribeRequest, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> LedgerSnapshot:
    plan = SUBSCRIPTION_PLANS.get(payload.plan_id)
    if plan is None:
        raise UnknownCatalogueItem(f"Unknown subscription plan: {payload.plan_id}")
    await pipeline.ledger.set_tier(plan.tier)
    return pipeline.ledger.snapshot()


@app.post("/generate", response_model=GenerateResponse, tags=["pipeline"])
async def generate(
    payload: GenerationPayload,
    run_id: Optional[str] = Query(None, description="Client chosen id used to cancel the run"),
    pipeline: GenerationPipeline = Depends(get_pipeline),
    runner: FlowRunner = Depends(get_flow_runner),
) -> GenerateResponse:
    request = payload.root
    with log_context(kind=request.kind, run_id=run_id):
        logger.info("Dispatching generation request")
    result = await runner(request, run_id=run_id)
    return GenerateResponse(result=result, ledger=pipeline.ledger.snapshot())


@app.post("/runs/{run_id}/cancel", status_code=status.HTTP_202_ACCEPTED, tags=["pipeline"])
async def cancel_run(
    run_id: str, cancellations: CancellationRegistry = Depends(get_cancellations)
) -> dict[str, str]:
    if not cancellations.cancel(run_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Run not found")
    logger.info("Cancellation requested", extra={"run_id": run_id})
    return {"status": "cancelling"}


@app.get("/projects", response_model=list[Project], tags=["projects"])
async def list_projects(pipeline: GenerationPipeline = Depends(get_pipeline)) -> list[Project]:
    return await pipeline.store.list()


@app.get("/projects/{project_id}", response_model=Project, tags=["projects"])
async def get_project(project_id: str, pipeline: GenerationPipeline = Depends(get_pipeline)) -> Project:
    return await pipeline.store.get(project_id)


@app.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["projects"])
async def delete_project(project_id: str, pipeline: GenerationPipeline = Depends(get_pipeline)) -> Response:
    await pipeline.store.delete(project_id)
    logger.info("Project deleted", extra={"project_id": project_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.patch("/projects/{project_id}/pages/{page_index}", response_model=Project, tags=["projects"])
async def edit_page(
    project_id: str,
    page_index: int,
    payload: PageUpdateRequest,
    pipeline: GenerationPipeline = Depends(get_pipeline),
) -> Project:
    return await pipeline.update_page(
        project_id,
        page_index,
        caption=payload.caption,
        image_prompt=payload.image_prompt,
    )


@app.patch("/projects/{project_id}/publish", response_model=Project, tags=["projects"])
async def publish_project(
    project_id: str,
    payload: PublishRequest,
    pipeline: GenerationPipeline = Depends(get_pipeline),
) -> Project:
    return await pipeline.publish(project_id, is_published=payload.is_published, price=payload.price)


@app.post(
    "/projects/{project_id}/pages/{page_index}/{operation}",
    response_model=EnrichmentResponse,
    tags=["projects"],
)
async def enrich_page(
    project_id: str,
    page_index: int,
    operation: EnrichmentKind,
    run_id: Optional[str] = Query(None),
    pipeline: GenerationPipeline = Depends(get_pipeline),
    cancellations: CancellationRegistry = Depends(get_cancellations),
) -> EnrichmentResponse:
    token = cancellations.register(run_id) if run_id else None
    try:
        result = await pipeline.enrich(project_id, page_index, operation, cancel=token)
    finally:
        if run_id:
            cancellations.release(run_id)
    return EnrichmentResponse(project=result.project, ledger=pipeline.ledger.snapshot())


@app.get("/projects/{project_id}/pages/{page_index}/audio.wav", tags=["projects"])
async def page_audio(
    project_id: str, page_index: int, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> Response:
    project = await pipeline.store.get(project_id)
    if page_index < 0 or page_index >= len(project.pages):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Page index out of range")
    page = project.pages[page_index]
    if not page.audio_url:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page has no narration")
    return Response(content=pcm_to_wav(decode_audio_payload(page.audio_url)), media_type="audio/wav")


@app.get("/projects/{project_id}/export", tags=["projects"])
async def export_project(
    project_id: str,
    format: Literal["html", "docx"] = Query("html"),
    pipeline: GenerationPipeline = Depends(get_pipeline),
) -> Response:
    project = await pipeline.store.get(project_id)
    if format == "docx":
        content = render_docx(project)
        return Response(
            content=content,
            media_type=DOCX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{project.id}.docx"'},
        )
    return HTMLResponse(render_html(project))


@app.post("/lab/assets", response_model=LabAssetResponse, tags=["lab"])
async def create_lab_asset(
    payload: LabAssetRequest, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> LabAssetResponse:
    asset = await pipeline.generate_lab_asset(payload)
    return LabAssetResponse(asset=asset, ledger=pipeline.ledger.snapshot())


@app.post("/lab/refine", response_model=RefinePromptResponse, tags=["lab"])
async def refine_prompt(
    payload: RefinePromptRequest, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> RefinePromptResponse:
    return RefinePromptResponse(prompt=await pipeline.refine_prompt(payload.prompt))


@app.get("/assets", response_model=list[Asset], tags=["lab"])
async def list_assets(pipeline: GenerationPipeline = Depends(get_pipeline)) -> list[Asset]:
    return await pipeline.assets.list()
