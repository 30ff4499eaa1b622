from typing import Awaitable, Callable, List, Optional
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Depends, Query, WebSocket
from sqlalchemy.ext.asyncio import AsyncSession

from forge.api.bridge import BridgeManager, bridge_endpoint
from forge.api.database import GenerationRecord, get_session, list_generations, delete_generation
from forge.api.dependencies import (
    get_orchestrator, get_config, get_catalog_client, get_bridge_manager, get_generation_recorder
)
from forge.api.schemas import (
    GenerateRequestBody, TierCapabilities, CapabilitiesResponse,
    DiagnosticEntry, DiagnosticLogResponse, SelfTestResponse,
    GenerationRecordResponse, GenerationListResponse,
    CatalogItem, CatalogSearchResponse, BridgeStatusResponse
)
from forge.api.streaming import drain, single_event, sse_response, start_run
from forge.core.client_config import ClientConfig
from forge.core.constants import (
    TIER_POLICIES, TIER_FAST, DEFAULT_TIER, SUPPORTED_ASPECT_RATIOS,
    CATALOG_DEFAULT_LIMIT, CATALOG_MAX_LIMIT, SELF_TEST_PROMPT
)
from forge.core.diagnostics import diagnostic_log
from forge.core.errors import BridgeTimeout, BridgeUnavailable, CatalogError, ForgeError, ValidationError
from forge.core.input_normalizer import normalize_generate_body
from forge.core.item_catalog import ItemCatalogClient
from forge.pipeline.context import GenerationRequest, ProgressEvent, new_run_id
from forge.pipeline.events import EVENT_COMPLETE, EVENT_PROGRESS, EventEmitter, error_event
from forge.pipeline.orchestrator import GenerationOrchestrator

# Create logger
logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "GEMINI_API_KEY not configured"

# Create routers
api_router = APIRouter(prefix="/api/v1")
generate_router = APIRouter(prefix="/generate", tags=["Generation"])
debug_router = APIRouter(prefix="/debug", tags=["Diagnostics"])
generations_router = APIRouter(prefix="/generations", tags=["Generation Records"])
catalog_router = APIRouter(prefix="/catalog", tags=["Item Catalog"])
bridge_router = APIRouter(prefix="/bridge", tags=["Bridge"])
ws_router = APIRouter(prefix="/ws", tags=["WebSocket"])


# === GENERATION ===

@generate_router.post("")
@generate_router.post("/stream")
async def generate(
    body: GenerateRequestBody,
    orchestrator: Optional[GenerationOrchestrator] = Depends(get_orchestrator),
    record_generation: Callable[..., Awaitable[object]] = Depends(get_generation_recorder)
):
    """Run one generation and stream progress, then a single complete/error event (SSE)"""
    run_id = new_run_id()

    if orchestrator is None:
        diagnostic_log.append("error", {"id": run_id, "error": MISSING_KEY_MESSAGE})
        return sse_response(single_event(error_event(MISSING_KEY_MESSAGE, run_id)))

    try:
        request = normalize_generate_body(body)
    except ValidationError as e:
        logger.info(f"[{run_id}] Rejected generation request: {e}")
        diagnostic_log.append("error", {"id": run_id, "error": str(e)})
        return sse_response(single_event(error_event(str(e), run_id)))

    async def run(emit: EventEmitter):
        ctx = await orchestrator.run(request, emit, run_id=run_id)
        if ctx.result is not None and not ctx.result.is_empty:
            await record_generation(ctx)
        return ctx

    channel = start_run(run, run_id)
    return sse_response(drain(channel))


@api_router.get("/capabilities", response_model=CapabilitiesResponse)
async def get_capabilities():
    """Get model tiers, their limits and the supported aspect ratios"""
    models = {
        tier: TierCapabilities(
            id=policy["model_id"],
            name=policy["name"],
            description=policy["description"],
            maxRefs=policy["max_refs"],
            resolutions=policy["resolutions"],
            speed=policy["speed"]
        )
        for tier, policy in TIER_POLICIES.items()
    }
    return CapabilitiesResponse(
        models=models,
        aspectRatios=SUPPORTED_ASPECT_RATIOS,
        defaultModel=DEFAULT_TIER
    )


# === DIAGNOSTICS ===

@debug_router.get("/logs", response_model=DiagnosticLogResponse)
async def get_debug_logs(
    limit: Optional[int] = Query(None, ge=1),
    config: ClientConfig = Depends(get_config)
):
    """Get recent diagnostic entries, newest first"""
    return DiagnosticLogResponse(
        logs=[DiagnosticEntry(**entry) for entry in diagnostic_log.read(limit)],
        geminiKey=config.masked_api_key(),
        models=config.model_config
    )


@debug_router.delete("/logs")
async def clear_debug_logs():
    """Clear the diagnostic log"""
    diagnostic_log.clear()
    return {"success": True, "message": "Logs cleared"}


@debug_router.post("/self-test", response_model=SelfTestResponse)
async def run_self_test(
    orchestrator: Optional[GenerationOrchestrator] = Depends(get_orchestrator)
):
    """Run a one-image fast generation end to end and report how it finished"""
    if orchestrator is None:
        return SelfTestResponse(ok=False, error=MISSING_KEY_MESSAGE)

    events: List[ProgressEvent] = []
    request = GenerationRequest.create(prompt=SELF_TEST_PROMPT, tier=TIER_FAST, variation_count=1)
    diagnostic_log.append("info", {"selfTest": True, "prompt": SELF_TEST_PROMPT})

    await orchestrator.run(request, events.append)

    terminal = events[-1] if events and events[-1].is_terminal else None
    progress_count = sum(1 for event in events if event.name == EVENT_PROGRESS)
    if terminal is None:
        return SelfTestResponse(ok=False, progressEvents=progress_count, error="No terminal event")

    return SelfTestResponse(
        ok=terminal.name == EVENT_COMPLETE,
        event=terminal.name,
        data={k: v for k, v in terminal.payload.items() if k not in ("imageUrl", "imageUrls")},
        progressEvents=progress_count,
        error=terminal.payload.get("error")
    )


# === GENERATION RECORDS ===

def _to_record_response(record: GenerationRecord) -> GenerationRecordResponse:
    return GenerationRecordResponse(**record.model_dump())


@generations_router.get("", response_model=GenerationListResponse)
async def get_generations(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session)
):
    """List generation records, newest first"""
    records, total = await list_generations(session, limit, offset)
    return GenerationListResponse(
        generations=[_to_record_response(record) for record in records],
        total=total,
        limit=limit,
        offset=offset,
        hasMore=offset + len(records) < total
    )


@generations_router.get("/{record_id}", response_model=GenerationRecordResponse)
async def get_generation(record_id: str, session: AsyncSession = Depends(get_session)):
    """Get one generation record"""
    record = await session.get(GenerationRecord, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Generation not found")
    return _to_record_response(record)


@generations_router.delete("/{record_id}")
async def remove_generation(record_id: str, session: AsyncSession = Depends(get_session)):
    """Delete one generation record"""
    if not await delete_generation(session, record_id):
        raise HTTPException(status_code=404, detail="Generation not found")
    return {"success": True, "id": record_id}


# === ITEM CATALOG ===

def _catalog_http_error(e: ForgeError) -> HTTPException:
    if isinstance(e, BridgeTimeout):
        return HTTPException(status_code=504, detail=str(e))
    if isinstance(e, BridgeUnavailable):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


@catalog_router.get("/items", response_model=CatalogSearchResponse)
async def search_catalog(
    q: str = Query("", description="Matches item names and ids"),
    category: Optional[str] = None,
    rarity: Optional[str] = None,
    limit: int = Query(CATALOG_DEFAULT_LIMIT, ge=1, le=CATALOG_MAX_LIMIT),
    starts_after: Optional[str] = None,
    catalog: ItemCatalogClient = Depends(get_catalog_client)
):
    """Search catalog items to use as reference images"""
    try:
        return await catalog.search(q, category, rarity, limit, starts_after)
    except ForgeError as e:
        logger.warning(f"Catalog search failed: {e}")
        raise _catalog_http_error(e)


@catalog_router.get("/items/{item_id}", response_model=CatalogItem)
async def get_catalog_item(item_id: str, catalog: ItemCatalogClient = Depends(get_catalog_client)):
    """Look up one catalog item"""
    try:
        item = await catalog.get_item(item_id)
    except CatalogError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ForgeError as e:
        raise _catalog_http_error(e)
    if not item.get("id"):
        raise HTTPException(status_code=404, detail="Item not found")
    return item


# === BRIDGE ===

@bridge_router.get("/status", response_model=BridgeStatusResponse)
async def get_bridge_status(manager: BridgeManager = Depends(get_bridge_manager)):
    """Report whether a host-application bridge is connected"""
    return BridgeStatusResponse(
        connected=manager.is_connected(),
        pending=len(manager.pending),
        timestamp=datetime.now(timezone.utc)
    )


# WebSocket endpoint
@ws_router.websocket("/bridge")
async def websocket_bridge(websocket: WebSocket):
    """WebSocket endpoint for the host-application bridge"""
    await bridge_endpoint(websocket, websocket.app.state.bridge_manager)


# Include routers in main API router
api_router.include_router(generate_router)
api_router.include_router(debug_router)
api_router.include_router(generations_router)
api_router.include_router(catalog_router)
api_router.include_router(bridge_router)
