"""
Generation Orchestrator - runs the generation stages in order for one request.

upload references -> compose payload -> fan out variations -> aggregate.
Every run ends with exactly one terminal event (`complete` or `error`),
always emitted last.
"""

import logging
import time
from typing import Optional

from ..core.constants import PROGRESS_FINISHED, PROGRESS_GENERATING, PROGRESS_STARTING
from ..core.diagnostics import diagnostic_log
from ..core.errors import UploadFailure
from ..core.gemini_client import GeminiRestClient
from ..stages import asset_upload, request_composer
from ..stages.asset_upload import AssetUploader
from ..stages.variation_fanout import VariationFanOut
from .context import AggregateResult, GenerationContext, GenerationRequest
from .events import EventEmitter, complete_event, error_event, progress_event

logger = logging.getLogger(__name__)

NO_IMAGES_MESSAGE = "No images generated from any variation"


class GenerationOrchestrator:
    """Executes one generation run and reports through an event emitter."""

    def __init__(
        self,
        client: GeminiRestClient,
        uploader: Optional[AssetUploader] = None,
        fanout: Optional[VariationFanOut] = None,
    ):
        self.client = client
        self.uploader = uploader or AssetUploader(client)
        self.fanout = fanout or VariationFanOut(client)

    async def run(
        self,
        request: GenerationRequest,
        emit: EventEmitter,
        run_id: Optional[str] = None,
    ) -> GenerationContext:
        ctx = GenerationContext(request=request)
        if run_id:
            ctx.run_id = run_id

        diagnostic_log.append("request", {
            "id": ctx.run_id,
            "prompt": request.prompt[:50],
            "model": request.tier,
            "resolution": request.resolution,
            "aspectRatio": request.aspect_ratio,
            "numImages": request.variation_count,
            "styleImagesCount": len(request.reference_assets),
            "mode": request.mode,
        })

        emit(progress_event("starting", "INITIALIZING GEMINI...", PROGRESS_STARTING, ctx.run_id))

        try:
            await asset_upload.run(ctx, self.uploader, emit)

            ctx.payload = request_composer.compose(request, ctx.uploaded_assets, ctx.subject_upload)
            payload = ctx.payload
            if payload.resolution != request.resolution:
                ctx.log(f"Downgrading resolution from {request.resolution} to {payload.resolution} ({request.tier} tier)")

            count = payload.variation_count
            emit(progress_event(
                "generating",
                f"GENERATING {count} VARIATIONS..." if count > 1 else "GENERATING IMAGE...",
                PROGRESS_GENERATING,
                ctx.run_id,
            ))
            diagnostic_log.append("info", {
                "id": ctx.run_id,
                "url": self.client.generation_url(payload.model_id),
                "variations": count,
                "parts": f"{len(payload.parts)} parts: {len(payload.parts) - 1} images + 1 text",
                "generationConfig": payload.body["generationConfig"],
            })

            start_time = time.monotonic()
            ctx.attempts = await self.fanout.run(payload, count, emit=emit, run_id=ctx.run_id)
            ctx.result = AggregateResult.from_attempts(ctx.attempts, time.monotonic() - start_time)

        except UploadFailure as e:
            diagnostic_log.append("error", {"id": ctx.run_id, "error": str(e), "source": e.source_url})
            emit(error_event(str(e), ctx.run_id))
            return ctx
        except Exception as e:
            logger.error(f"[{ctx.run_id}] Generation run failed: {e}", exc_info=True)
            diagnostic_log.append("error", {"id": ctx.run_id, "error": str(e)})
            emit(error_event(str(e), ctx.run_id))
            return ctx

        result = ctx.result
        elapsed = round(result.elapsed_seconds)
        diagnostic_log.append("response", {
            "id": ctx.run_id,
            "elapsed": f"{elapsed}s",
            "requestedVariations": result.requested_count,
            "successfulVariations": result.succeeded_count,
            "successfulImages": len(result.images),
        })

        if result.is_empty:
            emit(error_event(NO_IMAGES_MESSAGE, ctx.run_id))
            return ctx

        ctx.log(f"Generated {len(result.images)} image(s) from {result.requested_count} variation(s) in {elapsed}s")
        emit(progress_event("complete", "GENERATION COMPLETE", PROGRESS_FINISHED, ctx.run_id, elapsed=elapsed))
        emit(complete_event(result, request.tier, ctx.run_id))
        return ctx
