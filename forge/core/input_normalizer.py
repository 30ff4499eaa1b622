"""
Input normalizer for the generation endpoint.
Maps the client's request body onto a validated GenerationRequest.

Tolerant of client drift: unknown model names fall back to the default tier,
legacy pixel resolutions ("1024", "2048", "4096") map to 1K/2K/4K, and the
client's "edit" mode is the same thing as "refine".
"""

import logging

from forge.api.schemas import GenerateRequestBody
from forge.core.constants import (
    DEFAULT_RESOLUTION,
    DEFAULT_TIER,
    MODE_ALIASES,
    MODE_CREATE,
    MODE_REFINE,
    RESOLUTION_ALIASES,
    TIER_ALIASES,
)
from forge.core.errors import ValidationError
from forge.pipeline.context import GenerationRequest, ReferenceAsset, clamp_variation_count

logger = logging.getLogger(__name__)


def normalize_tier(model: str) -> str:
    return TIER_ALIASES.get((model or "").strip().lower(), DEFAULT_TIER)


def normalize_resolution(resolution: str) -> str:
    return RESOLUTION_ALIASES.get((resolution or "").strip().upper(), DEFAULT_RESOLUTION)


def normalize_mode(mode: str) -> str:
    return MODE_ALIASES.get((mode or "").strip().lower(), MODE_CREATE)


def normalize_generate_body(body: GenerateRequestBody) -> GenerationRequest:
    """
    Build the immutable request for one run.

    Raises:
        ValidationError: prompt missing, not text or shorter than the minimum
            length, or refine mode requested without an image to edit.
    """
    if body.prompt is not None and not isinstance(body.prompt, str):
        raise ValidationError("Prompt must be a string")

    mode = normalize_mode(body.mode)
    subject = None
    if mode == MODE_REFINE:
        if not body.editImage:
            raise ValidationError("Refine mode requires an editImage")
        subject = ReferenceAsset(source_url=body.editImage)

    references = [
        ReferenceAsset(source_url=img.url, weight=img.strength, name=img.name)
        for img in (body.styleImages or [])
        if img.url
    ]

    return GenerationRequest.create(
        prompt=body.prompt,
        tier=normalize_tier(body.model),
        resolution=normalize_resolution(body.resolution),
        aspect_ratio=body.aspectRatio,
        variation_count=clamp_variation_count(body.numImages if body.numImages is not None else 1),
        reference_assets=references,
        negative_prompt=body.negativePrompt,
        mode=mode,
        subject_asset=subject,
    )
