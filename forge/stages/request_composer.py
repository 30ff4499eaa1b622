"""
Request Composer

Builds the multimodal generateContent body for one run. Applies the tier
capability policy (reference ceiling, resolution ceiling), prepends the
style-matching preamble when references are present, and appends the negative
prompt. Pure: no I/O, deterministic for the same inputs.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TypeVar

from ..core.constants import (
    DEFAULT_RESOLUTION,
    MODE_REFINE,
    RESPONSE_MODALITIES,
    RESOLUTION_ORDER,
    TIER_POLICIES,
)
from ..core.errors import ValidationError
from ..pipeline.context import GenerationRequest, UploadedAsset, clamp_variation_count

T = TypeVar("T")


@dataclass(frozen=True)
class ProviderPayload:
    """Composed request, ready to be issued once per variation."""
    model_id: str
    tier: str
    body: Dict[str, Any]
    resolution: str
    aspect_ratio: Optional[str]
    variation_count: int
    reference_count: int

    @property
    def parts(self) -> List[Dict[str, Any]]:
        return self.body["contents"][0]["parts"]


def resolve_tier_policy(tier: str) -> Dict[str, Any]:
    try:
        return TIER_POLICIES[tier]
    except KeyError:
        raise ValidationError(f"Unknown tier: {tier}")


def clamp_references(items: Sequence[T], tier: str) -> List[T]:
    """Drop anything past the tier's reference ceiling, keeping order."""
    return list(items[:resolve_tier_policy(tier)["max_refs"]])


def clamp_resolution(resolution: str, tier: str) -> str:
    """Return `resolution` if the tier allows it, else the highest allowed value below it."""
    allowed = resolve_tier_policy(tier)["resolutions"]
    if resolution in allowed:
        return resolution

    requested_rank = RESOLUTION_ORDER.index(resolution) if resolution in RESOLUTION_ORDER else 0
    lower = [r for r in allowed if RESOLUTION_ORDER.index(r) <= requested_rank]
    if lower:
        return max(lower, key=RESOLUTION_ORDER.index)
    return min(allowed, key=RESOLUTION_ORDER.index)


def build_style_preamble(reference_count: int) -> str:
    plural = "image" if reference_count == 1 else "images"
    return (
        f"Look at these {reference_count} reference {plural} carefully. "
        "They are digital art assets with:\n"
        "- NO outlines or black lines\n"
        "- Soft gradient shading\n"
        "- A specific 3/4 perspective angle\n"
        "- Stylized proportions\n"
        "Match the EXACT same style: no outlines, same angle, same soft shading, same proportions."
    )


def build_prompt_text(prompt: str, reference_count: int, negative_prompt: Optional[str] = None,
                      refine: bool = False) -> str:
    """Assemble the single text block: preamble, prompt, avoid clause."""
    sections = []
    if reference_count > 0:
        sections.append(build_style_preamble(reference_count))

    if refine:
        sections.append(f"Edit the provided image: {prompt}")
    elif reference_count > 0:
        sections.append(f"Create: {prompt}")
    else:
        sections.append(prompt)

    text = "\n\n".join(sections)
    if negative_prompt and negative_prompt.strip():
        text += f" Avoid: {negative_prompt.strip()}"
    return text


def _file_part(asset: UploadedAsset) -> Dict[str, Any]:
    return {"file_data": {"mime_type": asset.mime_type, "file_uri": asset.handle}}


def compose(
    request: GenerationRequest,
    uploaded_assets: Sequence[UploadedAsset],
    subject: Optional[UploadedAsset] = None,
) -> ProviderPayload:
    """Build the provider payload for `request`.

    Text part first, then the subject (refine mode), then one file part per
    reference handle within the tier ceiling.
    """
    policy = resolve_tier_policy(request.tier)
    references = clamp_references(uploaded_assets, request.tier)
    resolution = clamp_resolution(request.resolution, request.tier)
    refine = request.mode == MODE_REFINE and subject is not None

    text = build_prompt_text(request.prompt, len(references), request.negative_prompt, refine=refine)

    parts: List[Dict[str, Any]] = [{"text": text}]
    if refine:
        parts.append(_file_part(subject))
    parts.extend(_file_part(asset) for asset in references)

    generation_config: Dict[str, Any] = {"responseModalities": list(RESPONSE_MODALITIES)}
    image_config: Dict[str, Any] = {}
    if request.aspect_ratio:
        image_config["aspectRatio"] = request.aspect_ratio
    if resolution != DEFAULT_RESOLUTION:
        image_config["imageSize"] = resolution
    if image_config:
        generation_config["imageConfig"] = image_config

    body = {
        "contents": [{"parts": parts}],
        "generationConfig": generation_config,
    }

    return ProviderPayload(
        model_id=policy["model_id"],
        tier=request.tier,
        body=body,
        resolution=resolution,
        aspect_ratio=request.aspect_ratio,
        variation_count=clamp_variation_count(request.variation_count),
        reference_count=len(references),
    )
