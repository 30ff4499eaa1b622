"""
Data model for one generation run.

GenerationRequest is built once per invocation and frozen after validation;
GenerationContext carries the per-run state (uploaded assets, composed
payload, attempts, aggregate) across the stages, the same way the pipeline
context object is threaded through every stage.
"""

import datetime
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..core.constants import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_RESOLUTION,
    DEFAULT_TIER,
    MAX_VARIATIONS,
    MIN_PROMPT_LENGTH,
    MIN_VARIATIONS,
    MODE_CREATE,
    MODE_REFINE,
    RESOLUTION_ORDER,
    TIER_POLICIES,
)
from ..core.errors import ValidationError

logger = logging.getLogger(__name__)


def clamp_variation_count(requested: Any) -> int:
    """Clamp any requested count into [MIN_VARIATIONS, MAX_VARIATIONS]."""
    try:
        value = int(requested)
    except (TypeError, ValueError, OverflowError):
        value = MIN_VARIATIONS
    return min(max(MIN_VARIATIONS, value), MAX_VARIATIONS)


@dataclass(frozen=True)
class ReferenceAsset:
    """A caller-supplied reference image, not yet uploaded."""
    source_url: str
    weight: float = 1.0
    name: Optional[str] = None


@dataclass(frozen=True)
class GenerationRequest:
    """Validated creative request. Construct through `create()`."""
    prompt: str
    tier: str = DEFAULT_TIER
    resolution: str = DEFAULT_RESOLUTION
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    variation_count: int = 1
    reference_assets: Tuple[ReferenceAsset, ...] = ()
    negative_prompt: Optional[str] = None
    mode: str = MODE_CREATE
    subject_asset: Optional[ReferenceAsset] = None

    @classmethod
    def create(
        cls,
        prompt: Optional[str],
        tier: str = DEFAULT_TIER,
        resolution: str = DEFAULT_RESOLUTION,
        aspect_ratio: Optional[str] = DEFAULT_ASPECT_RATIO,
        variation_count: Any = 1,
        reference_assets: Optional[List[ReferenceAsset]] = None,
        negative_prompt: Optional[str] = None,
        mode: str = MODE_CREATE,
        subject_asset: Optional[ReferenceAsset] = None,
    ) -> "GenerationRequest":
        """Validate raw fields and return an immutable request.

        Raises ValidationError for a missing/short prompt or unknown enum values.
        Variation count is clamped rather than rejected.
        """
        prompt = (prompt or "").strip()
        if len(prompt) < MIN_PROMPT_LENGTH:
            raise ValidationError(f"Prompt must be at least {MIN_PROMPT_LENGTH} characters")
        if tier not in TIER_POLICIES:
            raise ValidationError(f"Unknown tier: {tier}")
        if resolution not in RESOLUTION_ORDER:
            raise ValidationError(f"Unknown resolution: {resolution}")
        if mode not in (MODE_CREATE, MODE_REFINE):
            raise ValidationError(f"Unknown mode: {mode}")

        negative_prompt = negative_prompt.strip() if negative_prompt else None
        if mode != MODE_REFINE:
            subject_asset = None

        return cls(
            prompt=prompt,
            tier=tier,
            resolution=resolution,
            aspect_ratio=aspect_ratio or DEFAULT_ASPECT_RATIO,
            variation_count=clamp_variation_count(variation_count),
            reference_assets=tuple(reference_assets or ()),
            negative_prompt=negative_prompt or None,
            mode=mode,
            subject_asset=subject_asset,
        )


@dataclass(frozen=True)
class UploadedAsset:
    """Opaque provider handle for an uploaded reference. Lives for one run."""
    handle: str
    mime_type: str
    source_url: Optional[str] = None


class AttemptOutcome(str, Enum):
    """Lifecycle states of one variation attempt"""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED_TRANSIENT = "failed_transient"
    FAILED_FATAL = "failed_fatal"


@dataclass
class VariationAttempt:
    """One logical variation; owned by a single fan-out task."""
    index: int
    try_number: int = 0
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    images: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.outcome != AttemptOutcome.PENDING

    @property
    def succeeded(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCEEDED


@dataclass(frozen=True)
class AggregateResult:
    """Flattened outcome of a fan-out; images ordered by variation index."""
    images: Tuple[str, ...]
    elapsed_seconds: float
    succeeded_count: int
    requested_count: int

    @classmethod
    def from_attempts(cls, attempts: List[VariationAttempt], elapsed_seconds: float) -> "AggregateResult":
        ordered = sorted(attempts, key=lambda a: a.index)
        images: List[str] = []
        for attempt in ordered:
            if attempt.succeeded:
                images.extend(attempt.images)
        return cls(
            images=tuple(images),
            elapsed_seconds=elapsed_seconds,
            succeeded_count=sum(1 for a in ordered if a.succeeded),
            requested_count=len(ordered),
        )

    @property
    def is_empty(self) -> bool:
        return not self.images


@dataclass(frozen=True)
class ProgressEvent:
    """A named event on the push channel."""
    name: str
    payload: Dict[str, Any]

    def to_sse(self) -> str:
        """Serialize as one `event:`/`data:` frame."""
        return f"event: {self.name}\ndata: {json.dumps(self.payload)}\n\n"

    @property
    def is_terminal(self) -> bool:
        return self.name in ("complete", "error")


def new_run_id() -> str:
    return f"gen-{int(time.time() * 1000):x}"


@dataclass
class GenerationContext:
    """Per-run state threaded through the stages."""

    request: GenerationRequest
    run_id: str = field(default_factory=new_run_id)

    # Stage outputs
    uploaded_assets: List[UploadedAsset] = field(default_factory=list)
    subject_upload: Optional[UploadedAsset] = None
    payload: Optional[Any] = None
    attempts: List[VariationAttempt] = field(default_factory=list)
    result: Optional[AggregateResult] = None

    logs: List[str] = field(default_factory=list)

    def log(self, message: str) -> None:
        """Add a log message with timestamp."""
        timestamp = datetime.datetime.now().strftime("%H:%M:%S.%f")[:-3]
        self.logs.append(f"[{timestamp}] {message}")
        logger.info(f"[{self.run_id}] {message}")
