from typing import Optional, List, Dict, Any
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StyleImageInput(BaseModel):
    """A reference image sent by the client"""
    model_config = ConfigDict(extra='ignore')

    url: str = Field(description="http(s) or data: URL of the reference image")
    strength: float = Field(default=1.0, description="Relative weight of the reference")
    name: Optional[str] = None


class GenerateRequestBody(BaseModel):
    """Request body for the streaming generation endpoint.

    Field names follow the web client's camelCase contract. Values are kept
    loose here; normalization and validation happen in the input normalizer so
    a bad prompt is reported on the event stream, not as an HTTP 422.
    """
    model_config = ConfigDict(extra='ignore')

    prompt: Optional[Any] = None
    model: str = "pro"
    resolution: str = "1K"
    aspectRatio: Optional[str] = "1:1"
    numImages: Optional[Any] = 1
    styleImages: Optional[List[StyleImageInput]] = None
    negativePrompt: Optional[str] = None
    mode: Optional[str] = "create"
    editImage: Optional[str] = None


class TierCapabilities(BaseModel):
    id: str
    name: str
    description: str
    maxRefs: int
    resolutions: List[str]
    speed: str


class CapabilitiesResponse(BaseModel):
    models: Dict[str, TierCapabilities]
    aspectRatios: List[str]
    defaultModel: str


class DiagnosticEntry(BaseModel):
    timestamp: str
    type: str
    data: Any = None


class DiagnosticLogResponse(BaseModel):
    logs: List[DiagnosticEntry]
    geminiKey: str
    models: Dict[str, str]


class SelfTestResponse(BaseModel):
    ok: bool
    event: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    progressEvents: int = 0
    error: Optional[str] = None


class GenerationRecordResponse(BaseModel):
    id: str
    prompt: str
    tier: str
    resolution: str
    aspect_ratio: str
    mode: str
    requested_variations: int
    succeeded_variations: int
    image_count: int
    elapsed_seconds: float
    created_at: datetime


class GenerationListResponse(BaseModel):
    generations: List[GenerationRecordResponse]
    total: int
    limit: int
    offset: int
    hasMore: bool


class CatalogItem(BaseModel):
    id: str
    name: str
    category: Optional[str] = None
    rarity: Optional[str] = None
    imageUrl: str


class CatalogSearchResponse(BaseModel):
    items: List[CatalogItem]
    hasMore: bool
    nextCursor: Optional[str] = None
    source: str = Field(default="api", description="'bridge' or 'api'")


class BridgeStatusResponse(BaseModel):
    connected: bool
    pending: int
    timestamp: datetime
