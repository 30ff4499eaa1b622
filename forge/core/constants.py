"""
Constants for the Design Forge generation service.
=================================================

🎯 CENTRALIZED CONFIGURATION - Single Source of Truth
-----------------------------------------------------
This file is the ONLY place to define:
- Provider endpoints and model IDs per tier
- Tier capability policy (reference ceiling, resolutions)
- Retry / backoff / timeout settings for provider calls
- Progress percentages reported on the event stream
- Diagnostic buffer capacity

⚠️  DO NOT duplicate these constants in other files!
   Other modules should import from here to maintain consistency.
"""

from typing import Dict, List, Any

# --- Provider Endpoints ---
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_UPLOAD_BASE = "https://generativelanguage.googleapis.com/upload/v1beta"

# --- Tier Definitions ---
TIER_FAST = "fast"
TIER_PRO = "pro"
DEFAULT_TIER = TIER_PRO

RESOLUTION_ORDER: List[str] = ["1K", "2K", "4K"]
DEFAULT_RESOLUTION = "1K"
DEFAULT_ASPECT_RATIO = "1:1"

TIER_POLICIES: Dict[str, Dict[str, Any]] = {
    TIER_FAST: {
        "model_id": "gemini-2.5-flash-image",
        "name": "Gemini Flash",
        "description": "Fast image generation, optimized for speed",
        "max_refs": 3,
        "resolutions": ["1K"],
        "speed": "fast",
    },
    TIER_PRO: {
        "model_id": "gemini-3-pro-image-preview",
        "name": "Gemini Pro 3",
        "description": "Professional quality with Thinking mode, up to 4K",
        "max_refs": 14,
        "resolutions": ["1K", "2K", "4K"],
        "speed": "slower",
    },
}

# Client-facing aliases accepted on the request body
TIER_ALIASES: Dict[str, str] = {
    "fast": TIER_FAST,
    "flash": TIER_FAST,
    "pro": TIER_PRO,
}

RESOLUTION_ALIASES: Dict[str, str] = {
    "1024": "1K", "1K": "1K",
    "2048": "2K", "2K": "2K",
    "4096": "4K", "4K": "4K",
}

MODE_CREATE = "create"
MODE_REFINE = "refine"
MODE_ALIASES: Dict[str, str] = {
    "create": MODE_CREATE,
    "generate": MODE_CREATE,
    "refine": MODE_REFINE,
    "edit": MODE_REFINE,
}

SUPPORTED_ASPECT_RATIOS: List[str] = [
    "1:1", "16:9", "9:16", "4:3", "3:4", "3:2", "2:3", "21:9", "5:4", "4:5"
]

# --- Request Validation ---
MIN_PROMPT_LENGTH = 3
MIN_VARIATIONS = 1
MAX_VARIATIONS = 4

# --- Provider Call Settings ---
MAX_GENERATION_TRIES = 3  # total tries per variation, first call included
RETRY_BACKOFF_STEP_SECONDS = 5.0  # wait grows linearly: 5s, 10s
TRANSIENT_STATUS_CODES = frozenset({503})
GENERATION_TIMEOUT_SECONDS = 180
UPLOAD_TIMEOUT_SECONDS = 60
FETCH_TIMEOUT_SECONDS = 30
RESPONSE_MODALITIES: List[str] = ["TEXT", "IMAGE"]

# --- Reference Image Normalization ---
FLATTEN_BACKGROUND_RGB = (88, 89, 91)
NORMALIZED_MIME_TYPE = "image/jpeg"
NORMALIZED_JPEG_QUALITY = 90

# --- Progress Reporting ---
PROGRESS_STARTING = 5
PROGRESS_UPLOAD_START = 10
PROGRESS_UPLOAD_SPAN = 20
PROGRESS_GENERATING = 30
PROGRESS_RETRYING = 40
PROGRESS_FINISHED = 95

# --- Diagnostics ---
DIAGNOSTIC_LOG_CAPACITY = 100

# --- Bridge / Item Catalog ---
BRIDGE_REQUEST_TIMEOUT_SECONDS = 30.0
BRIDGE_CLIENT_NAME = "ap-bridge"
CATALOG_API_BASE = "https://webapi.highrise.game"
CATALOG_CDN_BASE = "https://cdn.highrisegame.com/avatar"
CATALOG_DEFAULT_LIMIT = 50
CATALOG_MAX_LIMIT = 100
CATALOG_SEARCH_FETCH_LIMIT = 200

# --- Self-test ---
SELF_TEST_PROMPT = "a red castle"
