"""
Response Extractor

Pulls inline images out of a generateContent response. The provider has been
seen returning both camelCase (`inlineData`/`mimeType`) and snake_case
(`inline_data`/`mime_type`) part shapes; each is an extraction strategy tried
in order. Never raises: a response without image parts yields [].
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InlineImage:
    mime_type: str
    data: str

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class InlineDataStrategy:
    """Reads `<container_key>.{data, <mime_key>}` from a content part."""
    container_key: str
    mime_key: str

    def match(self, part: Dict[str, Any]) -> Optional[InlineImage]:
        container = part.get(self.container_key)
        if not isinstance(container, dict):
            return None

        data = container.get("data")
        mime_type = container.get(self.mime_key)
        if not data or not isinstance(mime_type, str) or not mime_type.startswith("image/"):
            return None

        if isinstance(data, (bytes, bytearray)):
            data = base64.b64encode(bytes(data)).decode("utf-8")
        elif not isinstance(data, str):
            return None
        return InlineImage(mime_type=mime_type, data=data)


# Order matters: first strategy that matches a part wins.
EXTRACTION_STRATEGIES: Sequence[InlineDataStrategy] = (
    InlineDataStrategy(container_key="inlineData", mime_key="mimeType"),
    InlineDataStrategy(container_key="inline_data", mime_key="mime_type"),
)


def _first_candidate_parts(response: Any) -> List[Any]:
    if not isinstance(response, dict):
        return []
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return []
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        return []
    content = candidate.get("content")
    if not isinstance(content, dict):
        return []
    parts = content.get("parts")
    return parts if isinstance(parts, list) else []


def extract(response: Any, strategies: Sequence[InlineDataStrategy] = EXTRACTION_STRATEGIES) -> List[str]:
    """Return the response's images as data URLs, in part order."""
    images: List[str] = []
    for part in _first_candidate_parts(response):
        if not isinstance(part, dict):
            continue
        for strategy in strategies:
            image = strategy.match(part)
            if image is not None:
                images.append(image.to_data_url())
                break

    if not images:
        logger.info("No image parts found in provider response")
    return images
