"""
Thin REST transport for the Gemini generation and file-upload endpoints.

Calls are blocking (`requests`); async callers wrap them with
`asyncio.to_thread`, the same way the image generation stage wraps the
provider SDK. Status interpretation (overload vs. rejection) is left to the
stages so the transport stays a plain HTTP shim.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .constants import (
    GEMINI_API_BASE,
    GEMINI_UPLOAD_BASE,
    GENERATION_TIMEOUT_SECONDS,
    UPLOAD_TIMEOUT_SECONDS,
    FETCH_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class GeminiRestClient:
    """Holds the API key and base URLs, and issues the raw provider requests."""

    def __init__(
        self,
        api_key: str,
        api_base: str = GEMINI_API_BASE,
        upload_base: str = GEMINI_UPLOAD_BASE,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.upload_base = upload_base.rstrip("/")
        self.session = session or requests.Session()

    def generation_url(self, model_id: str) -> str:
        return f"{self.api_base}/models/{model_id}:generateContent"

    def generate_content(
        self, model_id: str, body: Dict[str, Any], timeout: float = GENERATION_TIMEOUT_SECONDS
    ) -> requests.Response:
        """POST one generateContent call."""
        return self.session.post(
            self.generation_url(model_id),
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.api_key,
            },
            json=body,
            timeout=timeout,
        )

    def start_upload(
        self,
        num_bytes: int,
        mime_type: str,
        display_name: str,
        timeout: float = UPLOAD_TIMEOUT_SECONDS,
    ) -> requests.Response:
        """Open a resumable upload session; the session URL comes back in a header."""
        return self.session.post(
            f"{self.upload_base}/files",
            headers={
                "x-goog-api-key": self.api_key,
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Length": str(num_bytes),
                "X-Goog-Upload-Header-Content-Type": mime_type,
                "Content-Type": "application/json",
            },
            json={"file": {"display_name": display_name}},
            timeout=timeout,
        )

    def finalize_upload(
        self, upload_url: str, data: bytes, timeout: float = UPLOAD_TIMEOUT_SECONDS
    ) -> requests.Response:
        """Send all bytes to the session URL and finalize in one call."""
        return self.session.post(
            upload_url,
            headers={
                "Content-Length": str(len(data)),
                "X-Goog-Upload-Offset": "0",
                "X-Goog-Upload-Command": "upload, finalize",
            },
            data=data,
            timeout=timeout,
        )

    def fetch(self, url: str, timeout: float = FETCH_TIMEOUT_SECONDS) -> requests.Response:
        """GET an arbitrary source URL (no provider credentials attached)."""
        return self.session.get(url, timeout=timeout)

    def close(self) -> None:
        self.session.close()
