"""
Shared fixtures for the generation service tests.

Provider traffic is faked with Mock objects shaped like `requests.Response`;
nothing here talks to the network.
"""

import base64
import io
from typing import Any, Dict, Optional
from unittest.mock import Mock

import pytest
from PIL import Image

from forge.core.diagnostics import diagnostic_log


def make_response(status_code: int = 200, json_data: Any = None,
                  headers: Optional[Dict[str, str]] = None, content: bytes = b"") -> Mock:
    """Build a Mock that quacks like requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.headers = headers or {}
    response.content = content
    response.text = "" if json_data is None else str(json_data)
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


def image_response(*datas: str, mime_type: str = "image/png") -> Dict[str, Any]:
    """A generateContent body carrying one inline image per data string."""
    return {
        "candidates": [{
            "content": {
                "parts": [{"inlineData": {"mimeType": mime_type, "data": d}} for d in datas]
            }
        }]
    }


def png_bytes(mode: str = "RGB", color=(255, 0, 0), size=(8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


def png_data_url(mode: str = "RGB", color=(255, 0, 0)) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes(mode, color)).decode("ascii")


@pytest.fixture(autouse=True)
def clear_diagnostics():
    """The diagnostic ring is process-wide; start every test empty."""
    diagnostic_log.clear()
    yield
    diagnostic_log.clear()


@pytest.fixture
def gemini_client():
    """Mock provider transport with a working upload flow."""
    client = Mock()
    client.generation_url.side_effect = lambda model_id: f"https://example.test/models/{model_id}:generateContent"
    client.fetch.return_value = make_response(200, content=png_bytes())
    client.start_upload.return_value = make_response(
        200, headers={"x-goog-upload-url": "https://upload.example.test/session/1"}
    )
    counter = {"n": 0}

    def finalize(upload_url, data, timeout=None):
        counter["n"] += 1
        return make_response(200, {"file": {"uri": f"https://files.example.test/files/ref-{counter['n']}"}})

    client.finalize_upload.side_effect = finalize
    client.generate_content.return_value = make_response(200, image_response("AAAA"))
    return client
