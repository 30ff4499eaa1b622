"""
Asset Upload Stage

Turns each reference image into a provider file handle:
fetch bytes -> flatten transparency onto a neutral gray -> re-encode as JPEG ->
resumable upload (start + finalize) -> parse the returned file URI.

References are uploaded one at a time so progress is reported per completed
upload. Any failure aborts the run; uploads are never retried because they
count against the remote quota.
"""

import asyncio
import base64
import binascii
import io
import logging
import time
from urllib.parse import unquote_to_bytes

import requests
from PIL import Image, UnidentifiedImageError

from ..core.constants import (
    FLATTEN_BACKGROUND_RGB,
    NORMALIZED_JPEG_QUALITY,
    NORMALIZED_MIME_TYPE,
    PROGRESS_UPLOAD_SPAN,
    PROGRESS_UPLOAD_START,
)
from ..core.diagnostics import diagnostic_log
from ..core.errors import EncodeFailure, FetchFailure, UploadFailure
from ..core.gemini_client import GeminiRestClient
from ..pipeline.context import GenerationContext, UploadedAsset
from ..pipeline.events import EventEmitter, progress_event
from .request_composer import clamp_references

logger = logging.getLogger(__name__)


def _decode_data_url(source_url: str) -> bytes:
    header, _, encoded = source_url.partition(",")
    if not encoded:
        raise FetchFailure("Malformed data URL", source_url[:64])
    try:
        if ";base64" in header:
            return base64.b64decode(encoded, validate=True)
        return unquote_to_bytes(encoded)
    except (binascii.Error, ValueError) as e:
        raise FetchFailure(f"Malformed data URL: {e}", source_url[:64])


def normalize_image(raw: bytes) -> bytes:
    """Flatten alpha onto the fixed background and re-encode as JPEG."""
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
                rgba = img.convert("RGBA")
                flattened = Image.new("RGB", rgba.size, FLATTEN_BACKGROUND_RGB)
                flattened.paste(rgba, mask=rgba.getchannel("A"))
            else:
                flattened = img.convert("RGB")

        out = io.BytesIO()
        flattened.save(out, format="JPEG", quality=NORMALIZED_JPEG_QUALITY)
        return out.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise EncodeFailure(f"Could not re-encode reference image: {e}")


class AssetUploader:
    """Uploads one reference at a time to the provider's file store."""

    def __init__(self, client: GeminiRestClient):
        self.client = client

    async def upload(self, source_url: str) -> UploadedAsset:
        return await asyncio.to_thread(self.upload_sync, source_url)

    def upload_sync(self, source_url: str) -> UploadedAsset:
        raw = self._fetch(source_url)
        try:
            encoded = normalize_image(raw)
        except EncodeFailure as e:
            e.source_url = source_url
            raise

        display_name = f"ref-{int(time.time() * 1000)}"
        logger.info(f"Uploading {len(encoded)} bytes as {display_name}")

        upload_url = self._start_session(len(encoded), display_name, source_url)
        handle = self._finalize(upload_url, encoded, source_url)
        logger.info(f"Upload complete: {handle}")
        return UploadedAsset(handle=handle, mime_type=NORMALIZED_MIME_TYPE, source_url=source_url)

    def _fetch(self, source_url: str) -> bytes:
        if source_url.startswith("data:"):
            return _decode_data_url(source_url)

        try:
            response = self.client.fetch(source_url)
        except requests.RequestException as e:
            raise FetchFailure(f"Failed to fetch reference image: {e}", source_url)
        if not response.ok:
            raise FetchFailure(f"Failed to fetch reference image: HTTP {response.status_code}", source_url)
        return response.content

    def _start_session(self, num_bytes: int, display_name: str, source_url: str) -> str:
        try:
            response = self.client.start_upload(num_bytes, NORMALIZED_MIME_TYPE, display_name)
        except requests.RequestException as e:
            raise UploadFailure(f"Upload start failed: {e}", source_url)
        if not response.ok:
            raise UploadFailure(f"Upload start failed: HTTP {response.status_code}", source_url)

        upload_url = response.headers.get("x-goog-upload-url")
        if not upload_url:
            raise UploadFailure("Upload start response had no session URL", source_url)
        return upload_url

    def _finalize(self, upload_url: str, data: bytes, source_url: str) -> str:
        try:
            response = self.client.finalize_upload(upload_url, data)
        except requests.RequestException as e:
            raise UploadFailure(f"Upload transfer failed: {e}", source_url)
        if not response.ok:
            raise UploadFailure(f"Upload transfer failed: HTTP {response.status_code}", source_url)

        try:
            file_info = response.json()
        except ValueError:
            raise UploadFailure("Upload response was not JSON", source_url)

        handle = (file_info.get("file") or {}).get("uri") if isinstance(file_info, dict) else None
        if not handle:
            raise UploadFailure("Upload response had no file URI", source_url)
        return handle


async def run(ctx: GenerationContext, uploader: AssetUploader, emit: EventEmitter) -> None:
    """
    Upload the subject (refine mode) and the tier-clamped references, in order.

    Output: ctx.subject_upload, ctx.uploaded_assets
    """
    request = ctx.request
    references = clamp_references(request.reference_assets, request.tier)
    subject = request.subject_asset

    total = len(references) + (1 if subject else 0)
    if total == 0:
        ctx.log("No reference images, skipping upload stage")
        return

    emit(progress_event(
        "uploading",
        f"UPLOADING {total} REFERENCE IMAGE{'S' if total > 1 else ''}...",
        PROGRESS_UPLOAD_START,
        ctx.run_id,
    ))

    completed = 0

    def report(done: int) -> None:
        pct = PROGRESS_UPLOAD_START + (done * PROGRESS_UPLOAD_SPAN) // total
        emit(progress_event("uploaded", f"UPLOADED REFERENCE {done}/{total}...", pct, ctx.run_id))

    if subject:
        ctx.subject_upload = await uploader.upload(subject.source_url)
        completed += 1
        report(completed)

    for reference in references:
        asset = await uploader.upload(reference.source_url)
        ctx.uploaded_assets.append(asset)
        completed += 1
        report(completed)

    diagnostic_log.append("info", {
        "id": ctx.run_id,
        "uploadedImages": len(ctx.uploaded_assets),
        "subjectUploaded": ctx.subject_upload is not None,
        "model": request.tier,
    })
    ctx.log(f"Uploaded {completed} reference image(s)")
