"""
Variation Fan-Out Stage

The provider has no native "number of images" option, so each variation is a
separate generateContent call with the same composed payload. All variations
start together; each one retries on its own when the provider reports it is
overloaded (HTTP 503), waiting a little longer before every retry. Any other
failure settles that variation immediately without touching its siblings.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import requests
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ..core.constants import (
    MAX_GENERATION_TRIES,
    PROGRESS_RETRYING,
    RETRY_BACKOFF_STEP_SECONDS,
    TRANSIENT_STATUS_CODES,
)
from ..core.diagnostics import diagnostic_log
from ..core.errors import ProviderRejected, TransientProviderOverload
from ..core.gemini_client import GeminiRestClient
from ..pipeline.context import AttemptOutcome, VariationAttempt, clamp_variation_count
from ..pipeline.events import EventEmitter, progress_event
from .request_composer import ProviderPayload
from .response_extractor import extract

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


class VariationFanOut:
    """Issues one payload N times concurrently and settles every attempt."""

    def __init__(
        self,
        client: GeminiRestClient,
        max_tries: int = MAX_GENERATION_TRIES,
        backoff_step: float = RETRY_BACKOFF_STEP_SECONDS,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.client = client
        self.max_tries = max_tries
        self.backoff_step = backoff_step
        self._sleep = sleep

    def _call_provider(self, payload: ProviderPayload) -> Dict[str, Any]:
        """Blocking single call; classifies the outcome by raising."""
        try:
            response = self.client.generate_content(payload.model_id, payload.body)
        except requests.RequestException as e:
            raise ProviderRejected(f"Provider request failed: {e}")

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientProviderOverload(response.status_code, response.text[:500])
        if not response.ok:
            raise ProviderRejected(
                f"Provider rejected request: HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text[:500],
            )
        try:
            return response.json()
        except ValueError:
            raise ProviderRejected("Provider returned a malformed response",
                                   status_code=response.status_code, body=response.text[:500])

    def _report_retry(self, retry_state: RetryCallState, attempt: VariationAttempt,
                      emit: Optional[EventEmitter], run_id: Optional[str]) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        tries = retry_state.attempt_number
        logger.warning(
            f"[{run_id}] Variation {attempt.index + 1}: provider overloaded, "
            f"retry {tries}/{self.max_tries} in {delay:g}s"
        )
        if emit:
            emit(progress_event(
                "retrying",
                f"MODEL BUSY, RETRYING ({tries}/{self.max_tries})...",
                PROGRESS_RETRYING,
                run_id,
            ))

    async def _run_attempt(self, index: int, payload: ProviderPayload,
                           emit: Optional[EventEmitter], run_id: Optional[str]) -> VariationAttempt:
        attempt = VariationAttempt(index=index)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_tries),
            wait=wait_incrementing(start=self.backoff_step, increment=self.backoff_step),
            retry=retry_if_exception_type(TransientProviderOverload),
            sleep=self._sleep,
            before_sleep=lambda state: self._report_retry(state, attempt, emit, run_id),
            reraise=True,
        )

        response_data: Any = None
        try:
            async for try_state in retrying:
                with try_state:
                    attempt.try_number = try_state.retry_state.attempt_number
                    response_data = await asyncio.to_thread(self._call_provider, payload)
        except TransientProviderOverload as e:
            attempt.outcome = AttemptOutcome.FAILED_TRANSIENT
            attempt.error = str(e)
            diagnostic_log.append("error", {
                "id": run_id, "variation": index + 1, "status": e.status_code,
                "note": f"overloaded after {attempt.try_number} tries",
            })
            return attempt
        except ProviderRejected as e:
            attempt.outcome = AttemptOutcome.FAILED_FATAL
            attempt.error = str(e)
            diagnostic_log.append("error", {
                "id": run_id, "variation": index + 1, "status": e.status_code, "response": e.body,
            })
            return attempt

        attempt.images = extract(response_data)
        if attempt.images:
            attempt.outcome = AttemptOutcome.SUCCEEDED
        else:
            # Well-formed but image-less (e.g. text-only or safety-blocked)
            attempt.outcome = AttemptOutcome.FAILED_FATAL
            attempt.error = "No images in response"
            candidates = response_data.get("candidates") if isinstance(response_data, dict) else None
            diagnostic_log.append("info", {
                "id": run_id,
                "variation": index + 1,
                "note": "No images in response",
                "hasCandidate": bool(candidates),
                "responsePreview": str(response_data)[:500],
            })
        return attempt

    async def run(
        self,
        payload: ProviderPayload,
        variation_count: Optional[int] = None,
        emit: Optional[EventEmitter] = None,
        run_id: Optional[str] = None,
    ) -> List[VariationAttempt]:
        """Run all variations concurrently; returns attempts ordered by index."""
        count = clamp_variation_count(
            payload.variation_count if variation_count is None else variation_count
        )
        logger.info(f"[{run_id}] Processing {count} variation(s) in parallel...")

        tasks = [self._run_attempt(i, payload, emit, run_id) for i in range(count)]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        attempts: List[VariationAttempt] = []
        for i, result in enumerate(results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(f"[{run_id}] Variation {i + 1} crashed: {result}", exc_info=result)
                attempts.append(VariationAttempt(
                    index=i, outcome=AttemptOutcome.FAILED_FATAL, error=str(result)
                ))
            else:
                attempts.append(result)

        succeeded = sum(1 for a in attempts if a.succeeded)
        logger.info(f"[{run_id}] {succeeded}/{count} variation(s) succeeded")
        return attempts
