"""Transcription orchestrator: segment loop, retry, reassembly and analysis."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Protocol, TypeVar

from ...config import get_settings
from ...data.models import AnalysisRecord, CallStatus
from ...data.segments import SegmentStore, SegmentStoreTimeout, load_segment_paths
from ...data.storage import CallStore
from ...logging import get_logger
from ...services.analysis.client import AnalysisClient
from ...services.errors import is_transient
from ...services.transcription.client import TranscriptionClient
from ...utils.retry import attempt, linear_backoff
from ..audio.decode import mime_type_for
from .jobs import JobStatus, TranscriptionJob

LOGGER = get_logger(__name__)

T = TypeVar("T")

TRANSCRIPTION_BAND = 80
ANALYSIS_START = 85
SEGMENT_SEPARATOR = "\n\n"
FALLBACK_ERROR = "Transcription failed"


@dataclass
class TranscriptionRequest:
    call_id: str
    file_name: str
    file_path: Optional[str] = None
    segment_paths: List[str] = field(default_factory=list)
    on_complete: Optional[Callable[[str], None]] = None
    on_error: Optional[Callable[[str], None]] = None

    def validate(self) -> None:
        if not self.call_id:
            raise ValueError("Missing call id")
        if not self.segment_paths and not self.file_path:
            raise ValueError("Missing file path or segment paths")


class JobUpdater(Protocol):
    def update_job(self, job_id: str, **changes) -> Optional[TranscriptionJob]:
        ...


def segment_progress(index: int, total: int) -> int:
    """Progress published before segment ``index`` of ``total`` starts."""

    return int(math.floor(((index + 0.5) / total) * TRANSCRIPTION_BAND + 0.5))


def join_transcripts(parts: List[str]) -> str:
    return SEGMENT_SEPARATOR.join(part.strip() for part in parts if part and part.strip())


class TranscriptionOrchestrator:
    """Drive one call through transcription and analysis."""

    def __init__(
        self,
        segment_store: SegmentStore,
        transcription: TranscriptionClient,
        analysis: AnalysisClient,
        calls: CallStore,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        store_timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.segment_store = segment_store
        self.transcription = transcription
        self.analysis = analysis
        self.calls = calls
        self.max_attempts = max_attempts or settings.retry_attempts
        self.base_delay = settings.retry_base_delay if base_delay is None else base_delay
        self.sleep = sleep
        self.store_timeout = store_timeout or settings.request_timeout

    async def run(self, job_id: str, request: TranscriptionRequest, jobs: JobUpdater) -> Optional[str]:
        """Run the pipeline; return the transcript, or ``None`` when the job failed."""

        try:
            transcript = await self._transcribe(job_id, request, jobs)

            jobs.update_job(job_id, status=JobStatus.ANALYZING, progress=ANALYSIS_START)
            result = await self.analysis.analyze(transcript)
            record: AnalysisRecord = await asyncio.to_thread(
                self.calls.save_analysis, request.call_id, transcript, result
            )
            await asyncio.to_thread(self.calls.update_status, request.call_id, CallStatus.COMPLETED)
            LOGGER.info(
                "Analysis saved for call %s: %s (%d)",
                request.call_id,
                record.outcome,
                record.outcome_score,
            )
        except Exception as exc:
            message = str(exc).strip() or FALLBACK_ERROR
            LOGGER.error("Job %s failed: %s", job_id, message)
            await self._mark_failed(request.call_id)
            jobs.update_job(job_id, status=JobStatus.ERROR, error=message)
            _fire(request.on_error, message)
            return None

        jobs.update_job(job_id, status=JobStatus.COMPLETE, progress=100)
        _fire(request.on_complete, transcript)
        return transcript

    async def _transcribe(self, job_id: str, request: TranscriptionRequest, jobs: JobUpdater) -> str:
        jobs.update_job(job_id, status=JobStatus.TRANSCRIBING)
        await asyncio.to_thread(self.calls.update_status, request.call_id, CallStatus.PROCESSING)

        paths = list(request.segment_paths)
        if not paths:
            manifest_path = request.file_path or ""
            paths = await self._retrying(
                lambda: self._bounded(
                    load_segment_paths(self.segment_store, manifest_path),
                    f"Reading {manifest_path}",
                )
            )
        total = len(paths)
        jobs.update_job(job_id, total_segments=total)

        parts: List[str] = []
        for index, path in enumerate(paths):
            jobs.update_job(
                job_id,
                current_segment=index + 1,
                progress=segment_progress(index, total),
            )
            parts.append(await self._transcribe_segment(path, index, total))
        return join_transcripts(parts)

    async def _transcribe_segment(self, path: str, index: int, total: int) -> str:
        mime_hint = mime_type_for(path)

        async def _call() -> str:
            # the segment is only held for the duration of one attempt
            segment = await self._bounded(self.segment_store.get(path), f"Downloading {path}")
            return await self.transcription.transcribe(
                segment,
                mime_hint=mime_hint,
                segment_index=index,
                segment_count=total,
            )

        return await self._retrying(_call)

    async def _retrying(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await attempt(
            fn,
            self.max_attempts,
            linear_backoff(self.base_delay),
            retry_if=is_transient,
            sleep=self.sleep,
        )

    async def _bounded(self, awaitable: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.store_timeout)
        except asyncio.TimeoutError as exc:
            raise SegmentStoreTimeout(
                f"{action} timed out after {self.store_timeout:g}s"
            ) from exc

    async def _mark_failed(self, call_id: str) -> None:
        try:
            await asyncio.to_thread(self.calls.update_status, call_id, CallStatus.FAILED)
        except Exception:
            LOGGER.exception("Could not mark call %s as failed", call_id)


def _fire(callback: Optional[Callable[[str], None]], value: str) -> None:
    if callback is None:
        return
    try:
        callback(value)
    except Exception:  # pragma: no cover - callbacks should not break pipeline
        LOGGER.exception("Job callback raised an exception")


__all__ = [
    "JobUpdater",
    "TranscriptionOrchestrator",
    "TranscriptionRequest",
    "join_transcripts",
    "segment_progress",
]
