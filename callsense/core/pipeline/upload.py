"""Upload flow: prepare a recording, store it, create the call and start a job."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from ...data.models import CallRecord
from ...data.segments import SegmentStore, StoredAudio, upload_prepared
from ...data.storage import CallStore
from ...logging import get_logger
from ..audio.segmenter import SegmentationOptions, prepare_async
from .jobs import JobScheduler
from .orchestrator import TranscriptionRequest

LOGGER = get_logger(__name__)


@dataclass
class Submission:
    call: CallRecord
    job_id: str
    stored: StoredAudio
    duration: float
    segment_count: int


async def submit_recording(
    scheduler: JobScheduler,
    segment_store: SegmentStore,
    calls: CallStore,
    source: bytes,
    file_name: str,
    owner_id: str,
    display_name: Optional[str] = None,
    options: Optional[SegmentationOptions] = None,
    on_prepare_progress: Optional[Callable[[int], None]] = None,
    on_complete: Optional[Callable[[str], None]] = None,
    on_error: Optional[Callable[[str], None]] = None,
) -> Submission:
    """Segment and upload ``source`` then hand it to the scheduler.

    Decode and segmentation errors propagate before anything is stored, so no
    call record or job exists for an unreadable upload.
    """

    if not owner_id:
        raise ValueError("Missing owner id")

    prepared = await prepare_async(source, options, on_prepare_progress)
    upload_id = uuid.uuid4().hex[:16]
    stored = await upload_prepared(segment_store, owner_id, upload_id, prepared, file_name)
    call = calls.create_call(
        owner=owner_id,
        file_path=stored.file_path,
        file_name=file_name,
        display_name=display_name,
        duration_seconds=prepared.duration,
    )
    job_id = scheduler.start_job(
        TranscriptionRequest(
            call_id=call.id,
            file_name=display_name or file_name,
            file_path=stored.file_path,
            segment_paths=stored.segment_paths,
            on_complete=on_complete,
            on_error=on_error,
        )
    )
    LOGGER.info(
        "Submitted %s as call %s (%d segment(s), job %s)",
        file_name,
        call.id,
        len(stored.segment_paths),
        job_id,
    )
    return Submission(
        call=call,
        job_id=job_id,
        stored=stored,
        duration=prepared.duration,
        segment_count=len(prepared.segments),
    )


__all__ = ["Submission", "submit_recording"]
