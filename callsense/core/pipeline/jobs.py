"""In-memory job tracking for transcription pipelines."""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from ...logging import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from .orchestrator import TranscriptionOrchestrator, TranscriptionRequest

LOGGER = get_logger(__name__)


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.ERROR)


_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.QUEUED, JobStatus.TRANSCRIBING, JobStatus.ERROR},
    JobStatus.TRANSCRIBING: {JobStatus.TRANSCRIBING, JobStatus.ANALYZING, JobStatus.ERROR},
    JobStatus.ANALYZING: {JobStatus.ANALYZING, JobStatus.COMPLETE, JobStatus.ERROR},
    JobStatus.COMPLETE: {JobStatus.COMPLETE},
    JobStatus.ERROR: {JobStatus.ERROR},
}


class InvalidTransition(RuntimeError):
    """Raised when a job update would move it backwards through its lifecycle."""


@dataclass(frozen=True)
class TranscriptionJob:
    """Snapshot of one tracked job. Snapshots are immutable; updates replace them."""

    id: str
    call_id: str
    file_name: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    current_segment: int = 0
    total_segments: int = 0
    error: Optional[str] = None


JobListener = Callable[[TranscriptionJob], None]


class JobScheduler:
    """Tracks concurrently running jobs and is the only owner of their state.

    All mutation goes through :meth:`update_job` and :meth:`dismiss_job`.
    Running pipelines never hold a job object; they address it by id, so a
    dismissed job keeps running but its updates are no longer observed.
    """

    def __init__(self, orchestrator: "TranscriptionOrchestrator") -> None:
        self.orchestrator = orchestrator
        self._jobs: Dict[str, TranscriptionJob] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._listeners: List[JobListener] = []

    def start_job(self, request: "TranscriptionRequest") -> str:
        """Register a job and run its pipeline in the background."""

        request.validate()
        job = TranscriptionJob(
            id=f"job-{uuid.uuid4().hex[:12]}",
            call_id=request.call_id,
            file_name=request.file_name,
            total_segments=len(request.segment_paths),
        )
        loop = asyncio.get_running_loop()
        self._jobs[job.id] = job
        self._notify(job)

        task = loop.create_task(self.orchestrator.run(job.id, request, self), name=job.id)
        self._tasks[job.id] = task
        task.add_done_callback(lambda finished, job_id=job.id: self._on_task_done(job_id, finished))
        LOGGER.info("Started %s for call %s (%s)", job.id, job.call_id, job.file_name)
        return job.id

    def update_job(self, job_id: str, **changes) -> Optional[TranscriptionJob]:
        """Apply ``changes`` to a tracked job; dismissed or unknown jobs are ignored."""

        current = self._jobs.get(job_id)
        if current is None:
            return None

        if "status" in changes:
            status = JobStatus(changes["status"])
            if status not in _TRANSITIONS[current.status]:
                raise InvalidTransition(f"{job_id}: {current.status.value} -> {status.value}")
            changes["status"] = status
        if "progress" in changes:
            progress = min(max(int(changes["progress"]), 0), 100)
            changes["progress"] = max(current.progress, progress)

        updated = dataclasses.replace(current, **changes)
        self._jobs[job_id] = updated
        self._notify(updated)
        return updated

    def dismiss_job(self, job_id: str) -> bool:
        """Stop reporting a job. The pipeline itself is not cancelled."""

        return self._jobs.pop(job_id, None) is not None

    def observe(self) -> List[TranscriptionJob]:
        return list(self._jobs.values())

    def get(self, job_id: str) -> Optional[TranscriptionJob]:
        return self._jobs.get(job_id)

    def subscribe(self, listener: JobListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def wait(self, job_id: str) -> None:
        task = self._tasks.get(job_id)
        if task is not None:
            await task

    async def wait_all(self) -> None:
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks)

    @property
    def running(self) -> int:
        return len(self._tasks)

    def _notify(self, job: TranscriptionJob) -> None:
        for listener in list(self._listeners):
            try:
                listener(job)
            except Exception:  # pragma: no cover - listeners should not break pipelines
                LOGGER.exception("Job listener raised an exception")

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            LOGGER.warning("%s was cancelled", job_id)
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("%s crashed: %s", job_id, exc, exc_info=exc)


__all__ = [
    "InvalidTransition",
    "JobListener",
    "JobScheduler",
    "JobStatus",
    "TranscriptionJob",
]
