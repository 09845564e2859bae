"""Data models used by callsense."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

WAV_MIME_TYPE = "audio/wav"


@dataclass(frozen=True, slots=True)
class AudioSegment:
    """One independently decodable slice of a source recording."""

    index: int
    name: str
    data: bytes
    duration: float

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class SegmentationResult:
    """Output of :func:`callsense.core.audio.segmenter.prepare`.

    ``kind`` is ``"single"`` when the whole recording fits into one segment and
    ``"chunked"`` otherwise. Both kinds carry their segments in source order.
    """

    kind: Literal["single", "chunked"]
    sample_rate: int
    chunk_seconds: float
    duration: float
    segments: List[AudioSegment] = field(default_factory=list)

    @property
    def is_chunked(self) -> bool:
        return self.kind == "chunked"

    @property
    def total_bytes(self) -> int:
        return sum(segment.size for segment in self.segments)


class Manifest(BaseModel):
    """Persisted description of a multi-segment upload."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = 1
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="createdAt"
    )
    original_file_name: str = Field(alias="originalFileName")
    sample_rate: int = Field(alias="sampleRate")
    chunk_seconds: float = Field(alias="chunkSeconds")
    chunks: List[str] = Field(min_length=1)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class CallStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CallRecord:
    id: str
    owner: str
    file_path: str
    file_name: str
    status: CallStatus = CallStatus.PENDING
    display_name: Optional[str] = None
    duration_seconds: Optional[float] = None
    created_at: float = 0.0
    updated_at: float = 0.0


@dataclass
class CallStats:
    """Headline numbers for a set of calls."""

    total_calls: int = 0
    won: int = 0
    lost: int = 0
    average_score: int = 0


_LIST_FIELDS = (
    "key_strengths",
    "areas_for_improvement",
    "missed_opportunities",
    "cialdini_principles",
    "persuasion_techniques",
    "revival_strategies",
    "key_moments",
    "client_objections",
)


class AnalysisResult(BaseModel):
    """Structured scoring of a call as returned by the analysis provider."""

    model_config = ConfigDict(extra="ignore")

    outcome: Literal["won", "lost", "unclear"] = "unclear"
    outcome_score: int = 50
    executive_summary: Optional[str] = None
    key_strengths: List[Dict[str, Any]] = Field(default_factory=list)
    areas_for_improvement: List[Dict[str, Any]] = Field(default_factory=list)
    missed_opportunities: List[Dict[str, Any]] = Field(default_factory=list)
    cialdini_principles: List[Dict[str, Any]] = Field(default_factory=list)
    pitch_framework_analysis: Optional[Dict[str, Any]] = None
    persuasion_techniques: List[Dict[str, Any]] = Field(default_factory=list)
    revival_strategies: List[Dict[str, Any]] = Field(default_factory=list)
    follow_up_script: Optional[str] = None
    key_moments: List[Dict[str, Any]] = Field(default_factory=list)
    client_objections: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("outcome", mode="before")
    @classmethod
    def _normalise_outcome(cls, value: Any) -> Any:
        if not value:
            return "unclear"
        return str(value).strip().lower()

    @field_validator("outcome_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> Any:
        if value is None or value == "":
            return 50
        if isinstance(value, bool):
            raise ValueError("outcome_score must be a number")
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return value
        if isinstance(value, (int, float)):
            if not math.isfinite(value):
                raise ValueError("outcome_score must be a finite number")
            return min(max(int(round(value)), 0), 100)
        return value


class AnalysisRecord(AnalysisResult):
    """An :class:`AnalysisResult` persisted against a call."""

    id: Optional[int] = None
    call_id: str
    owner: str
    transcript: str
    created_at: float = 0.0


__all__ = [
    "AnalysisRecord",
    "AnalysisResult",
    "AudioSegment",
    "CallRecord",
    "CallStats",
    "CallStatus",
    "Manifest",
    "SegmentationResult",
    "WAV_MIME_TYPE",
]
