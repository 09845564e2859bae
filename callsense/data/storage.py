"""SQLite storage helpers for call and analysis records."""

from __future__ import annotations

import json
import math
import sqlite3
import time
import uuid
from pathlib import Path
from typing import List, Optional

from .models import AnalysisRecord, AnalysisResult, CallRecord, CallStats, CallStatus

_JSON_COLUMNS = (
    "key_strengths",
    "areas_for_improvement",
    "missed_opportunities",
    "cialdini_principles",
    "pitch_framework_analysis",
    "persuasion_techniques",
    "revival_strategies",
    "key_moments",
    "client_objections",
)

_CALL_COLUMNS = (
    "id, owner, file_path, file_name, display_name, status, "
    "duration_seconds, created_at, updated_at"
)


class DuplicateAnalysisError(RuntimeError):
    """Raised when a second analysis is stored for the same call."""


class CallStore:
    """Persistent storage for calls and their analyses built on SQLite."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def initialize(self) -> None:
        json_columns = ",\n".join(f"                    {name} TEXT" for name in _JSON_COLUMNS)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS calls (
                    id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    display_name TEXT,
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
                    duration_seconds REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS analyses (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    call_id TEXT NOT NULL UNIQUE,
                    owner TEXT NOT NULL,
                    transcript TEXT NOT NULL,
                    outcome TEXT NOT NULL CHECK (outcome IN ('won', 'lost', 'unclear')),
                    outcome_score INTEGER CHECK (outcome_score >= 0 AND outcome_score <= 100),
                    executive_summary TEXT,
                    follow_up_script TEXT,
{json_columns},
                    created_at REAL NOT NULL,
                    FOREIGN KEY(call_id) REFERENCES calls(id) ON DELETE CASCADE
                )
                """
            )
            conn.commit()

    def create_call(
        self,
        owner: str,
        file_path: str,
        file_name: str,
        display_name: Optional[str] = None,
        duration_seconds: Optional[float] = None,
    ) -> CallRecord:
        now = time.time()
        record = CallRecord(
            id=uuid.uuid4().hex,
            owner=owner,
            file_path=file_path,
            file_name=file_name,
            display_name=display_name,
            duration_seconds=duration_seconds,
            status=CallStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO calls ({_CALL_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.owner,
                    record.file_path,
                    record.file_name,
                    record.display_name,
                    record.status.value,
                    record.duration_seconds,
                    record.created_at,
                    record.updated_at,
                ),
            )
            conn.commit()
        return record

    def update_status(self, call_id: str, status: CallStatus) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE calls SET status = ?, updated_at = ? WHERE id = ?",
                (CallStatus(status).value, time.time(), call_id),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise KeyError(f"Unknown call: {call_id}")

    def fetch_call(self, call_id: str) -> Optional[CallRecord]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_CALL_COLUMNS} FROM calls WHERE id = ?",
                (call_id,),
            ).fetchone()
        return _call_from_row(row) if row else None

    def list_calls(self, owner: Optional[str] = None) -> List[CallRecord]:
        query = f"SELECT {_CALL_COLUMNS} FROM calls"
        params: tuple = ()
        if owner is not None:
            query += " WHERE owner = ?"
            params = (owner,)
        query += " ORDER BY created_at DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_call_from_row(row) for row in rows]

    def save_analysis(self, call_id: str, transcript: str, result: AnalysisResult) -> AnalysisRecord:
        """Insert the analysis for ``call_id``. Analyses are never updated."""

        call = self.fetch_call(call_id)
        if call is None:
            raise KeyError(f"Unknown call: {call_id}")

        record = AnalysisRecord(
            call_id=call_id,
            owner=call.owner,
            transcript=transcript,
            created_at=time.time(),
            **result.model_dump(),
        )
        columns = (
            "call_id, owner, transcript, outcome, outcome_score, executive_summary, "
            "follow_up_script, " + ", ".join(_JSON_COLUMNS) + ", created_at"
        )
        values = [
            record.call_id,
            record.owner,
            record.transcript,
            record.outcome,
            record.outcome_score,
            record.executive_summary,
            record.follow_up_script,
            *(json.dumps(getattr(record, name)) for name in _JSON_COLUMNS),
            record.created_at,
        ]
        placeholders = ", ".join("?" for _ in values)
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    f"INSERT INTO analyses ({columns}) VALUES ({placeholders})",
                    values,
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            raise DuplicateAnalysisError(f"Call {call_id} already has an analysis") from exc
        record.id = cursor.lastrowid
        return record

    def fetch_analysis(self, call_id: str) -> Optional[AnalysisRecord]:
        columns = (
            "id, call_id, owner, transcript, outcome, outcome_score, executive_summary, "
            "follow_up_script, " + ", ".join(_JSON_COLUMNS) + ", created_at"
        )
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                f"SELECT {columns} FROM analyses WHERE call_id = ?",
                (call_id,),
            ).fetchone()
        if not row:
            return None
        data = dict(row)
        for name in _JSON_COLUMNS:
            raw = data.get(name)
            data[name] = json.loads(raw) if raw else None
        return AnalysisRecord(**data)

    def summarize(self, owner: Optional[str] = None) -> CallStats:
        """Count calls and analysed outcomes. The average score rounds half up."""

        where = " WHERE owner = ?" if owner is not None else ""
        params: tuple = (owner,) if owner is not None else ()
        with self._connect() as conn:
            (total_calls,) = conn.execute(f"SELECT COUNT(*) FROM calls{where}", params).fetchone()
            analysed, won, lost, score_sum = conn.execute(
                "SELECT COUNT(*), "
                "COALESCE(SUM(outcome = 'won'), 0), "
                "COALESCE(SUM(outcome = 'lost'), 0), "
                "COALESCE(SUM(COALESCE(outcome_score, 0)), 0) "
                f"FROM analyses{where}",
                params,
            ).fetchone()
        average = math.floor(score_sum / analysed + 0.5) if analysed else 0
        return CallStats(total_calls=total_calls, won=won, lost=lost, average_score=average)


def _call_from_row(row) -> CallRecord:
    return CallRecord(
        id=row[0],
        owner=row[1],
        file_path=row[2],
        file_name=row[3],
        display_name=row[4],
        status=CallStatus(row[5]),
        duration_seconds=row[6],
        created_at=row[7],
        updated_at=row[8],
    )


__all__ = ["CallStore", "DuplicateAnalysisError"]
