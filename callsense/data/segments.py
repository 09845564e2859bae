"""Content store for prepared audio segments and their manifests."""

from __future__ import annotations

import abc
import asyncio
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..logging import get_logger
from ..services.errors import CallsenseError
from .models import Manifest, SegmentationResult

LOGGER = get_logger(__name__)

MANIFEST_NAME = "manifest.json"


class SegmentStoreError(CallsenseError):
    """Raised when a segment cannot be stored or retrieved."""


class SegmentStoreTimeout(SegmentStoreError):
    """A store read did not finish within the caller's timeout."""

    transient = True


def _normalise_path(path: str) -> PurePosixPath:
    pure = PurePosixPath(path)
    if pure.is_absolute() or not pure.parts or any(part in ("", ".", "..") for part in pure.parts):
        raise SegmentStoreError(f"Invalid storage path: {path!r}")
    return pure


def _check_owner(owner_id: str, path: PurePosixPath) -> None:
    if len(path.parts) < 2 or path.parts[0] != owner_id:
        raise SegmentStoreError(f"Path {str(path)!r} is outside the storage area of {owner_id!r}")


class SegmentStore(abc.ABC):
    """Minimal put/get contract of the object store holding uploaded audio."""

    @abc.abstractmethod
    async def put(self, owner_id: str, path: str, data: bytes) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, path: str) -> bytes:
        raise NotImplementedError


class FileSegmentStore(SegmentStore):
    """Segment store backed by a local directory tree."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        return self.root.joinpath(*_normalise_path(path).parts)

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def put(self, owner_id: str, path: str, data: bytes) -> None:
        _check_owner(owner_id, _normalise_path(path))
        target = self._resolve(path)
        await asyncio.to_thread(self._write, target, data)
        LOGGER.debug("Stored %d bytes at %s", len(data), target)

    async def get(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as exc:
            raise SegmentStoreError(f"Failed to download audio file: {path}") from exc


class MemorySegmentStore(SegmentStore):
    """In-process segment store, useful for dry runs."""

    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}

    async def put(self, owner_id: str, path: str, data: bytes) -> None:
        pure = _normalise_path(path)
        _check_owner(owner_id, pure)
        self.objects[str(pure)] = bytes(data)

    async def get(self, path: str) -> bytes:
        try:
            return self.objects[str(_normalise_path(path))]
        except KeyError as exc:
            raise SegmentStoreError(f"Failed to download audio file: {path}") from exc


@dataclass
class StoredAudio:
    """Where an upload landed: the call's file path and its ordered segments."""

    file_path: str
    segment_paths: List[str] = field(default_factory=list)
    manifest: Optional[Manifest] = None


async def upload_prepared(
    store: SegmentStore,
    owner_id: str,
    job_id: str,
    result: SegmentationResult,
    original_file_name: str,
) -> StoredAudio:
    """Persist prepared segments, plus a manifest when there is more than one."""

    if not result.segments:
        raise SegmentStoreError("Nothing to upload: segmentation produced no segments")

    if not result.is_chunked:
        path = f"{owner_id}/{job_id}.wav"
        await store.put(owner_id, path, result.segments[0].data)
        return StoredAudio(file_path=path, segment_paths=[path])

    paths: List[str] = []
    for segment in result.segments:
        path = f"{owner_id}/{job_id}/{segment.name}"
        await store.put(owner_id, path, segment.data)
        paths.append(path)

    manifest = Manifest(
        original_file_name=original_file_name,
        sample_rate=result.sample_rate,
        chunk_seconds=result.chunk_seconds,
        chunks=paths,
    )
    manifest_path = f"{owner_id}/{job_id}/{MANIFEST_NAME}"
    await store.put(owner_id, manifest_path, manifest.to_json().encode("utf-8"))
    LOGGER.info("Uploaded %d segments with manifest %s", len(paths), manifest_path)
    return StoredAudio(file_path=manifest_path, segment_paths=paths, manifest=manifest)


async def load_segment_paths(store: SegmentStore, file_path: str) -> List[str]:
    """Return the ordered segment paths referenced by a call's ``file_path``."""

    if PurePosixPath(file_path).name != MANIFEST_NAME:
        return [file_path]
    raw = await store.get(file_path)
    try:
        manifest = Manifest.model_validate_json(raw)
    except ValidationError as exc:
        raise SegmentStoreError(f"Invalid manifest at {file_path}") from exc
    return list(manifest.chunks)


__all__ = [
    "FileSegmentStore",
    "MANIFEST_NAME",
    "MemorySegmentStore",
    "SegmentStore",
    "SegmentStoreError",
    "SegmentStoreTimeout",
    "StoredAudio",
    "load_segment_paths",
    "upload_prepared",
]
