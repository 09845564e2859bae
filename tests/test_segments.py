import asyncio
import json

import pytest

from callsense.data.models import AudioSegment, SegmentationResult
from callsense.data.segments import (
    MANIFEST_NAME,
    FileSegmentStore,
    MemorySegmentStore,
    SegmentStoreError,
    load_segment_paths,
    upload_prepared,
)


def _result(count: int) -> SegmentationResult:
    segments = [
        AudioSegment(index=i, name=f"part-{i:03d}.wav", data=f"segment-{i}".encode(), duration=2.0)
        for i in range(count)
    ]
    return SegmentationResult(
        kind="single" if count == 1 else "chunked",
        sample_rate=16000,
        chunk_seconds=2.0,
        duration=2.0 * count,
        segments=segments,
    )


def test_single_segment_is_stored_without_manifest() -> None:
    store = MemorySegmentStore()

    stored = asyncio.run(upload_prepared(store, "owner-1", "job1", _result(1), "call.mp3"))

    assert stored.file_path == "owner-1/job1.wav"
    assert stored.segment_paths == ["owner-1/job1.wav"]
    assert stored.manifest is None
    assert store.objects == {"owner-1/job1.wav": b"segment-0"}


def test_chunked_upload_writes_parts_and_camel_case_manifest() -> None:
    store = MemorySegmentStore()

    stored = asyncio.run(upload_prepared(store, "owner-1", "job1", _result(3), "call.mp3"))

    assert stored.file_path == f"owner-1/job1/{MANIFEST_NAME}"
    assert stored.segment_paths == [
        "owner-1/job1/part-000.wav",
        "owner-1/job1/part-001.wav",
        "owner-1/job1/part-002.wav",
    ]
    manifest = json.loads(store.objects[stored.file_path])
    assert manifest["version"] == 1
    assert manifest["originalFileName"] == "call.mp3"
    assert manifest["sampleRate"] == 16000
    assert manifest["chunkSeconds"] == 2.0
    assert manifest["chunks"] == stored.segment_paths
    assert "createdAt" in manifest


def test_manifest_order_is_preserved_on_load(tmp_path) -> None:
    store = FileSegmentStore(tmp_path)

    async def scenario():
        stored = await upload_prepared(store, "owner-1", "job1", _result(12), "call.wav")
        return stored, await load_segment_paths(store, stored.file_path)

    stored, paths = asyncio.run(scenario())

    assert paths == stored.segment_paths
    assert paths[10].endswith("part-010.wav")
    assert (tmp_path / "owner-1" / "job1" / "part-011.wav").read_bytes() == b"segment-11"


def test_plain_file_path_loads_as_single_segment() -> None:
    paths = asyncio.run(load_segment_paths(MemorySegmentStore(), "owner-1/job1.wav"))

    assert paths == ["owner-1/job1.wav"]


def test_invalid_manifest_is_rejected() -> None:
    store = MemorySegmentStore()
    store.objects["owner-1/job1/manifest.json"] = b'{"chunks": []}'

    with pytest.raises(SegmentStoreError):
        asyncio.run(load_segment_paths(store, "owner-1/job1/manifest.json"))


@pytest.mark.parametrize("path", ["../escape.wav", "/etc/passwd", "owner-1/../owner-2/x.wav", "owner-2/x.wav"])
def test_writes_outside_owner_area_are_rejected(tmp_path, path) -> None:
    for store in (MemorySegmentStore(), FileSegmentStore(tmp_path)):
        with pytest.raises(SegmentStoreError):
            asyncio.run(store.put("owner-1", path, b"data"))


def test_missing_segment_is_a_store_error(tmp_path) -> None:
    for store in (MemorySegmentStore(), FileSegmentStore(tmp_path)):
        with pytest.raises(SegmentStoreError, match="Failed to download audio file"):
            asyncio.run(store.get("owner-1/nothing.wav"))
