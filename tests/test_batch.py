import math
import threading
import time
from pathlib import Path
from media_indexer import config
from media_indexer.indexing.batch import BatchProcessor
from media_indexer.indexing.token import IndexingToken
from media_indexer.models import AssetRecord, ScanCandidate
from media_indexer.protocol import PausedEvent, ProgressEvent
from media_indexer.scanning.filesystem import DirectoryScanner
from media_indexer.scanning.hasher import asset_id

def make_candidates(root: Path, count: int):
    root.mkdir(parents=True, exist_ok=True)
    out = []
    for i in range(count):
        p = root / f"img{i:03d}.jpg"
        p.write_bytes(f"image {i}".encode())
        out.append(ScanCandidate(p, config.PHOTO))
    return out

def run(processor, candidates, mount, events, token=None):
    return processor.process(
        candidates,
        volume_uuid="vol-1",
        mount_point=str(mount),
        cache_dir=str(mount / ".cache"),
        token=token or IndexingToken(),
        emit=events,
    )

def test_builds_asset_records(media_tree, events):
    candidates = DirectoryScanner().scan(media_tree)

    outcome = run(BatchProcessor(batch_delay=0), candidates, media_tree, events)

    assert outcome.total == 4
    assert outcome.indexed == 4
    assert not outcome.cancelled
    rec = next(r for r in outcome.results if r.file_name == "clip.mp4")
    assert isinstance(rec, AssetRecord)
    assert rec.media_type == "video"
    assert rec.relative_path == str(Path("shoot") / "clip.mp4")
    assert rec.id == asset_id("vol-1", rec.relative_path)
    assert rec.file_size == 5000
    assert rec.volume_uuid == "vol-1"
    assert rec.needs_thumbnail and rec.needs_metadata
    assert rec.status == "online"
    assert rec.rating == 0 and rec.tags == [] and rec.color_label is None
    assert rec.thumbnail_paths == [] and rec.proxy_path is None
    assert rec.created_at.tzinfo is not None

def test_progress_after_every_batch(tmp_path, events):
    candidates = make_candidates(tmp_path / "vol", 12)

    run(BatchProcessor(batch_size=5, batch_delay=0), candidates, tmp_path / "vol", events)

    progress = events.of(ProgressEvent)
    assert [p.indexed for p in progress] == [5, 10, 12]
    assert all(p.total == 12 and p.status == "indexing" for p in progress)
    assert progress[0].current_file == str(candidates[4].path)
    assert progress[-1].current_file == str(candidates[-1].path)

def test_failed_candidate_is_dropped(tmp_path, events):
    candidates = make_candidates(tmp_path / "vol", 4)
    candidates.insert(2, ScanCandidate(tmp_path / "vol" / "vanished.jpg", config.PHOTO))

    outcome = run(BatchProcessor(batch_size=2, batch_delay=0), candidates, tmp_path / "vol", events)

    assert outcome.total == 5
    assert outcome.indexed == 4
    assert "vanished.jpg" not in {r.file_name for r in outcome.results}
    assert events.of(ProgressEvent)[-1].indexed == 4

def test_throttle_delay_is_honoured(tmp_path, events):
    candidates = make_candidates(tmp_path / "vol", 12)
    delay = 0.05
    batches = math.ceil(12 / 4)

    t0 = time.perf_counter()
    run(BatchProcessor(batch_size=4, batch_delay=delay), candidates, tmp_path / "vol", events)
    elapsed = time.perf_counter() - t0

    assert elapsed >= (batches - 1) * delay * 0.9
    # No delay after the final batch
    assert elapsed < (batches + 5) * delay

def test_batch_members_run_concurrently(tmp_path, events, monkeypatch):
    candidates = make_candidates(tmp_path / "vol", 10)
    processor = BatchProcessor(batch_size=5, batch_delay=0)
    real_build = processor.build_record

    def slow_build(candidate, volume_uuid, mount_point):
        time.sleep(0.1)
        return real_build(candidate, volume_uuid, mount_point)
    monkeypatch.setattr(processor, "build_record", slow_build)

    t0 = time.perf_counter()
    outcome = run(processor, candidates, tmp_path / "vol", events)
    elapsed = time.perf_counter() - t0

    assert outcome.indexed == 10
    # Serial would take ~1s; two concurrent batches take ~0.2s
    assert elapsed < 0.8

def test_cancel_before_batch_stops(tmp_path, events):
    candidates = make_candidates(tmp_path / "vol", 10)
    token = IndexingToken()
    processor = BatchProcessor(batch_size=2, batch_delay=0)

    def emit(event):
        events(event)
        if isinstance(event, ProgressEvent) and event.indexed == 4:
            token.cancel()

    outcome = processor.process(candidates, "vol-1", str(tmp_path / "vol"), str(tmp_path), token, emit)

    assert outcome.cancelled
    assert outcome.indexed == 4
    assert len(outcome.results) == 4
    assert outcome.total == 10

def test_pause_then_resume_continues_where_it_left_off(tmp_path, events):
    candidates = make_candidates(tmp_path / "vol", 10)
    token = IndexingToken()
    processor = BatchProcessor(batch_size=2, batch_delay=0, poll_interval=0.02)
    paused_at = {}

    def emit(event):
        events(event)
        if isinstance(event, ProgressEvent) and event.indexed == 4 and not paused_at:
            paused_at["t"] = time.perf_counter()
            token.pause()
            threading.Timer(0.2, token.resume).start()

    outcome = processor.process(candidates, "vol-1", str(tmp_path / "vol"), str(tmp_path), token, emit)

    paused = events.of(PausedEvent)
    # One paused event per poll while paused
    assert len(paused) >= 3
    assert all(p.indexed == 4 and p.total == 10 for p in paused)

    progress = [p.indexed for p in events.of(ProgressEvent)]
    assert progress == [2, 4, 6, 8, 10]

    # Nothing re-processed, nothing skipped
    assert outcome.indexed == 10
    assert sorted(r.file_name for r in outcome.results) == sorted(c.path.name for c in candidates)

def test_cancel_while_paused(tmp_path, events):
    candidates = make_candidates(tmp_path / "vol", 6)
    token = IndexingToken()
    token.pause()
    threading.Timer(0.1, token.cancel).start()

    outcome = run(BatchProcessor(batch_size=2, batch_delay=0, poll_interval=0.02),
                  candidates, tmp_path / "vol", events, token=token)

    assert outcome.cancelled
    assert outcome.indexed == 0
    assert events.of(PausedEvent)
    assert not events.of(ProgressEvent)
