import threading
import pytest
from pathlib import Path
from media_indexer.exceptions import IndexerBusyError
from media_indexer.indexing.batch import BatchProcessor
from media_indexer.indexing.controller import IndexingController, Phase
from media_indexer.protocol import (
    CancelCommand,
    CancelledEvent,
    CompletedEvent,
    ErrorEvent,
    PauseCommand,
    PausedEvent,
    ProgressEvent,
    ResumeCommand,
    StartCommand,
)
from media_indexer.scanning.filesystem import DirectoryScanner

def start_cmd(root: Path, **overrides):
    fields = dict(
        dir_path=str(root),
        volume_uuid="vol-1",
        mount_point=str(root),
        cache_dir=str(root / ".cache"),
    )
    fields.update(overrides)
    return StartCommand(**fields)

def fast_controller(events, **kwargs):
    return IndexingController(events, processor=BatchProcessor(batch_delay=0, poll_interval=0.02, **kwargs))

def test_end_to_end_run(media_tree, events):
    controller = fast_controller(events)

    controller.handle(start_cmd(media_tree))

    completed = events.of(CompletedEvent)
    assert len(completed) == 1
    done = completed[0]
    assert done.total == 4
    assert 0 <= len(done.results) <= 4
    assert done.indexed == len(done.results)
    for rec in done.results:
        expected = "video" if rec.file_name.endswith(".mp4") else "photo"
        assert rec.media_type == expected
        assert rec.needs_thumbnail is True
    assert controller.phase == Phase.COMPLETED

def test_event_sequence(media_tree, events):
    controller = fast_controller(events, batch_size=2)

    controller.handle(start_cmd(media_tree))

    progress = events.of(ProgressEvent)
    assert (progress[0].status, progress[0].total, progress[0].indexed) == ("scanning", 0, 0)
    assert (progress[1].status, progress[1].total, progress[1].indexed) == ("indexing", 4, 0)
    assert [p.indexed for p in progress[2:]] == [2, 4]
    assert isinstance(events.events[-1], CompletedEvent)

def test_missing_parameter_is_an_immediate_error(media_tree, events):
    controller = fast_controller(events)

    controller.handle(start_cmd(media_tree, volume_uuid=None))

    assert len(events.events) == 1
    err = events.events[0]
    assert isinstance(err, ErrorEvent)
    assert "volumeUuid" in err.error
    assert not events.of(ProgressEvent)
    assert controller.phase == Phase.ERROR

def test_session_usable_after_error(media_tree, events):
    controller = fast_controller(events)
    controller.handle(start_cmd(media_tree, cache_dir=""))
    controller.handle(start_cmd(media_tree))

    assert len(events.of(ErrorEvent)) == 1
    assert len(events.of(CompletedEvent)) == 1

def test_unexpected_failure_becomes_error_event(media_tree, events, monkeypatch):
    def boom(self, root, token=None):
        raise RuntimeError("disk exploded")
    monkeypatch.setattr(DirectoryScanner, "scan", boom)
    controller = fast_controller(events)

    controller.handle(start_cmd(media_tree))

    assert [e.error for e in events.of(ErrorEvent)] == ["disk exploded"]
    assert not events.of(CompletedEvent)
    assert controller.phase == Phase.ERROR
    assert not controller.is_active

def test_cancel_during_scan(media_tree, events, monkeypatch):
    controller = fast_controller(events)
    real_scan = DirectoryScanner.scan

    def scan_then_cancel(self, root, token=None):
        found = real_scan(self, root, token)
        controller.handle(CancelCommand())
        return found
    monkeypatch.setattr(DirectoryScanner, "scan", scan_then_cancel)

    controller.handle(start_cmd(media_tree))

    cancelled = events.of(CancelledEvent)
    assert len(cancelled) == 1
    assert cancelled[0].indexed is None and cancelled[0].total is None
    assert not events.of(CompletedEvent)
    assert [p.status for p in events.of(ProgressEvent)] == ["scanning"]
    assert controller.phase == Phase.CANCELLED

def test_cancel_during_indexing(tmp_path, events):
    root = tmp_path / "vol"
    root.mkdir()
    for i in range(10):
        (root / f"{i}.jpg").write_bytes(b"x")

    def emit(event):
        events(event)
        if isinstance(event, ProgressEvent) and event.indexed == 2:
            controller.handle(CancelCommand())
    controller = IndexingController(emit, processor=BatchProcessor(batch_size=2, batch_delay=0))

    controller.handle(start_cmd(root))

    assert not events.of(CompletedEvent)
    cancelled = events.of(CancelledEvent)
    assert len(cancelled) == 1
    assert (cancelled[0].indexed, cancelled[0].total) == (2, 10)
    assert controller.session.indexed == 2

def test_pause_and_resume_transitions(tmp_path, events):
    root = tmp_path / "vol"
    root.mkdir()
    for i in range(6):
        (root / f"{i}.jpg").write_bytes(b"x")
    seen_phases = []

    def emit(event):
        events(event)
        if isinstance(event, ProgressEvent) and event.indexed == 2:
            controller.handle(PauseCommand())
            seen_phases.append(controller.phase)
            threading.Timer(0.1, controller.handle, args=(ResumeCommand(),)).start()
    controller = IndexingController(
        emit, processor=BatchProcessor(batch_size=2, batch_delay=0, poll_interval=0.02))

    controller.handle(start_cmd(root))

    assert seen_phases == [Phase.PAUSED]
    assert events.of(PausedEvent)
    assert events.of(CompletedEvent)[0].indexed == 6
    assert controller.phase == Phase.COMPLETED

def test_pause_outside_indexing_is_ignored(events):
    controller = fast_controller(events)
    controller.handle(PauseCommand())
    assert controller.phase == Phase.IDLE
    assert not controller.session.token.is_paused

def test_start_while_active_is_rejected(media_tree, events):
    controller = fast_controller(events)
    controller.session.phase = Phase.INDEXING

    with pytest.raises(IndexerBusyError):
        controller.handle(start_cmd(media_tree))

def test_restart_after_completion_resets_session(media_tree, events):
    controller = fast_controller(events)
    controller.handle(start_cmd(media_tree))
    first = controller.session

    controller.handle(start_cmd(media_tree))

    assert controller.session is not first
    runs = events.of(CompletedEvent)
    assert len(runs) == 2
    assert {r.id for r in runs[0].results} == {r.id for r in runs[1].results}
