import logging
import queue
from dataclasses import dataclass, asdict
from typing import Callable, List, Optional

from . import config
from .database.ops import CatalogOperations
from .exceptions import IndexerBusyError
from .indexing.worker import IndexerWorker
from .models import AssetRecord
from .protocol import (
    CancelCommand,
    CancelledEvent,
    CompletedEvent,
    ErrorEvent,
    Event,
    PauseCommand,
    PausedEvent,
    ProgressEvent,
    ReadyEvent,
    ResumeCommand,
    StartCommand,
    is_terminal,
)


@dataclass
class IndexerState:
    is_running: bool = False
    is_paused: bool = False
    total: int = 0
    indexed: int = 0
    current_file: Optional[str] = None
    status: str = 'idle'


class IndexerManager:
    """
    Host side of the indexer: drives an IndexerWorker, keeps a snapshot
    for display and saves finished results into the catalog.

    Events are consumed on whatever thread calls `poll()`/`wait()`.
    """

    def __init__(self,
                 catalog: Optional[CatalogOperations] = None,
                 worker: Optional[IndexerWorker] = None,
                 flush_threshold: int = config.FLUSH_THRESHOLD):
        self.catalog = catalog
        self.worker = worker or IndexerWorker()
        self.flush_threshold = flush_threshold
        self.state = IndexerState()
        self._pending: List[AssetRecord] = []
        self._worker_started = False
        # Paused events still queued from before the last resume()
        self._stale_paused = False

    def get_state(self) -> dict:
        return asdict(self.state)

    def start(self, dir_path: str, volume_uuid: str, mount_point: str, cache_dir: str):
        if self.state.is_running:
            raise IndexerBusyError("Indexing already in progress")
        if not self._worker_started:
            self.worker.start()
            self._worker_started = True

        self.state = IndexerState(is_running=True, status='scanning')
        self._pending = []
        self._stale_paused = False
        self.worker.send(StartCommand(
            dir_path=dir_path,
            volume_uuid=volume_uuid,
            mount_point=mount_point,
            cache_dir=cache_dir,
        ))

    def pause(self):
        """
        Asks the worker to pause. `is_paused` turns on once the worker
        reports `paused`; a pause outside indexing is dropped by the worker.
        """
        if self.state.is_running:
            self._stale_paused = False
            self.worker.send(PauseCommand())

    def resume(self):
        if self.state.is_running:
            self.worker.send(ResumeCommand())
            self._stale_paused = True
            if self.state.is_paused:
                self.state.is_paused = False
                self.state.status = 'indexing'

    def cancel(self):
        if self.state.is_running:
            self.worker.send(CancelCommand())
            self._stale_paused = True
            self.state.is_paused = False

    def poll(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Handles the next worker event, or returns None if none arrived in time."""
        try:
            event = self.worker.events.get(timeout=timeout)
        except queue.Empty:
            return None
        self.handle_event(event)
        return event

    def wait(self,
             on_event: Optional[Callable[[Event], None]] = None,
             poll_interval: float = 0.1) -> Event:
        """Pumps events until the session ends; returns the terminal event."""
        while True:
            event = self.poll(timeout=poll_interval)
            if event is None:
                continue
            if on_event:
                on_event(event)
            if is_terminal(event):
                return event

    def handle_event(self, event: Event):
        if isinstance(event, ReadyEvent):
            logging.debug("Indexer worker ready")
        elif isinstance(event, ProgressEvent):
            self.state.total = event.total or self.state.total
            self.state.indexed = event.indexed or self.state.indexed
            self.state.current_file = event.current_file
            # Batches only report progress while running
            self.state.is_paused = False
            self.state.status = event.status
        elif isinstance(event, PausedEvent):
            if self._stale_paused:
                logging.debug("Dropping paused event queued before resume")
            else:
                self.state.is_paused = True
                self.state.status = 'paused'
        elif isinstance(event, CompletedEvent):
            self.state.total = event.total
            self.state.indexed = event.indexed
            self._pending.extend(event.results)
            self.flush()
            self._finish('completed')
        elif isinstance(event, CancelledEvent):
            if event.indexed is not None:
                self.state.indexed = event.indexed
            self.flush()
            self._finish('cancelled')
        elif isinstance(event, ErrorEvent):
            if event.is_rejection:
                logging.warning(f"Indexer refused a command: {event.error}")
                return
            logging.error(f"Indexer error: {event.error}")
            self._finish('error')
        else:
            raise TypeError(f"Unhandled event: {event!r}")

    def flush(self) -> int:
        """
        Writes pending records to the catalog, one transaction per
        `flush_threshold` records. Returns how many were saved.
        """
        records, self._pending = self._pending, []
        if not records or self.catalog is None:
            return 0

        saved = 0
        for i in range(0, len(records), self.flush_threshold):
            saved += self.catalog.upsert_assets(records[i:i + self.flush_threshold])
        return saved

    def close(self):
        self.flush()
        if self._worker_started:
            self.worker.stop()
            self._worker_started = False

    def _finish(self, status: str):
        self.state.is_running = False
        self.state.is_paused = False
        self.state.status = status
