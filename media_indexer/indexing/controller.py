import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import IndexerBusyError, ParameterError
from ..protocol import (
    CancelCommand,
    CancelledEvent,
    Command,
    CompletedEvent,
    ErrorEvent,
    Event,
    PauseCommand,
    ProgressEvent,
    ResumeCommand,
    StartCommand,
)
from ..scanning.filesystem import DirectoryScanner
from .batch import BatchProcessor
from .token import IndexingToken


class Phase(str, Enum):
    IDLE = 'idle'
    SCANNING = 'scanning'
    INDEXING = 'indexing'
    PAUSED = 'paused'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    ERROR = 'error'


ACTIVE_PHASES = {Phase.SCANNING, Phase.INDEXING, Phase.PAUSED}
TERMINAL_PHASES = {Phase.COMPLETED, Phase.CANCELLED, Phase.ERROR}


@dataclass
class IndexingSession:
    phase: Phase = Phase.IDLE
    total: int = 0
    indexed: int = 0
    current_file: Optional[str] = None
    token: IndexingToken = field(default_factory=IndexingToken)


class IndexingController:
    """
    State machine for one indexing session at a time.

    idle -> scanning -> indexing <-> paused -> completed | cancelled | error

    `handle(StartCommand)` runs the whole session and blocks, so the host
    calls it from a background thread; pause/resume/cancel return at once
    and may come from any thread.
    """

    def __init__(self,
                 emit: Callable[[Event], None],
                 scanner: Optional[DirectoryScanner] = None,
                 processor: Optional[BatchProcessor] = None):
        self._emit = emit
        self.scanner = scanner or DirectoryScanner()
        self.processor = processor or BatchProcessor()
        self.session = IndexingSession()
        self._lock = threading.Lock()

    @property
    def phase(self) -> Phase:
        return self.session.phase

    @property
    def is_active(self) -> bool:
        return self.session.phase in ACTIVE_PHASES

    @property
    def is_finished(self) -> bool:
        return self.session.phase in TERMINAL_PHASES

    def handle(self, command: Command):
        if isinstance(command, StartCommand):
            self.start(command)
        elif isinstance(command, PauseCommand):
            self.pause()
        elif isinstance(command, ResumeCommand):
            self.resume()
        elif isinstance(command, CancelCommand):
            self.cancel()
        else:
            raise TypeError(f"Unhandled command: {command!r}")

    # --- Commands ---

    def start(self, command: StartCommand):
        self.open_session()
        self.run_session(command)

    def open_session(self):
        with self._lock:
            if self.is_active:
                raise IndexerBusyError(f"Indexing already in progress ({self.session.phase.value})")
            # Terminal phases fall back to idle before a new session
            self.session = IndexingSession()

    def run_session(self, command: StartCommand):
        try:
            self._validate(command)
        except ParameterError as e:
            logging.error(f"Rejected start command: {e}")
            self._set_phase(Phase.ERROR)
            self._emit(ErrorEvent(error=str(e)))
            return

        try:
            self._run(command)
        except Exception as e:
            logging.exception(f"Indexing of {command.dir_path} failed")
            self._set_phase(Phase.ERROR)
            self._emit(ErrorEvent(error=str(e) or type(e).__name__))

    def pause(self):
        with self._lock:
            if self.session.phase != Phase.INDEXING:
                logging.debug(f"Ignoring pause while {self.session.phase.value}")
                return
            self.session.token.pause()
            self.session.phase = Phase.PAUSED
        logging.info("Indexing paused")

    def resume(self):
        with self._lock:
            self.session.token.resume()
            if self.session.phase == Phase.PAUSED:
                self.session.phase = Phase.INDEXING
                logging.info("Indexing resumed")

    def cancel(self):
        with self._lock:
            self.session.token.cancel()
            if self.session.phase == Phase.PAUSED:
                self.session.phase = Phase.INDEXING
        logging.info("Cancellation requested")

    # --- Session ---

    def _validate(self, command: StartCommand):
        missing = command.missing_fields()
        if missing:
            raise ParameterError(f"Missing required parameters: {', '.join(missing)}")

    def _run(self, command: StartCommand):
        session = self.session
        token = session.token

        # Phase 1: Scan
        self._set_phase(Phase.SCANNING)
        logging.info(f"Scanning {command.dir_path}...")
        self._emit(ProgressEvent(status='scanning', total=0, indexed=0))
        candidates = self.scanner.scan(Path(command.dir_path), token)

        if token.is_cancelled:
            self._set_phase(Phase.CANCELLED)
            self._emit(CancelledEvent())
            return

        session.total = len(candidates)
        self._set_phase(Phase.INDEXING)
        logging.info(f"Scan complete. {session.total} files to index.")
        self._emit(ProgressEvent(status='indexing', total=session.total, indexed=0))

        # Phase 2: Index (throttled)
        outcome = self.processor.process(
            candidates,
            volume_uuid=command.volume_uuid,
            mount_point=command.mount_point,
            cache_dir=command.cache_dir,
            token=token,
            emit=self._track,
        )
        session.indexed = outcome.indexed

        if outcome.cancelled or token.is_cancelled:
            self._set_phase(Phase.CANCELLED)
            logging.info(f"Indexing cancelled at {outcome.indexed}/{outcome.total}")
            self._emit(CancelledEvent(indexed=outcome.indexed, total=outcome.total))
            return

        self._set_phase(Phase.COMPLETED)
        logging.info(f"Indexing complete. {outcome.indexed}/{outcome.total} files indexed.")
        self._emit(CompletedEvent(total=outcome.total, indexed=outcome.indexed, results=outcome.results))

    def _track(self, event: Event):
        """Records batch progress on the session before passing it on."""
        if isinstance(event, ProgressEvent):
            self.session.indexed = event.indexed
            self.session.current_file = event.current_file
        self._emit(event)

    def _set_phase(self, phase: Phase):
        with self._lock:
            self.session.phase = phase
