import logging
import queue
import threading
from typing import Optional

from ..exceptions import IndexerBusyError
from ..protocol import Command, ErrorEvent, Event, ReadyEvent, StartCommand
from ..scanning.filesystem import DirectoryScanner
from .batch import BatchProcessor
from .controller import IndexingController

_STOP = object()


class IndexerWorker:
    """
    Runs an IndexingController in the background.

    The host talks to it only through `send()` (commands in) and the
    `events` queue (events out). Sessions run on their own thread so the
    dispatcher keeps reading pause/resume/cancel while a scan is going.
    """

    def __init__(self,
                 scanner: Optional[DirectoryScanner] = None,
                 processor: Optional[BatchProcessor] = None):
        self.events: "queue.Queue[Event]" = queue.Queue()
        self._commands: "queue.Queue" = queue.Queue()
        self.controller = IndexingController(self.events.put, scanner=scanner, processor=processor)
        self._dispatcher: Optional[threading.Thread] = None
        self._session_thread: Optional[threading.Thread] = None

    def start(self):
        if self._dispatcher and self._dispatcher.is_alive():
            return
        self._dispatcher = threading.Thread(target=self._dispatch_loop, name="indexer-dispatch", daemon=True)
        self._dispatcher.start()
        self.events.put(ReadyEvent())

    def send(self, command: Command):
        self._commands.put(command)

    def stop(self, wait_for_session: bool = False, timeout: Optional[float] = None):
        """
        Shuts the worker down. Unless `wait_for_session`, a running session
        is cancelled first.
        """
        if not wait_for_session:
            self.controller.cancel()
        self._commands.put(_STOP)
        if self._dispatcher:
            self._dispatcher.join(timeout)
        if self._session_thread:
            self._session_thread.join(timeout)

    @property
    def is_busy(self) -> bool:
        if self._session_thread is None or not self._session_thread.is_alive():
            return False
        # A thread that already emitted its terminal event is only winding down
        return not self.controller.is_finished

    def _dispatch_loop(self):
        while True:
            command = self._commands.get()
            if command is _STOP:
                break
            try:
                if isinstance(command, StartCommand):
                    self._start_session(command)
                else:
                    self.controller.handle(command)
            except IndexerBusyError as e:
                logging.warning(f"{e}")
                self.events.put(ErrorEvent.rejected(str(e)))
            except Exception as e:
                logging.exception("Indexer worker failed to handle command")
                self.events.put(ErrorEvent.rejected(str(e) or type(e).__name__))

    def _start_session(self, command: StartCommand):
        if self.is_busy:
            raise IndexerBusyError("Indexing already in progress")
        if self._session_thread:
            self._session_thread.join()
        # Open here so a cancel queued right behind this start hits the new session
        self.controller.open_session()
        self._session_thread = threading.Thread(
            target=self.controller.run_session,
            args=(command,),
            name="indexer-session",
            daemon=True,
        )
        self._session_thread.start()
