import threading


class IndexingToken:
    """
    Cooperative pause/cancel flags for one indexing session.

    The scanner checks it per directory and the batch processor per batch.
    Cancellation always wins over pause.
    """

    def __init__(self):
        self._cancelled = threading.Event()
        self._paused = threading.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def is_paused(self) -> bool:
        return self._paused.is_set()

    def pause(self):
        if not self.is_cancelled:
            self._paused.set()

    def resume(self):
        self._paused.clear()

    def cancel(self):
        self._cancelled.set()
        self._paused.clear()

    def reset(self):
        self._cancelled.clear()
        self._paused.clear()

    def wait(self, seconds: float) -> bool:
        """Sleeps up to `seconds`, waking early on cancel. Returns True if cancelled."""
        if seconds <= 0:
            return self.is_cancelled
        return self._cancelled.wait(seconds)
