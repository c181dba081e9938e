"""
Completion delivery for asynchronous goals.

Transport threads post finished goals here; the control thread drains the
queue one callback at a time, so callbacks never overlap and run in the
order their goals completed.
"""
import queue
from typing import Any, Callable


class CompletionQueue:
    """FIFO of pending completion callbacks, drained by the control thread."""

    def __init__(self):
        self._queue: "queue.Queue[tuple[Callable[..., Any], tuple]]" = queue.Queue()

    def post(self, callback: Callable[..., Any], *args) -> None:
        """Schedule callback(*args) on the control thread. Safe from any thread."""
        self._queue.put((callback, args))

    def spin_once(self, timeout: float = None) -> bool:
        """
        Run the next queued callback on the calling thread.

        Blocks until a callback is available. Returns False if `timeout`
        seconds pass with nothing to run.
        """
        try:
            callback, args = self._queue.get(timeout=timeout)
        except queue.Empty:
            return False
        callback(*args)
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()
