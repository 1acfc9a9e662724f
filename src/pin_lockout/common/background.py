"""Background worker - a bounded queue drained by one daemon thread.

Used by the audit writer and the state-store writer so neither an audit
append nor a state write ever blocks an authentication decision.
"""

import atexit
import logging
import queue
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class BackgroundWorker:
    """Applies submitted items, in order, on a daemon thread.

    Subclasses implement _handle. A failing item is counted and logged and
    the thread keeps going. Items submitted after shutdown are applied
    synchronously.
    """

    def __init__(
        self,
        name: str,
        max_queue_size: int,
        flush_timeout: float,
        sync_fallback: bool = True,
        get_timeout: float = 1.0,
    ):
        """Start the worker thread.

        Args:
            name: Thread name, also used in log messages.
            max_queue_size: Maximum number of queued items.
            flush_timeout: Timeout for draining the queue on shutdown.
            sync_fallback: Apply synchronously when the queue is full,
                instead of dropping the item.
            get_timeout: How often the idle thread checks for shutdown.
        """
        self.name = name
        self.max_queue_size = max_queue_size
        self.flush_timeout = flush_timeout
        self.sync_fallback = sync_fallback
        self.get_timeout = get_timeout

        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=max_queue_size)
        self._shutdown_event = threading.Event()

        self._applied = 0
        self._failed = 0
        self._dropped = 0
        self._sync_fallback_count = 0
        self._stats_lock = threading.Lock()

        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()
        atexit.register(self.shutdown)
        logger.info(f"{self.name} started")

    def _handle(self, item: Any) -> None:
        raise NotImplementedError

    def _on_drop(self, item: Any) -> None:
        """Called when a full queue drops an item."""

    def _apply(self, item: Any) -> bool:
        try:
            self._handle(item)
        except Exception as e:
            with self._stats_lock:
                self._failed += 1
            logger.error(f"{self.name} failed to apply {item!r}: {e}")
            return False
        with self._stats_lock:
            self._applied += 1
        return True

    def _run(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                item = self._queue.get(timeout=self.get_timeout)
            except queue.Empty:
                continue

            try:
                if item is None:
                    break
                self._apply(item)
            finally:
                self._queue.task_done()

        self._drain()
        logger.info(f"{self.name} stopped")

    def _drain(self) -> None:
        drained = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            try:
                if item is not None:
                    self._apply(item)
                    drained += 1
            finally:
                self._queue.task_done()

        if drained > 0:
            logger.info(f"{self.name} drained {drained} items during shutdown")

    def submit(self, item: Any) -> bool:
        """Queue an item.

        Returns:
            False if the item was dropped or failed a synchronous apply
        """
        if self._shutdown_event.is_set():
            return self._apply(item)

        try:
            self._queue.put_nowait(item)
            return True
        except queue.Full:
            pass

        if self.sync_fallback:
            with self._stats_lock:
                self._sync_fallback_count += 1
            logger.warning(f"{self.name} queue full, applying synchronously")
            return self._apply(item)

        with self._stats_lock:
            self._dropped += 1
        self._on_drop(item)
        logger.error(f"{self.name} queue full, item dropped")
        return False

    def flush(self) -> None:
        """Block until every queued item has been applied."""
        self._queue.join()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the thread after draining queued items."""
        if self._shutdown_event.is_set():
            return

        timeout = timeout if timeout is not None else self.flush_timeout
        self._shutdown_event.set()
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass  # Thread will see the shutdown event

        if self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(f"{self.name} did not stop cleanly")

        logger.info(
            f"{self.name} shutdown complete. "
            f"Applied: {self._applied}, "
            f"Failed: {self._failed}, "
            f"Dropped: {self._dropped}, "
            f"Sync fallbacks: {self._sync_fallback_count}"
        )

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return {
                "applied": self._applied,
                "failed": self._failed,
                "dropped": self._dropped,
                "sync_fallback_count": self._sync_fallback_count,
                "queue_size": self._queue.qsize(),
                "max_queue_size": self.max_queue_size,
            }

    @property
    def is_running(self) -> bool:
        return not self._shutdown_event.is_set()
