"""In-memory bounded delay queue (single process).

Features:
- A job is handed out only once its delay has elapsed, so waiting jobs hold
  a heap slot instead of a worker thread.
- FIFO among ready jobs (ties resolved by enqueue sequence).
- Capacity limit with an explicit overflow policy (QUEUE_SETTINGS):
    block        wait up to `block_timeout` for space, then QueueFullError
    drop_oldest  evict the oldest queued job (logged) to make room
    reject       raise QueueFullError immediately
- Thread-safe with a condition variable.

Two-lanes strategy:
 1. ready lane: deque of items whose ready_at has passed
 2. scheduled_heap: (ready_at_ts, seq, item)

On enqueue:
  - If ready_at <= now -> append to ready lane else push to scheduled_heap.
On dequeue:
  - Promote any scheduled items whose ready_at <= now (in ready_at order).
  - Pop the head of the ready lane.
  - If nothing ready: wait until next scheduled item's ready_at or until notified.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Optional
import threading
import time
import heapq

from sources_jobs.config import QUEUE_SETTINGS
from sources_jobs.jobs.errors import QueueFullError
from sources_jobs.utils import get_logger

logger = get_logger(__name__)

OVERFLOW_POLICIES = ("block", "drop_oldest", "reject")


@dataclass(slots=True)
class QueueItem:
    job: Any
    enqueued_at: float
    ready_at: float
    seq: int


class DelayQueue:
    def __init__(self, *, max_size: int | None = None, overflow_policy: str | None = None) -> None:
        self._max_size = int(max_size if max_size is not None else QUEUE_SETTINGS.get("max_in_memory", 5000))  # type: ignore[arg-type]
        self._overflow_policy = str(overflow_policy or QUEUE_SETTINGS.get("overflow_policy", "block"))
        if self._overflow_policy not in OVERFLOW_POLICIES:
            raise ValueError(f"Unknown overflow policy '{self._overflow_policy}'")
        self._block_timeout = float(QUEUE_SETTINGS.get("block_timeout", 30))  # type: ignore[arg-type]
        self._warn_depth = int(QUEUE_SETTINGS.get("warn_depth", 1000))  # type: ignore[arg-type]
        self._lock = threading.RLock()
        self._cv = threading.Condition(self._lock)
        self._ready: deque[QueueItem] = deque()
        self._scheduled_heap: list[tuple[float, int, QueueItem]] = []
        self._seq_counter = 0
        self._dropped = 0
        self._shutdown = False

    # ----------------------------- internal helpers ----------------------------- #
    def _next_seq(self) -> int:
        self._seq_counter += 1
        return self._seq_counter

    def _promote_scheduled(self) -> None:
        now_ts = time.time()
        while self._scheduled_heap and self._scheduled_heap[0][0] <= now_ts:
            _, _, item = heapq.heappop(self._scheduled_heap)
            self._ready.append(item)

    def _await_next_ready(self, timeout: Optional[float]) -> None:
        """Sleep until the next scheduled item is due, a notify, or timeout."""
        if self._ready:
            return
        if not self._scheduled_heap:
            self._cv.wait(timeout=timeout)
            return
        wait_time = max(0.0, self._scheduled_heap[0][0] - time.time())
        if timeout is not None:
            wait_time = min(wait_time, timeout)
        if wait_time > 0:
            self._cv.wait(timeout=wait_time)

    def _drop_oldest(self) -> QueueItem | None:
        oldest_ready = self._ready[0] if self._ready else None
        oldest_scheduled_idx = None
        for idx, (_, seq, _) in enumerate(self._scheduled_heap):
            if oldest_scheduled_idx is None or seq < self._scheduled_heap[oldest_scheduled_idx][1]:
                oldest_scheduled_idx = idx
        if oldest_scheduled_idx is not None and (
            oldest_ready is None or self._scheduled_heap[oldest_scheduled_idx][1] < oldest_ready.seq
        ):
            _, _, item = self._scheduled_heap.pop(oldest_scheduled_idx)
            heapq.heapify(self._scheduled_heap)
            return item
        if oldest_ready is not None:
            return self._ready.popleft()
        return None

    def _make_room(self) -> None:
        if self.depth() < self._max_size:
            return
        if self._overflow_policy == "reject":
            raise QueueFullError("Queue capacity exceeded")
        if self._overflow_policy == "drop_oldest":
            dropped = self._drop_oldest()
            if dropped is not None:
                self._dropped += 1
                logger.warning(
                    "Queue full, dropped oldest job",
                    job=getattr(dropped.job, "name", type(dropped.job).__name__),
                    depth=self.depth(),
                )
            return
        deadline = time.time() + self._block_timeout
        while self.depth() >= self._max_size:
            if self._shutdown:
                raise RuntimeError("Queue shutdown")
            remaining = deadline - time.time()
            if remaining <= 0:
                raise QueueFullError("Queue capacity exceeded (blocked enqueue timed out)")
            self._cv.wait(timeout=remaining)

    # ----------------------------- public API ----------------------------- #
    def enqueue(self, job: Any, *, delay_seconds: float = 0.0) -> QueueItem:
        with self._lock:
            if self._shutdown:
                raise RuntimeError("Queue shutdown")
            self._make_room()
            now_ts = time.time()
            ready_at_ts = now_ts + max(0.0, delay_seconds)
            item = QueueItem(job=job, enqueued_at=now_ts, ready_at=ready_at_ts, seq=self._next_seq())
            if ready_at_ts <= now_ts:
                self._ready.append(item)
            else:
                heapq.heappush(self._scheduled_heap, (ready_at_ts, item.seq, item))
            if self.depth() >= self._warn_depth:
                logger.warning("Queue depth warning", depth=self.depth())
            self._cv.notify_all()
            return item

    def dequeue(self, *, block: bool = True, timeout: Optional[float] = None) -> Any:
        """Pop the next due job. Returns None if non-blocking and nothing is due, or on timeout."""
        end_time = None if timeout is None else time.time() + timeout
        with self._lock:
            while True:
                if self._shutdown and not self._ready and not self._scheduled_heap:
                    return None
                self._promote_scheduled()
                if self._ready:
                    item = self._ready.popleft()
                    # wake producers blocked on a full queue
                    self._cv.notify_all()
                    return item.job
                if not block:
                    return None
                remaining = None if end_time is None else max(0.0, end_time - time.time())
                if end_time is not None and remaining == 0:
                    return None
                self._await_next_ready(remaining)

    def shutdown(self) -> None:
        with self._lock:
            self._shutdown = True
            self._cv.notify_all()

    # ----------------------------- test utilities ----------------------------- #
    def purge(self) -> None:
        """Remove all queued (ready + scheduled) jobs.

        Intended for test isolation only; not used in production runtime.
        """
        with self._lock:
            self._ready.clear()
            self._scheduled_heap.clear()
            self._cv.notify_all()

    # ----------------------------- inspection ----------------------------- #
    def depth(self) -> int:
        return len(self._ready) + len(self._scheduled_heap)

    def __len__(self) -> int:  # pragma: no cover
        return self.depth()

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "depth": self.depth(),
                "ready": len(self._ready),
                "scheduled": len(self._scheduled_heap),
                "max_size": self._max_size,
                "overflow_policy": self._overflow_policy,
                "dropped": self._dropped,
                "shutdown": self._shutdown,
            }


__all__ = ["DelayQueue", "QueueItem", "OVERFLOW_POLICIES"]
