"""Bounded background writer pool for fire-and-forget persistence.

Jobs are routed to a worker by key, so jobs sharing a key run one at a time in
submission order. Submitting never blocks: a full queue drops the job.
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable, Hashable

from completion_recorder.observability.metrics import emit_counter
from completion_recorder.util.logger import logger


SHUTDOWN_DRAIN = "drain"
SHUTDOWN_ABANDON = "abandon"
SHUTDOWN_POLICIES = (SHUTDOWN_DRAIN, SHUTDOWN_ABANDON)

Job = Callable[[], object]

_STOP = object()


class PersistenceWorkerPool:
    def __init__(self, *, workers: int = 2, queue_size: int = 1000, name: str = "completion-recorder-writer") -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        self.name = name
        self._queues: list[queue.Queue] = [queue.Queue(maxsize=queue_size) for _ in range(workers)]
        self._lock = threading.Lock()
        self._closed = False
        self._threads: list[threading.Thread] = []
        for index, job_queue in enumerate(self._queues):
            thread = threading.Thread(
                target=self._worker_loop,
                args=(job_queue,),
                name=f"{name}-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    @property
    def closed(self) -> bool:
        return self._closed

    def _worker_loop(self, job_queue: queue.Queue) -> None:
        while True:
            item = job_queue.get()
            try:
                if item is _STOP:
                    break
                item()
            except Exception as exc:
                logger.warning("%s job failed: %s", self.name, exc)
            finally:
                job_queue.task_done()

    def _queue_for(self, key: Hashable) -> queue.Queue:
        return self._queues[hash(key) % len(self._queues)]

    def submit(self, key: Hashable, job: Job) -> bool:
        with self._lock:
            if self._closed:
                logger.warning("%s is shut down, dropping job key=%s", self.name, key)
                emit_counter("recorder_batches_dropped", labels={"reason": "shutdown"})
                return False
            try:
                self._queue_for(key).put_nowait(job)
            except queue.Full:
                logger.warning("%s queue full, dropping job key=%s", self.name, key)
                emit_counter("recorder_batches_dropped", labels={"reason": "queue_full"})
                return False
        return True

    def shutdown(self, policy: str = SHUTDOWN_DRAIN, timeout: float = 5.0) -> int:
        """Stop all workers; return the number of abandoned jobs.

        ``drain`` lets queued jobs finish (bounded by ``timeout``); ``abandon``
        discards queued jobs while a job already running completes.
        """

        if policy not in SHUTDOWN_POLICIES:
            raise ValueError(f"unknown shutdown policy: {policy}")
        with self._lock:
            if self._closed:
                return 0
            self._closed = True

        abandoned = 0
        if policy == SHUTDOWN_ABANDON:
            for job_queue in self._queues:
                while True:
                    try:
                        job_queue.get_nowait()
                    except queue.Empty:
                        break
                    job_queue.task_done()
                    abandoned += 1
            if abandoned:
                logger.warning("%s abandoned %d queued jobs on shutdown", self.name, abandoned)
                emit_counter("recorder_batches_dropped", abandoned, labels={"reason": "abandoned"})

        deadline = time.monotonic() + max(0.0, timeout)
        for job_queue in self._queues:
            try:
                job_queue.put(_STOP, timeout=max(0.0, deadline - time.monotonic()))
            except queue.Full:
                logger.warning("%s could not enqueue stop marker before timeout", self.name)
        for thread in self._threads:
            thread.join(timeout=max(0.0, deadline - time.monotonic()))
            if thread.is_alive():
                logger.warning("%s worker %s still running after shutdown timeout", self.name, thread.name)
        logger.info("%s stopped policy=%s", self.name, policy)
        return abandoned
