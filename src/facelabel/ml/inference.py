"""Inference concurrency layer.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> FacePipeline

Requests beyond the semaphore limit queue with a 5s timeout, then get 503.
With the default N=1, frames are processed strictly one at a time.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from facelabel.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEMAPHORE_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Manages the semaphore and thread pool for frame processing."""

    def __init__(self, settings: Settings) -> None:
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="face-pipeline",
        )
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._frames_processed: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Submit a synchronous frame pass to the pipeline thread pool.

        Queue wait and pass duration are logged at DEBUG.

        Raises:
            TimeoutError: If the semaphore cannot be acquired within the timeout.
        """
        queued_at = time.perf_counter()
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(
                self._semaphore.acquire(),
                timeout=SEMAPHORE_TIMEOUT_SECONDS,
            )
        except TimeoutError:
            logger.warning("Pipeline busy, request timed out after %.1fs", SEMAPHORE_TIMEOUT_SECONDS)
            raise
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        started_at = time.perf_counter()
        with self._counter_lock:
            self._active_count += 1
        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._semaphore.release()
            with self._counter_lock:
                self._active_count -= 1

        finished_at = time.perf_counter()
        with self._counter_lock:
            self._frames_processed += 1
        logger.debug(
            "%s took %.1f ms (queued %.1f ms)",
            getattr(func, "__name__", "frame pass"),
            (finished_at - started_at) * 1000.0,
            (started_at - queued_at) * 1000.0,
        )
        return result

    @property
    def active_count(self) -> int:
        """Number of frames currently being processed."""
        with self._counter_lock:
            return self._active_count

    @property
    def frames_processed(self) -> int:
        """Number of frame passes completed without raising."""
        with self._counter_lock:
            return self._frames_processed

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a semaphore slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Shut down the thread pool executor."""
        self._executor.shutdown(wait=True)
