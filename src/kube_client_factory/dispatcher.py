"""Request dispatcher backed by a cached pool of daemon worker threads."""

from __future__ import annotations

import itertools
import queue
import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future
from typing import Any

import structlog

log = structlog.get_logger()

DEFAULT_DISPATCHER_NAME = "kubernetes-dispatcher"
DEFAULT_KEEP_ALIVE_SECONDS = 60.0

_Task = tuple[Future, Callable[..., Any], tuple[Any, ...], dict[str, Any]]


class AsyncResult:
    """Result handle with the ``multiprocessing.pool.AsyncResult`` surface.

    ``kubernetes.client.ApiClient`` returns these to callers that pass
    ``async_req=True``.
    """

    def __init__(self, future: Future) -> None:
        self._future = future

    def get(self, timeout: float | None = None) -> Any:
        return self._future.result(timeout)

    def wait(self, timeout: float | None = None) -> None:
        try:
            self._future.exception(timeout)
        except TimeoutError:
            pass

    def ready(self) -> bool:
        return self._future.done()

    def successful(self) -> bool:
        if not self._future.done():
            msg = f"{self!r} not ready"
            raise ValueError(msg)
        return self._future.exception() is None


class DaemonCachedThreadPool:
    """Unbounded thread pool that reuses idle workers and creates new ones on demand.

    Workers are daemon threads named ``<name>-<n>`` and exit after sitting idle
    for ``keep_alive`` seconds. No thread exists until the first task arrives.
    """

    def __init__(self, name: str = DEFAULT_DISPATCHER_NAME, keep_alive: float = DEFAULT_KEEP_ALIVE_SECONDS) -> None:
        self.name = name
        self._keep_alive = keep_alive
        self._tasks: queue.SimpleQueue[_Task | None] = queue.SimpleQueue()
        self._lock = threading.Lock()
        # Idle workers minus queued tasks; guarded by _lock.
        self._idle = 0
        self._threads: set[threading.Thread] = set()
        self._counter = itertools.count(1)
        self._closed = False

    @property
    def thread_count(self) -> int:
        with self._lock:
            return len(self._threads)

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        with self._lock:
            if self._closed:
                msg = f"Dispatcher {self.name} is closed"
                raise RuntimeError(msg)
            if self._idle > 0:
                self._idle -= 1
            else:
                self._spawn_worker()
            self._tasks.put((future, fn, args, kwargs))
        return future

    def apply_async(
        self,
        func: Callable[..., Any],
        args: Sequence[Any] = (),
        kwds: Mapping[str, Any] | None = None,
    ) -> AsyncResult:
        return AsyncResult(self.submit(func, *args, **(kwds or {})))

    def close(self) -> None:
        """Stop accepting tasks; workers exit once the queue drains."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for _ in range(len(self._threads)):
                self._tasks.put(None)

    def join(self, timeout: float | None = None) -> None:
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)

    def shutdown(self, wait: bool = True) -> None:
        self.close()
        if wait:
            self.join()

    def _spawn_worker(self) -> None:
        thread = threading.Thread(
            target=self._work,
            name=f"{self.name}-{next(self._counter)}",
            daemon=True,
        )
        self._threads.add(thread)
        thread.start()

    def _work(self) -> None:
        current = threading.current_thread()
        try:
            while True:
                try:
                    task = self._tasks.get(timeout=self._keep_alive)
                except queue.Empty:
                    with self._lock:
                        # A task reserved for an idle worker may still be in flight.
                        if self._tasks.empty():
                            self._idle -= 1
                            return
                    continue
                if task is None:
                    return
                self._run(task)
                with self._lock:
                    self._idle += 1
        finally:
            with self._lock:
                self._threads.discard(current)

    def _run(self, task: _Task) -> None:
        future, fn, args, kwargs = task
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            log.debug("dispatcher_task_failed", dispatcher=self.name, error=str(exc))
            future.set_exception(exc)
        else:
            future.set_result(result)


def new_dispatcher(name: str = DEFAULT_DISPATCHER_NAME) -> DaemonCachedThreadPool:
    """Create a fresh dispatcher for one client; dispatchers are never shared."""
    return DaemonCachedThreadPool(name)
