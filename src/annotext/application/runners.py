from __future__ import annotations

import queue
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Protocol

Perform = Callable[[Any], Any]
Deliver = Callable[[Any], Any]


class Runner(Protocol):
    def submit(self, effect: Any, perform: Perform, deliver: Deliver) -> None: ...

    def pump(self, *, block: bool = False, timeout: float | None = None) -> int: ...

    def wait_idle(self, timeout: float = 30.0) -> None: ...


class InlineRunner:
    """Runs every remote call immediately on the calling thread."""

    def submit(self, effect: Any, perform: Perform, deliver: Deliver) -> None:
        deliver(perform(effect))

    def pump(self, *, block: bool = False, timeout: float | None = None) -> int:
        return 0

    def wait_idle(self, timeout: float = 30.0) -> None:
        return None


class ThreadedRunner:
    """Runs remote calls on worker threads.

    Results are queued and only handed back to the synchronizer from the
    thread that calls :meth:`pump`, so state transitions stay on one thread.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="annotext-remote")
        self._results: queue.Queue[tuple[Deliver, Future[Any]]] = queue.Queue()
        self._outstanding = 0

    @property
    def outstanding(self) -> int:
        return self._outstanding

    def submit(self, effect: Any, perform: Perform, deliver: Deliver) -> None:
        self._outstanding += 1
        future = self._executor.submit(perform, effect)
        future.add_done_callback(lambda done: self._results.put((deliver, done)))

    def pump(self, *, block: bool = False, timeout: float | None = None) -> int:
        """Deliver finished results; returns how many were delivered."""
        delivered = 0
        while True:
            try:
                deliver, future = self._results.get(block=block and delivered == 0, timeout=timeout)
            except queue.Empty:
                return delivered
            self._outstanding -= 1
            delivered += 1
            deliver(future.result())

    def wait_idle(self, timeout: float = 30.0) -> None:
        while self._outstanding > 0:
            if self.pump(block=True, timeout=timeout) == 0:
                raise TimeoutError(f"Remote calls still outstanding after {timeout:.1f}s")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
