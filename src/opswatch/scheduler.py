"""Named, individually cancellable periodic tasks.

A worker exposes a name, a tick interval and ``on_tick() -> bool``. The
scheduler drives each worker in its own asyncio task: sleep for the interval,
await ``on_tick``, repeat until it returns False or the task is stopped.
Ticks of one worker never overlap.

``stop`` cancels the task outright, so ``on_tick`` can be interrupted at any
await. Anything acquired inside a tick must be released in a ``finally`` /
``async with`` block.
"""

import asyncio
from typing import Protocol

import structlog

log = structlog.get_logger()


class Worker(Protocol):
    """A unit of periodic work."""

    @property
    def name(self) -> str: ...

    @property
    def interval(self) -> float: ...

    async def on_tick(self) -> bool:
        """Run one cycle. Return False to stop the worker permanently."""
        ...


class TaskScheduler:
    """Runs workers as asyncio tasks keyed by worker name."""

    def __init__(self) -> None:
        self._handles: dict[str, asyncio.Task[None]] = {}

    def run(self, worker: Worker) -> asyncio.Task[None]:
        """Start a worker under its name.

        Starting a second worker under a name that is already running does NOT
        cancel the first one; its handle is simply forgotten. Call ``stop``
        first when replacing a worker.
        """
        key = worker.name
        previous = self._handles.get(key)
        if previous is not None and not previous.done():
            log.warning("Worker key reused, previous task orphaned", worker=key)

        task = asyncio.create_task(self._drive(worker), name=f"worker:{key}")
        self._handles[key] = task
        task.add_done_callback(lambda t, key=key: self._forget(key, t))
        log.info("Worker started", worker=key, interval=worker.interval)
        return task

    def run_batch(self, workers: list[Worker]) -> None:
        for worker in workers:
            self.run(worker)

    def stop(self, key: str) -> None:
        """Cancel and forget the worker running under key. No-op if absent."""
        task = self._handles.pop(key, None)
        if task is None:
            return
        task.cancel()
        log.info("Worker stopped", worker=key)

    async def stop_all(self) -> None:
        """Cancel every worker and wait for the cancellations to land."""
        tasks = list(self._handles.values())
        self._handles.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def is_running(self, key: str) -> bool:
        task = self._handles.get(key)
        return task is not None and not task.done()

    def keys(self) -> list[str]:
        return list(self._handles)

    def _forget(self, key: str, task: asyncio.Task[None]) -> None:
        if self._handles.get(key) is task:
            del self._handles[key]

    @staticmethod
    async def _drive(worker: Worker) -> None:
        while True:
            await asyncio.sleep(worker.interval)
            try:
                keep_going = await worker.on_tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Worker tick failed", worker=worker.name)
                continue
            if not keep_going:
                log.info("Worker finished", worker=worker.name)
                return
