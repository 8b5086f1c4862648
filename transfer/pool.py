"""Bounded-concurrency task pool shared by the upload and download pipelines."""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Tuple


class FirstError:
    """Keeps the earliest failure reported by a pool's tasks.

    Every task runs on the same event loop and ``capture`` never awaits, so
    the check-and-set below cannot interleave.
    """

    def __init__(self):
        self._value: Optional[Tuple[int, BaseException]] = None

    def capture(self, index: int, exc: BaseException) -> bool:
        if self._value is not None:
            return False
        self._value = (index, exc)
        return True

    @property
    def value(self) -> Optional[Tuple[int, BaseException]]:
        return self._value


class WorkerPool:
    """Runs at most ``workers`` coroutines at a time.

    Each submitted call gets the next result slot; a task only ever writes its
    own slot, so completion order never changes the order of ``join()``.
    """

    def __init__(self, workers: int):
        if workers < 1:
            raise ValueError(f"workers must be positive, got {workers}")
        self.workers = workers
        self._gate = asyncio.Semaphore(workers)
        self._tasks: List[asyncio.Task] = []
        self._slots: List[Any] = []
        self._errors = FirstError()

    @property
    def failed(self) -> bool:
        return self._errors.value is not None

    @property
    def error(self) -> Optional[Tuple[int, BaseException]]:
        return self._errors.value

    async def submit(self, fn: Callable[..., Awaitable[Any]], *args) -> Optional[int]:
        """Wait for a free slot and schedule ``fn(*args)``.

        Returns the result slot index, or ``None`` once any task has failed.
        """
        await self._gate.acquire()
        if self.failed:
            self._gate.release()
            return None
        index = len(self._slots)
        self._slots.append(None)
        self._tasks.append(asyncio.create_task(self._run(index, fn, args)))
        return index

    async def _run(self, index, fn, args):
        try:
            self._slots[index] = await fn(*args)
        except Exception as e:
            self._errors.capture(index, e)
        finally:
            self._gate.release()

    async def join(self) -> List[Any]:
        if self._tasks:
            await asyncio.gather(*self._tasks)
        return list(self._slots)
