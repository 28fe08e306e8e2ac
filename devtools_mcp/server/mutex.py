"""
FIFO mutex for serializing tool calls on one session.

Waiters are granted the lock strictly in arrival order. Every grant bumps a
generation counter and the returned Guard remembers its generation, so
disposing a guard twice, or disposing a guard from an earlier acquisition,
never releases the current holder.
"""

import asyncio
from collections import deque
from typing import Optional


class Guard:
    def __init__(self, mutex: "Mutex", generation: int):
        self._mutex = mutex
        self._generation = generation
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._mutex._release(self._generation)

    def __enter__(self) -> "Guard":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()


class Mutex:
    def __init__(self):
        self._locked = False
        self._generation = 0
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> Guard:
        if not self._locked and not self._waiters:
            return self._grant()

        waiter: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Granted and cancelled in the same tick: hand the lock on.
                waiter.result().dispose()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def _grant(self) -> Guard:
        self._locked = True
        self._generation += 1
        return Guard(self, self._generation)

    def _release(self, generation: int) -> None:
        if not self._locked or generation != self._generation:
            return
        next_waiter: Optional[asyncio.Future] = None
        while self._waiters:
            candidate = self._waiters.popleft()
            if not candidate.done():
                next_waiter = candidate
                break
        if next_waiter is None:
            self._locked = False
            return
        next_waiter.set_result(self._grant())
