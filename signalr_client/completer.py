"""Awaitables completed by hand: single-value futures and push-driven async streams."""

from __future__ import annotations

import asyncio
import collections
import enum
import logging
import threading
from typing import Any, Generator, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CompletedFuture(Generic[T]):
    """An awaitable that is immediately ready with a value; it can be awaited once."""

    def __init__(self, value: T) -> None:
        self._value = value
        self._consumed = False

    def __await__(self) -> Generator[Any, None, T]:
        if self._consumed:
            raise RuntimeError("CompletedFuture has already been awaited")
        self._consumed = True
        return self._value
        yield  # pragma: no cover - makes this a generator


def _wake(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(None)


class _Waiters:
    """Wakers for tasks on any event loop, possibly signalled from other threads."""

    def __init__(self) -> None:
        self._entries: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    def add(self) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        self._entries.append((loop, waiter))
        return waiter

    def wake_all(self) -> None:
        entries, self._entries = self._entries, []
        for loop, waiter in entries:
            try:
                loop.call_soon_threadsafe(_wake, waiter)
            except RuntimeError:
                logger.debug("Event loop closed before waking a waiter")


class _Outcome(enum.Enum):
    VALUE = "value"
    ERROR = "error"
    CANCELLED = "cancelled"


class _FutureState:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.outcome: tuple[_Outcome, Any] | None = None
        self.waiters = _Waiters()

    def settle(self, kind: _Outcome, payload: Any, *, force: bool = False) -> None:
        with self.lock:
            if self.outcome is not None and not force:
                raise asyncio.InvalidStateError(
                    "Future is completed or cancelled already; complete may be called only once "
                    "and never after cancel"
                )
            self.outcome = (kind, payload)
            waiters, self.waiters = self.waiters, _Waiters()
        waiters.wake_all()

    def is_completed(self) -> bool:
        with self.lock:
            return self.outcome is not None


class ManualFuture(Generic[T]):
    """A future completed through its paired ManualFutureCompleter."""

    def __init__(self, _state: _FutureState) -> None:
        self._state = _state

    @classmethod
    def create(cls) -> tuple[ManualFuture[T], ManualFutureCompleter[T]]:
        state = _FutureState()
        return cls(state), ManualFutureCompleter(state)

    def is_completed(self) -> bool:
        return self._state.is_completed()

    def __await__(self) -> Generator[Any, None, T]:
        return self._wait().__await__()

    async def _wait(self) -> T:
        state = self._state
        while True:
            with state.lock:
                outcome = state.outcome
                waiter = state.waiters.add() if outcome is None else None
            if outcome is not None:
                kind, payload = outcome
                if kind is _Outcome.VALUE:
                    return payload
                if kind is _Outcome.ERROR:
                    raise payload
                logger.error("Future is cancelled")
                raise asyncio.CancelledError("The future was cancelled")
            await waiter


class ManualFutureCompleter(Generic[T]):
    """Completes, fails or cancels the associated ManualFuture."""

    def __init__(self, _state: _FutureState) -> None:
        self._state = _state

    def complete(self, value: T) -> None:
        """Complete the future with a value; raises InvalidStateError if already settled."""
        self._state.settle(_Outcome.VALUE, value)

    def fail(self, error: BaseException) -> None:
        """Make awaiting the future raise the given error."""
        self._state.settle(_Outcome.ERROR, error)

    def cancel(self) -> None:
        """Cancel the future, dropping any pending value."""
        logger.warning("Cancelling future...")
        self._state.settle(_Outcome.CANCELLED, None, force=True)

    def is_completed(self) -> bool:
        return self._state.is_completed()


_END = object()


class _StreamState:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.queue: collections.deque[Any] = collections.deque()
        self.waiters = _Waiters()

    def put(self, entry: Any) -> None:
        with self.lock:
            self.queue.append(entry)
            waiters, self.waiters = self.waiters, _Waiters()
        waiters.wake_all()


class ManualStream(Generic[T]):
    """An async iterator fed by a ManualStreamCompleter."""

    def __init__(self, _state: _StreamState) -> None:
        self._state = _state

    @classmethod
    def create(cls) -> tuple[ManualStream[T], ManualStreamCompleter[T]]:
        state = _StreamState()
        return cls(state), ManualStreamCompleter(state)

    def __aiter__(self) -> ManualStream[T]:
        return self

    async def __anext__(self) -> T:
        state = self._state
        while True:
            with state.lock:
                if state.queue:
                    entry = state.queue.popleft()
                    waiter = None
                else:
                    entry = None
                    waiter = state.waiters.add()
            if waiter is None:
                if entry is _END:
                    raise StopAsyncIteration
                return entry
            await waiter


class ManualStreamCompleter(Generic[T]):
    """Pushes items into the associated ManualStream and ends it."""

    def __init__(self, _state: _StreamState) -> None:
        self._state = _state

    def push(self, item: T) -> None:
        self._state.put(item)

    def close(self) -> None:
        self._state.put(_END)