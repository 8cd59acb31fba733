"""
Small reactive building blocks for asyncio pipelines.

- LatestValues: combine-latest arena holding the newest value per source
- debounce: emit only after a quiet period on a queue
- observe_async: turn a callback subscription into an async iterator
"""

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from typing import Any, TypeVar

T = TypeVar("T")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class LatestValues:
    """
    Latest known value per named source.

    A snapshot is only meaningful once every source has produced at least
    one value; until then `is_complete` is false.
    """

    def __init__(self, sources: Iterable[str]) -> None:
        self._slots: dict[str, Any] = {source: UNSET for source in sources}

    def update(self, source: str, value: Any) -> None:
        if source not in self._slots:
            raise KeyError(f"Unknown source: {source}")
        self._slots[source] = value

    @property
    def is_complete(self) -> bool:
        return all(value is not UNSET for value in self._slots.values())

    def snapshot(self) -> Mapping[str, Any]:
        if not self.is_complete:
            missing = [name for name, value in self._slots.items() if value is UNSET]
            raise RuntimeError(f"Sources without a value yet: {', '.join(missing)}")
        return dict(self._slots)


async def debounce(queue: "asyncio.Queue[T]", window_seconds: float) -> AsyncIterator[T]:
    """
    Yield the newest queued item once no other item arrived for `window_seconds`.

    Items superseded within the window are dropped.
    """
    while True:
        item = await queue.get()
        while True:
            try:
                item = await asyncio.wait_for(queue.get(), timeout=window_seconds)
            except TimeoutError:
                break
        yield item


async def observe_async(
    subscribe: Callable[[Callable[[T], None]], Callable[[], None]],
) -> AsyncIterator[T]:
    """
    Bridge a callback-style subscription to an async iterator.

    Callbacks may fire on any thread; values are handed to the running loop
    in delivery order. The subscription ends when the iterator is closed.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[T] = asyncio.Queue()

    def deliver(value: T) -> None:
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(queue.put_nowait, value)

    unsubscribe = subscribe(deliver)
    try:
        while True:
            yield await queue.get()
    finally:
        unsubscribe()
