from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, TypeVar

from shared.constants import FETCH_CONCURRENCY_DEFAULT, FETCH_QUEUE_MAX

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable

    from tiles.store import TileRecord

T = TypeVar('T')

_DONE = object()


async def stream_decoded_tiles(
    records: Iterable[TileRecord],
    decode: Callable[[TileRecord], T],
    *,
    max_queue: int = FETCH_QUEUE_MAX,
    concurrency: int = FETCH_CONCURRENCY_DEFAULT,
    discard: Callable[[T], None] | None = None,
) -> AsyncIterator[tuple[TileRecord, T]]:
    """
    Decode tiles in worker threads, yielding (record, decoded) in completion order.

    Records are pulled lazily, each in a worker thread so a blocking storage
    cursor does not stall the event loop. At most ``concurrency`` decodes run
    at once and at most ``max_queue`` results wait for the consumer. An error
    raised while reading or decoding is re-raised to the consumer after every
    decode already in flight has been delivered. Results the consumer never
    receives (it stopped early) are passed to ``discard``.
    """
    sem = asyncio.Semaphore(concurrency)
    queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max_queue)

    def _drop(decoded: T) -> None:
        if discard is not None:
            discard(decoded)

    async def _decode_one(record: TileRecord) -> None:
        try:
            decoded = await asyncio.to_thread(decode, record)
        finally:
            sem.release()
        try:
            await queue.put((record, decoded))
        except asyncio.CancelledError:
            _drop(decoded)
            raise

    async def _produce() -> None:
        tasks: list[asyncio.Task[None]] = []
        it = iter(records)
        try:
            while True:
                record = await asyncio.to_thread(next, it, _DONE)
                if record is _DONE:
                    break
                await sem.acquire()
                tasks.append(asyncio.create_task(_decode_one(record)))
            await asyncio.gather(*tasks)
        except Exception as e:
            # Decodes already running still reach the consumer before the error
            await asyncio.gather(*tasks, return_exceptions=True)
            await queue.put(e)
        else:
            await queue.put(_DONE)
        finally:
            for task in tasks:
                task.cancel()

    prod_task = asyncio.create_task(_produce())
    try:
        while True:
            item = await queue.get()
            if item is _DONE:
                break
            if isinstance(item, Exception):
                raise item
            yield item  # type: ignore[misc]
    finally:
        if not prod_task.done():
            prod_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await prod_task
        while not queue.empty():
            item = queue.get_nowait()
            if isinstance(item, tuple):
                _drop(item[1])
