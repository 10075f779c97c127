from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

A = TypeVar("A")
R = TypeVar("R")


async def pmap(func: Callable[[A], Awaitable[R]], iterable: Iterable[A], max_concurrency: int) -> list[R]:
    """
    Parallel map with limited concurrency.

    Results come back in input order regardless of completion order. If any
    call raises, the remaining tasks are cancelled and the first exception
    propagates.
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def worker(item: A) -> R:
        async with semaphore:
            return await func(item)

    tasks = [asyncio.create_task(worker(item)) for item in iterable]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
