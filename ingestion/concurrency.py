"""
Bounded-parallelism helper for provider fetches.
A fixed number of asyncio workers drain a list of task factories in order.
"""

import os
import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def default_concurrency() -> int:
    return int(os.getenv('FETCH_CONCURRENCY', '8'))


async def run_bounded(
    factories: List[Callable[[], Awaitable[Any]]],
    concurrency: Optional[int] = None,
    on_progress: Optional[Callable[[int, int], None]] = None
) -> List[Any]:
    """
    Run task factories with at most ``concurrency`` in flight.

    Args:
        factories: Zero-argument callables returning awaitables
        concurrency: Worker count (defaults to $FETCH_CONCURRENCY, 8)
        on_progress: Called with (completed, total) after each task

    Returns:
        Results in the same order as factories. Exceptions propagate;
        callers that tolerate failures catch them inside the factory.
    """
    if concurrency is None:
        concurrency = default_concurrency()
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    total = len(factories)
    results: List[Any] = [None] * total
    next_index = 0
    completed = 0

    async def worker() -> None:
        nonlocal next_index, completed
        while next_index < total:
            i = next_index
            next_index += 1
            results[i] = await factories[i]()
            completed += 1
            if on_progress:
                on_progress(completed, total)

    workers = [asyncio.create_task(worker()) for _ in range(min(concurrency, total))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        raise

    return results
