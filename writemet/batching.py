"""Order-preserving batching and the coarse per-run cooldown."""

import logging
from typing import Any, Awaitable, Callable, List, Sequence, TypeVar

from .ports import StatusCallback, notify

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split ``items`` into consecutive slices of at most ``size`` elements."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


async def cooldown_if_due(
    batch_number: int,
    total_batches: int,
    every: int,
    seconds: float,
    sleep: Callable[[float], Awaitable[Any]],
    on_status: StatusCallback = None,
) -> bool:
    """Pause after every ``every``-th batch (1-based) when more batches remain."""
    if batch_number % every != 0 or batch_number >= total_batches:
        return False

    logger.info("Cooling down for %.0fs after batch %d/%d", seconds, batch_number, total_batches)
    notify(on_status, f"Rate limit pause: waiting {seconds:.0f}s before batch {batch_number + 1}/{total_batches}...")
    await sleep(seconds)
    return True
