"""
Batched sending.

Recipients are split into fixed-size chunks. Members of a chunk are sent
concurrently; chunks go strictly one after another with a short pause in
between to stay under the provider's rate limit.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence, TypeVar

from core.notifications.dispatcher import DispatchResult
from core.notifications.recipients import Recipient

logger = logging.getLogger(__name__)

T = TypeVar("T")

BATCH_SIZE = 50
BATCH_PAUSE_SECONDS = 1.0


@dataclass
class BatchOutcome:
    index: int
    results: list[DispatchResult] = field(default_factory=list)
    # True when the results came from the step log rather than a fresh send
    replayed: bool = False

    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)


def make_batches(items: Sequence[T], size: int = BATCH_SIZE) -> list[list[T]]:
    """Split into contiguous chunks of at most `size`, preserving order."""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


async def dispatch_batch(
    batch: Sequence[Recipient],
    send_one: Callable[[Recipient], Awaitable[DispatchResult]],
) -> list[DispatchResult]:
    """
    Send to every member of a batch concurrently and wait for all of them.

    An exception from one member becomes that member's failed result; it
    never cancels the others.
    """
    outcomes = await asyncio.gather(
        *(send_one(recipient) for recipient in batch),
        return_exceptions=True,
    )

    results = []
    for recipient, outcome in zip(batch, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"Unexpected error sending to {recipient.email}: {outcome!r}")
            results.append(DispatchResult.failed(recipient, repr(outcome)))
        else:
            results.append(outcome)
    return results


async def run_batches(
    batches: Sequence[Sequence[Recipient]],
    process_batch: Callable[[int, Sequence[Recipient]], Awaitable[BatchOutcome]],
    pause: float = BATCH_PAUSE_SECONDS,
    sleep=asyncio.sleep,
) -> list[BatchOutcome]:
    """
    Process batches in order, pausing between freshly-sent batches.

    There is no pause after the last batch, and none after a batch whose
    results were replayed from a previous attempt.
    """
    outcomes = []
    last = len(batches) - 1
    for index, batch in enumerate(batches):
        logger.info(f"Processing batch {index} ({len(batch)} recipients)")
        outcome = await process_batch(index, batch)
        outcomes.append(outcome)
        if index < last and not outcome.replayed:
            await sleep(pause)
    return outcomes
