"""
Test helpers shared across packages.
"""

import asyncio
from typing import Callable, Iterable, List

from ledger.ledger import ScoreLedger
from ledger.models import ScoreEvent


# Day-aligned, therefore also hour- and minute-aligned
BASE_MS = 1_700_006_400_000
BLOCK_INTERVAL_MS = 3_000


def seed_ledger(
    ledger: ScoreLedger,
    deltas: Iterable[int],
    start_sequence: int = 1,
    start_ms: int = BASE_MS,
    step_ms: int = BLOCK_INTERVAL_MS,
) -> List[ScoreEvent]:
    """Append one event per delta with consecutive sequence numbers."""
    events = []
    for i, delta in enumerate(deltas):
        events.append(ledger.append(start_sequence + i, start_ms + i * step_ms, delta))
    return events


def alternating(count: int) -> List[int]:
    """+1, -1, +1, ... deltas."""
    return [1 if i % 2 == 0 else -1 for i in range(count)]


async def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until condition() holds; fail after timeout seconds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
