"""Request deadline and the join-under-deadline helper shared by council stages."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Hashable, Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class Deadline:
    """Wall-clock budget shared by every call in one request."""

    seconds: float
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def from_ms(cls, milliseconds: int) -> "Deadline":
        return cls(seconds=milliseconds / 1000)

    def remaining(self) -> float:
        return max(0.0, self.started_at + self.seconds - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0


@dataclass
class JoinOutcome:
    results: dict[Hashable, Any] = field(default_factory=dict)
    errors: dict[Hashable, BaseException] = field(default_factory=dict)
    unfinished: list[Hashable] = field(default_factory=list)
    cancelled: bool = False


async def join_within(
    calls: Mapping[Hashable, Awaitable[Any]],
    deadline: Deadline,
    cancel_event: asyncio.Event | None = None,
) -> JoinOutcome:
    """Run calls concurrently and join whatever finishes before the deadline.

    Anything still running when the deadline passes or cancel_event is set
    is cancelled and awaited before returning, so no task outlives the join.
    Exceptions raised by a call are returned in ``errors``, never re-raised.
    """
    tasks = {key: asyncio.ensure_future(call) for key, call in calls.items()}
    pending = set(tasks.values())
    waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
    cancelled = False

    try:
        while pending:
            remaining = deadline.remaining()
            if remaining <= 0:
                break
            watched = pending | {waiter} if waiter is not None else pending
            done, _ = await asyncio.wait(watched, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
            if not done:
                break
            pending -= done
            if waiter is not None and waiter in done:
                cancelled = True
                break
    finally:
        if waiter is not None:
            waiter.cancel()
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    outcome = JoinOutcome(cancelled=cancelled)
    for key, task in tasks.items():
        if task in pending or task.cancelled():
            outcome.unfinished.append(key)
        elif task.exception() is not None:
            outcome.errors[key] = task.exception()
        else:
            outcome.results[key] = task.result()

    if outcome.unfinished:
        logger.warning(
            "%d call(s) abandoned (%s): %s",
            len(outcome.unfinished),
            "cancelled" if cancelled else "deadline",
            ", ".join(str(key) for key in outcome.unfinished),
        )
    return outcome
