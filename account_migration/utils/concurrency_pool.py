"""Bounded concurrency for asyncio workloads.

``ConcurrencyPool`` runs an async function over a sequence of items with at
most ``limit`` invocations in flight. It behaves as a sliding window: the
first ``limit`` items start in input order, and every completion launches the
next unstarted item until the input is exhausted.

Completion order is unconstrained. Callers that need ordered or keyed
results should use ``map_to_object`` rather than rely on the order in which
callbacks run.

Failure policy: the first exception stops new launches, cancels the
in-flight siblings and is re-raised once they have finished cancelling.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from typing import Any, Callable, Dict, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_EXHAUSTED = object()


class ConcurrencyPool:
    """Sliding-window scheduler bounded by ``limit`` in-flight tasks."""

    def __init__(self, limit: int) -> None:
        if not isinstance(limit, int) or limit < 1:
            raise ValueError(f"Concurrency limit must be a positive int, got {limit!r}")
        self.limit = limit

    async def each(
        self,
        items: Iterable[T],
        fn: Callable[[T], Awaitable[Any]],
    ) -> None:
        """Await ``fn(item)`` for every item, discarding return values."""
        await self._run(items, fn)

    async def map_to_object(
        self,
        items: Iterable[T],
        fn: Callable[[T, Dict[Any, Any]], Awaitable[Any]],
    ) -> Dict[Any, Any]:
        """Await ``fn(item, result)`` for every item and return ``result``.

        The callback records its contribution into the shared ``result`` dict
        under whatever key it chooses.
        """
        result: Dict[Any, Any] = {}

        async def contribute(item: T) -> None:
            await fn(item, result)

        await self._run(items, contribute)
        return result

    async def _run(self, items: Iterable[T], fn: Callable[[T], Awaitable[Any]]) -> None:
        pending_items = iter(items)
        in_flight: Set[asyncio.Future[Any]] = set()

        def launch_next() -> bool:
            item = next(pending_items, _EXHAUSTED)
            if item is _EXHAUSTED:
                return False
            in_flight.add(asyncio.ensure_future(fn(item)))  # type: ignore[arg-type]
            return True

        try:
            while len(in_flight) < self.limit and launch_next():
                pass

            while in_flight:
                done, in_flight = await asyncio.wait(
                    in_flight, return_when=asyncio.FIRST_COMPLETED
                )
                # Retrieve every result so sibling failures are not left unobserved
                errors = [exc for exc in (task.exception() for task in done) if exc]
                if errors:
                    if len(errors) > 1:
                        logger.debug(f"{len(errors) - 1} additional task failure(s) suppressed")
                    raise errors[0]
                for _ in done:
                    if not launch_next():
                        break
        finally:
            for task in in_flight:
                task.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)
