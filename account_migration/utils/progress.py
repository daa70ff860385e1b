from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator
from typing import Optional, TypeVar

T = TypeVar("T")


class ProgressLogger:
    """Log throughput of a long loop every ``step_every`` items or ``secs_every`` seconds."""

    def __init__(
        self,
        total: Optional[int],
        label: str,
        step_every: int = 10_000,
        secs_every: float = 5.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.total = total
        self.label = label
        self.step_every = step_every
        self.secs_every = secs_every
        self.count = 0
        self._last_log_count = 0
        self._last_log_time = time.time()
        self._start = self._last_log_time
        self._logger = logger or logging.getLogger(__name__)

    def _should_log(self, i: int) -> bool:
        if i - self._last_log_count >= self.step_every:
            return True
        return time.time() - self._last_log_time >= self.secs_every

    def _fmt(self, i: int) -> str:
        elapsed = time.time() - self._start
        rate = i / elapsed if elapsed > 0 else 0.0
        eta = ""
        if self.total is not None and rate > 0:
            remaining = max(self.total - i, 0)
            eta = f" | eta={remaining / rate:,.0f}s"
        total = self.total if self.total is not None else "?"
        return f"{self.label}: {i:,}/{total} | {rate:,.0f} it/s | elapsed={elapsed:,.0f}s{eta}"

    def step(self, n: int = 1) -> None:
        """Record ``n`` completed items (usable from async callbacks)."""
        self.count += n
        if self._should_log(self.count):
            self._logger.info(self._fmt(self.count))
            self._last_log_count = self.count
            self._last_log_time = time.time()

    def finish(self) -> None:
        self._logger.info(self._fmt(self.count))

    def wrap(self, it: Iterable[T]) -> Iterator[T]:
        for item in it:
            self.step()
            yield item
        self.finish()
