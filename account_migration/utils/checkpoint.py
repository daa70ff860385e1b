"""Checkpoint persistence for resumable migration runs.

Two kinds of checkpoint share one path contract. An entity describes where it
lives and what it persists through ``checkpoint_config()``; the on-disk file
is ``<checkpoint_dir>/<config.path>.<kind>``.

- ``JsonCheckpoint`` (kind ``json``) is a snapshot of the declared properties,
  overwritten on every save.
- ``LogCheckpoint`` (kind ``txt``) is an append-only, newline-delimited log of
  completed work items. Items are buffered with ``add`` and only become
  durable on ``save``; anything still buffered when the process dies is lost.

An absent checkpoint file reads as "no prior state", so first runs and resumed
runs take the same code path.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from account_migration.utils.concurrency_pool import ConcurrencyPool
from account_migration.utils.path_utils import ensure_parent_exists
from account_migration.utils.settings import get_checkpoint_dir, get_file_open_limit

logger = logging.getLogger(__name__)

SNAPSHOT_KIND = "json"
LOG_KIND = "txt"


class CheckpointError(ValueError):
    """A checkpoint file exists but its content cannot be parsed."""


@dataclass(frozen=True)
class CheckpointConfig:
    path: str
    props: List[str] = field(default_factory=list)


class Checkpointable(Protocol):
    """Anything that can tell the store where its checkpoint lives."""

    def checkpoint_config(self) -> CheckpointConfig:
        ...


def checkpoint_path(entity: Checkpointable, kind: str) -> Path:
    """Resolve the file backing ``entity``'s checkpoint of the given kind.

    An absolute ``config.path`` is used as-is rather than being placed under
    the checkpoint directory.
    """
    config = entity.checkpoint_config()
    return get_checkpoint_dir() / f"{config.path}.{kind}"


def _atomic_write(path: Path, content: str) -> None:
    ensure_parent_exists(path)
    with tempfile.NamedTemporaryFile(
        "w", delete=False, dir=str(path.parent), encoding="utf-8"
    ) as tmp:
        tmp.write(content)
        tmp_path = Path(tmp.name)
    os.replace(tmp_path, path)


def _append(path: Path, content: str) -> None:
    ensure_parent_exists(path)
    if path.exists():
        with open(path, "a", encoding="utf-8") as f:
            f.write("\n" + content)
    else:
        path.write_text(content, encoding="utf-8")


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


class JsonCheckpoint:
    """Snapshot checkpoint mixin.

    Subclasses implement ``checkpoint_config`` and declare which attributes
    make up the snapshot in ``props``. Saving writes exactly those properties,
    in declared order; restoring assigns whatever the file holds.
    """

    def checkpoint_config(self) -> CheckpointConfig:
        raise NotImplementedError(
            f"{type(self).__name__} must implement checkpoint_config()"
        )

    def get_checkpoint_path(self) -> Path:
        return checkpoint_path(self, SNAPSHOT_KIND)

    def set_properties(self, props: Dict[str, Any]) -> None:
        """Assign ``props`` as attributes, skipping keys that name a method or property."""
        for key, value in props.items():
            class_attr = getattr(type(self), key, None)
            if callable(class_attr) or isinstance(class_attr, property):
                logger.warning(
                    f"Ignoring property {key!r} on {type(self).__name__}: "
                    "it names a method or property"
                )
                continue
            setattr(self, key, value)

    def get_properties(self) -> Dict[str, Any]:
        return {key: getattr(self, key, None) for key in self.checkpoint_config().props}

    def _parse(self, content: Optional[str], path: Path) -> Dict[str, Any]:
        if not content:
            return {}
        try:
            props = json.loads(content)
        except json.JSONDecodeError as e:
            raise CheckpointError(f"Corrupted checkpoint {path}: {e}") from e
        if not isinstance(props, dict):
            raise CheckpointError(f"Checkpoint {path} does not hold an object")
        return props

    def _serialize(self) -> str:
        return json.dumps(self.get_properties(), indent=2)

    def save(self) -> None:
        _atomic_write(self.get_checkpoint_path(), self._serialize())

    async def save_async(self) -> None:
        path = self.get_checkpoint_path()
        await asyncio.to_thread(_atomic_write, path, self._serialize())

    def read_checkpoint(self) -> Dict[str, Any]:
        path = self.get_checkpoint_path()
        return self._parse(_read_text(path), path)

    async def read_checkpoint_async(self) -> Dict[str, Any]:
        path = self.get_checkpoint_path()
        return self._parse(await asyncio.to_thread(_read_text, path), path)

    def restore(self) -> None:
        self.set_properties(self.read_checkpoint())

    async def restore_async(self) -> None:
        self.set_properties(await self.read_checkpoint_async())


class LogCheckpoint:
    """Append-only checkpoint of completed work items."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.pending_items: List[str] = []
        self._save_lock = asyncio.Lock()

    def checkpoint_config(self) -> CheckpointConfig:
        return CheckpointConfig(path=self.path)

    def get_checkpoint_path(self) -> Path:
        return checkpoint_path(self, LOG_KIND)

    def add(self, item: str) -> None:
        if "\n" in item:
            raise ValueError(f"Log checkpoint items cannot contain newlines: {item!r}")
        self.pending_items.append(item)

    def save(self) -> None:
        """Append buffered items to the log and clear the buffer."""
        if not self.pending_items:
            return
        items = list(self.pending_items)
        _append(self.get_checkpoint_path(), "\n".join(items))
        del self.pending_items[: len(items)]
        logger.debug(f"Flushed {len(items)} items to log checkpoint {self.path}")

    async def save_async(self) -> None:
        if not self.pending_items:
            return
        async with self._save_lock:
            # Items added while the write is in flight stay buffered for the next save
            items, self.pending_items = self.pending_items, []
            if not items:
                return
            try:
                await asyncio.to_thread(_append, self.get_checkpoint_path(), "\n".join(items))
            except BaseException:
                self.pending_items = items + self.pending_items
                raise
        logger.debug(f"Flushed {len(items)} items to log checkpoint {self.path}")

    def read_items(self) -> List[str]:
        content = _read_text(self.get_checkpoint_path())
        return content.split("\n") if content else []

    async def read_items_async(self) -> List[str]:
        content = await asyncio.to_thread(_read_text, self.get_checkpoint_path())
        return content.split("\n") if content else []

    def process(self, process_fn: Callable[[str], Any]) -> None:
        """Call ``process_fn`` once per persisted item, in append order."""
        logger.info(f"Loading log checkpoint file {self.path}")
        items = self.read_items()
        if not items:
            return

        logger.info(f"Processing {len(items)} log items")
        for item in items:
            if not item:
                continue
            process_fn(item)

    async def process_async(
        self,
        process_fn: Callable[[str], Awaitable[Any]],
        limit: Optional[int] = None,
    ) -> None:
        """Await ``process_fn`` for every persisted item under a concurrency bound."""
        logger.info(f"Loading log checkpoint file {self.path}")
        items = await self.read_items_async()
        if not items:
            return

        logger.info(f"Processing {len(items)} log items")
        pool = ConcurrencyPool(limit or get_file_open_limit())
        await pool.each([item for item in items if item], process_fn)
