"""Bounded, typed loading of a directory of exported JSON records."""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import (
    Any,
    Awaitable,
    Callable,
    Collection,
    Dict,
    Generic,
    List,
    Optional,
    Protocol,
    TypeVar,
    Union,
)

from account_migration.utils.concurrency_pool import ConcurrencyPool
from account_migration.utils.settings import get_file_open_limit, get_max_files

logger = logging.getLogger(__name__)


class RecordLoadError(ValueError):
    """A record file could not be parsed."""

    def __init__(self, file_path: Path, message: str) -> None:
        super().__init__(f"Failed to load record {file_path}: {message}")
        self.file_path = file_path


class Loadable(Protocol):
    def set_properties(self, props: Dict[str, Any]) -> None:
        ...


T = TypeVar("T", bound=Loadable)


class FileIterator(Generic[T]):
    """Iterate over the eligible record files of one export directory.

    A directory that does not exist holds zero files. Otherwise files are
    eligible when they carry ``extension`` and their stem is not listed in
    ``skip_files``; the list is then capped at ``max_files`` (falling back to
    the configured cap).
    """

    def __init__(
        self,
        directory: Union[str, Path],
        factory: Callable[[Path], T],
        initializer: Optional[Callable[[T], None]] = None,
        skip_files: Optional[Collection[str]] = None,
        max_files: Optional[int] = None,
        extension: str = ".json",
    ) -> None:
        self.directory = Path(directory).resolve()
        self.factory = factory
        self.initializer = initializer
        self.extension = extension
        self.files: List[str] = []

        if not self.directory.exists():
            logger.debug(f"Directory {self.directory} does not exist, nothing to load")
            return

        skip = set(skip_files or ())
        self.files = [
            name
            for name in sorted(os.listdir(self.directory))
            if name.endswith(extension) and name[: -len(extension)] not in skip
        ]

        if max_files is None:
            max_files = get_max_files()
        if max_files:
            self.files = self.files[:max_files]

    async def read_file(self, name: str) -> T:
        file_path = self.directory / name
        contents = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        try:
            props = json.loads(contents)
        except json.JSONDecodeError as e:
            raise RecordLoadError(file_path, str(e)) from e
        if not isinstance(props, dict):
            raise RecordLoadError(file_path, "expected a JSON object")

        instance = self.factory(file_path)
        instance.set_properties(props)
        if self.initializer is not None:
            self.initializer(instance)
        return instance

    def _pool(self, limit: Optional[int]) -> ConcurrencyPool:
        return ConcurrencyPool(limit or get_file_open_limit())

    async def each(
        self,
        fn: Callable[[T], Awaitable[Any]],
        limit: Optional[int] = None,
    ) -> None:
        async def load_and_call(name: str) -> None:
            await fn(await self.read_file(name))

        await self._pool(limit).each(self.files, load_and_call)

    async def map_to_object(
        self,
        fn: Callable[[T, Dict[Any, Any]], Awaitable[Any]],
        limit: Optional[int] = None,
    ) -> Dict[Any, Any]:
        async def load_and_call(name: str, result: Dict[Any, Any]) -> None:
            await fn(await self.read_file(name), result)

        return await self._pool(limit).map_to_object(self.files, load_and_call)

    def __len__(self) -> int:
        return len(self.files)
