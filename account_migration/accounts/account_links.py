"""
Explicit account links exported by the legacy system.

A link declares that two accounts denote the same person. Links are treated
as transitive: if A is linked to B and B to C, all three are linked.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from account_migration.accounts.file_iterator import FileIterator
from account_migration.utils.path_utils import id_from_href
from account_migration.utils.union_find import DisjointSet

logger = logging.getLogger(__name__)


class LinkGraph(Protocol):
    def get_linked_accounts(self, account_id: str) -> List[str]:
        ...


class AccountLink:
    """One exported link file: ``{"leftAccount": {"href"}, "rightAccount": {"href"}}``."""

    def __init__(self, file_path: Path) -> None:
        self.file_path = file_path
        self.left_account: Optional[Dict[str, Any]] = None
        self.right_account: Optional[Dict[str, Any]] = None

    def set_properties(self, props: Dict[str, Any]) -> None:
        self.left_account = props.get("leftAccount")
        self.right_account = props.get("rightAccount")

    def account_ids(self) -> Tuple[str, str]:
        try:
            return (
                id_from_href(self.left_account["href"]),  # type: ignore[index]
                id_from_href(self.right_account["href"]),  # type: ignore[index]
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Account link {self.file_path} is missing an account href") from e


class AccountLinks:
    """Transitive link graph over account ids."""

    def __init__(self, pairs: Iterable[Tuple[str, str]] = ()) -> None:
        self._groups = DisjointSet()
        for left_id, right_id in pairs:
            self.add_link(left_id, right_id)

    def add_link(self, left_id: str, right_id: str) -> None:
        self._groups.union(left_id, right_id)

    def get_linked_accounts(self, account_id: str) -> List[str]:
        """Every other account id linked to ``account_id``, sorted."""
        return sorted(
            str(member)
            for member in self._groups.get_set_members(account_id)
            if member != account_id
        )

    def get_group_count(self) -> int:
        return self._groups.get_set_count()

    def __len__(self) -> int:
        return len(self._groups)

    @classmethod
    async def from_directory(
        cls,
        directory: Optional[Union[str, Path]],
        limit: Optional[int] = None,
    ) -> "AccountLinks":
        """Load every link file in ``directory``; no directory means no links."""
        links = cls()
        if directory is None:
            return links

        iterator = FileIterator(directory, AccountLink)
        logger.info(f"Loading {len(iterator)} account links from {directory}")

        async def add(link: AccountLink) -> None:
            links.add_link(*link.account_ids())

        await iterator.each(add, limit=limit)
        logger.info(
            f"Loaded links covering {len(links)} accounts in "
            f"{links.get_group_count()} linked groups"
        )
        return links
