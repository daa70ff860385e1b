"""
Export account entity.

One ``ExportAccount`` is built from one exported account JSON file. The
export uses camelCase keys; they are normalised to snake_case attributes on
load. Only ``id``, ``email`` and ``username`` matter to reconciliation, the
rest is carried along and merged.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from account_migration.utils.checkpoint import CheckpointConfig, JsonCheckpoint
from account_migration.utils.path_utils import id_from_href

logger = logging.getLogger(__name__)

ENABLED = "ENABLED"

PROFILE_FIELDS = ["given_name", "middle_name", "surname"]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def to_snake_case(key: str) -> str:
    """
    >>> to_snake_case("givenName")
    'given_name'
    >>> to_snake_case("customData")
    'custom_data'
    """
    return _CAMEL_BOUNDARY.sub("_", key).lower()


class ExportAccount(JsonCheckpoint):
    def __init__(self, file_path: Union[str, Path]) -> None:
        # Absolute, so the snapshot path never lands under the checkpoint dir
        self.file_path = Path(file_path).resolve()
        self.id: Optional[str] = None
        self.href: Optional[str] = None
        self.email: str = ""
        self.username: str = ""
        self.given_name: Optional[str] = None
        self.middle_name: Optional[str] = None
        self.surname: Optional[str] = None
        self.status: Optional[str] = None
        self.custom_data: Dict[str, Any] = {}
        self.directory_ids: List[str] = []
        self.merged_account_ids: List[str] = []
        self.provider_user_id: Optional[str] = None

    def checkpoint_config(self) -> CheckpointConfig:
        # The export file is its own snapshot
        return CheckpointConfig(
            path=str(self.file_path.with_suffix("")),
            props=[
                "id",
                "href",
                "email",
                "username",
                "given_name",
                "middle_name",
                "surname",
                "status",
                "custom_data",
                "directory_ids",
                "merged_account_ids",
                "provider_user_id",
            ],
        )

    def set_properties(self, props: Dict[str, Any]) -> None:
        super().set_properties({to_snake_case(key): value for key, value in props.items()})

    def initialize_from_export(self, directory_id: Optional[str] = None) -> None:
        """Post-load hook: derive missing ids and default the username."""
        if not self.id and self.href:
            self.id = id_from_href(self.href)
        if not self.id:
            self.id = self.file_path.stem
        # Emails are matched exactly as exported, so they are not case folded
        self.email = self.email or ""
        self.username = (self.username or "").strip() or self.email

        # Exports nest the directory as {"href": ...}
        directory = getattr(self, "directory", None)
        if isinstance(directory, dict) and directory.get("href"):
            directory_id = directory_id or id_from_href(directory["href"])
        if directory_id and directory_id not in self.directory_ids:
            self.directory_ids = self.directory_ids + [directory_id]

    @property
    def is_enabled(self) -> bool:
        return self.status == ENABLED

    def merge(self, other: "ExportAccount") -> None:
        """Fold a linked account into this one.

        Values already present on this account win; empty fields are filled
        from ``other``.
        """
        for name in PROFILE_FIELDS:
            if not getattr(self, name) and getattr(other, name):
                setattr(self, name, getattr(other, name))

        self.custom_data = {**(other.custom_data or {}), **(self.custom_data or {})}

        for directory_id in other.directory_ids:
            if directory_id not in self.directory_ids:
                self.directory_ids.append(directory_id)

        if other.is_enabled:
            self.status = ENABLED

        if other.id and other.id not in self.merged_account_ids:
            self.merged_account_ids.append(other.id)
        for merged_id in other.merged_account_ids:
            if merged_id not in self.merged_account_ids:
                self.merged_account_ids.append(merged_id)

    def get_provider_user_id(self) -> Optional[str]:
        return self.provider_user_id

    def __repr__(self) -> str:
        return f"ExportAccount(id={self.id!r}, email={self.email!r}, username={self.username!r})"
