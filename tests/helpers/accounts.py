"""Builders for exported account and link fixtures."""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from account_migration.accounts.account import ExportAccount

API_BASE = "https://api.example.com/v1"


def account_payload(
    account_id: str,
    email: str,
    username: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Account JSON as the legacy export writes it (camelCase keys)."""
    payload: Dict[str, Any] = {
        "href": f"{API_BASE}/accounts/{account_id}",
        "email": email,
        "username": username if username is not None else email,
        "givenName": extra.pop("givenName", account_id.title()),
        "surname": extra.pop("surname", "Tester"),
        "status": extra.pop("status", "ENABLED"),
    }
    payload.update(extra)
    return payload


def link_payload(left_id: str, right_id: str) -> Dict[str, Any]:
    return {
        "leftAccount": {"href": f"{API_BASE}/accounts/{left_id}"},
        "rightAccount": {"href": f"{API_BASE}/accounts/{right_id}"},
    }


def write_json(directory: Path, name: str, payload: Dict[str, Any]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(json.dumps(payload))
    return path


def make_account(
    account_id: str,
    email: str,
    username: Optional[str] = None,
    **extra: Any,
) -> ExportAccount:
    """Build an initialised account without touching disk."""
    account = ExportAccount(Path(f"/exports/accounts/{account_id}.json"))
    account.set_properties(account_payload(account_id, email, username, **extra))
    account.initialize_from_export()
    return account


class StaticLinks:
    """Link graph backed by explicit, symmetric pairs (not transitive)."""

    def __init__(self, pairs: Iterable[Tuple[str, str]] = ()) -> None:
        self._links: Dict[str, List[str]] = {}
        for left, right in pairs:
            self._links.setdefault(left, []).append(right)
            self._links.setdefault(right, []).append(left)
        self.queries: List[str] = []

    def get_linked_accounts(self, account_id: str) -> List[str]:
        self.queries.append(account_id)
        return list(self._links.get(account_id, []))
