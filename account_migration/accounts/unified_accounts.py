"""
Identity unification for exported accounts.

Accounts are folded in one at a time and the order matters: the first account
to claim an email becomes the canonical identity for it. A later account with
the same email is merged into the canonical one only when the two are
explicitly linked; otherwise it is rejected. Rejections are logged, recorded
for the end-of-run report, and never stop the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Optional

from account_migration.accounts.account import ExportAccount
from account_migration.accounts.account_links import LinkGraph

logger = logging.getLogger(__name__)

# The downstream provider requires email-shaped logins
PLACEHOLDER_LOGIN_DOMAIN = "emailnotprovided.local"

RejectionReason = Literal["LINKED_EMAIL_MISMATCH", "UNLINKED_DUPLICATE_EMAIL"]


@dataclass
class Rejection:
    account: ExportAccount
    reason: RejectionReason
    conflicting_account: ExportAccount
    message: str


@dataclass
class ProblemUsername:
    account: ExportAccount
    conflicts: List[ExportAccount] = field(default_factory=list)


def get_login_prefix(login: str) -> str:
    """Text preceding the ``@`` of a login (the whole login when there is none)."""
    return login.split("@", 1)[0]


class UnifiedAccounts:
    def __init__(self, account_links: LinkGraph) -> None:
        self._account_links = account_links
        self._email_map: Dict[str, ExportAccount] = {}
        self._account_id_map: Dict[str, ExportAccount] = {}
        self._login_prefix_map: Dict[str, List[ExportAccount]] = {}
        self._converted_login_accounts: List[ExportAccount] = []
        self._rejections: List[Rejection] = []
        self.merged_count = 0

    def _reject(
        self,
        account: ExportAccount,
        reason: RejectionReason,
        conflicting: ExportAccount,
        msg: str,
    ) -> None:
        logger.warning(f"Account id={account.id} email={account.email} {msg}")
        self._rejections.append(Rejection(account, reason, conflicting, msg))

    def add_account(self, account: ExportAccount) -> Optional[ExportAccount]:
        """Fold ``account`` into the unified set.

        Returns:
            The canonical account ``account`` now belongs to, or None if it
            was rejected.

        """
        linked_account_ids = self._account_links.get_linked_accounts(account.id or "")

        # A link to an already registered account with another email is a
        # data integrity problem, not something to resolve silently
        for linked_id in linked_account_ids:
            linked_account = self._account_id_map.get(linked_id)
            if linked_account is not None and linked_account.email != account.email:
                self._reject(
                    account,
                    "LINKED_EMAIL_MISMATCH",
                    linked_account,
                    f"is linked to id={linked_account.id} email={linked_account.email}, "
                    "but email is different. Skipping.",
                )
                return None

        # Unlinked accounts never collapse into one identity by email alone
        email_account = self._email_map.get(account.email)
        if email_account is not None and email_account.id not in linked_account_ids:
            self._reject(
                account,
                "UNLINKED_DUPLICATE_EMAIL",
                email_account,
                f"has same email address as id={email_account.id}, but is not linked. Skipping.",
            )
            return None

        if email_account is not None:
            email_account.merge(account)
            self._account_id_map[account.id or ""] = email_account
            self.merged_count += 1
            logger.info(
                f"Merged account id={account.id} email={account.email} "
                f"into linked account id={email_account.id}"
            )
            return email_account

        if "@" not in account.username:
            updated = f"{account.username}@{PLACEHOLDER_LOGIN_DOMAIN}"
            logger.warning(
                f"Account id={account.id} username={account.username} "
                f"username is not an email. Using username={updated}."
            )
            account.username = updated
            self._converted_login_accounts.append(account)

        logger.debug(f"Adding new account id={account.id}")
        self._email_map[account.email] = account
        self._account_id_map[account.id or ""] = account
        self._login_prefix_map.setdefault(get_login_prefix(account.username), []).append(account)
        return account

    def add_accounts(self, accounts: Iterable[ExportAccount]) -> int:
        """Fold accounts in iteration order; returns how many were accepted."""
        return sum(1 for account in accounts if self.add_account(account) is not None)

    def get_accounts(self) -> List[ExportAccount]:
        return list(self._email_map.values())

    def get_accounts_by_email(self) -> Dict[str, ExportAccount]:
        return dict(self._email_map)

    def get_account_by_id(self, account_id: str) -> Optional[ExportAccount]:
        return self._account_id_map.get(account_id)

    def get_converted_login_accounts(self) -> List[ExportAccount]:
        return list(self._converted_login_accounts)

    def get_rejections(self) -> List[Rejection]:
        return list(self._rejections)

    def get_user_id_by_account_id(self, account_id: str) -> Optional[str]:
        account = self._account_id_map.get(account_id)
        if account is None:
            return None
        return account.get_provider_user_id()

    def get_user_ids_by_account_ids(self, account_ids: Iterable[str]) -> List[str]:
        user_ids = []
        for account_id in account_ids:
            user_id = self.get_user_id_by_account_id(account_id)
            if user_id:
                user_ids.append(user_id)
        return user_ids

    def get_missing_accounts(self, account_ids: Iterable[str]) -> List[str]:
        return [
            account_id
            for account_id in account_ids
            if not self.get_user_id_by_account_id(account_id)
        ]

    def get_problem_username_accounts(self) -> List[ProblemUsername]:
        """Converted logins that share their prefix with another account.

        A username that was not an email (``susan``) became
        ``susan@emailnotprovided.local``. On its own the user can still sign
        in as ``susan``. If ``susan@example.com`` also exists, the bare prefix
        is ambiguous and the converted user must sign in with the full
        placeholder login, so the pair is reported.
        """
        problems = []
        for account in self._converted_login_accounts:
            prefix = get_login_prefix(account.username)
            conflicts = [
                other
                for other in self._login_prefix_map.get(prefix, [])
                if other.id != account.id
            ]
            if conflicts:
                problems.append(ProblemUsername(account=account, conflicts=conflicts))
        return problems

    def __len__(self) -> int:
        return len(self._email_map)
