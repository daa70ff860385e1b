"""Lightweight pointer from an account id to its provisioned identity."""

from typing import Optional

from account_migration.accounts.account import ExportAccount
from account_migration.utils.checkpoint import CheckpointConfig, JsonCheckpoint


class AccountRef(JsonCheckpoint):
    def __init__(self, id: str) -> None:
        self.id = id
        self.provider_user_id: Optional[str] = None
        self.username: Optional[str] = None
        self.email: Optional[str] = None
        self.account_file_path: Optional[str] = None

    @classmethod
    def from_account(cls, account: ExportAccount) -> "AccountRef":
        ref = cls(account.id or "")
        ref.provider_user_id = account.provider_user_id
        ref.username = account.username
        ref.email = account.email
        ref.account_file_path = str(account.file_path)
        return ref

    def checkpoint_config(self) -> CheckpointConfig:
        return CheckpointConfig(
            path=f"account-refs/{self.id}",
            props=["id", "provider_user_id", "username", "email", "account_file_path"],
        )

    def _new_account(self) -> ExportAccount:
        if not self.account_file_path:
            raise ValueError(f"AccountRef {self.id} has no account_file_path; restore it first")
        return ExportAccount(self.account_file_path)

    def get_account(self) -> ExportAccount:
        account = self._new_account()
        account.restore()
        account.initialize_from_export()
        return account

    async def get_account_async(self) -> ExportAccount:
        account = self._new_account()
        await account.restore_async()
        account.initialize_from_export()
        return account
