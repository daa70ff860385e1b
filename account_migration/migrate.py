"""
Account migration runner.

A run has three steps:

1. Load the account link graph and every exported account, under the
   configured file open limit.
2. Fold the accounts through ``UnifiedAccounts`` one at a time, in sorted id
   order, so the same export always produces the same unified set.
3. Optionally provision each unified account downstream. Provisioned ids are
   appended to the ``provisioned-accounts`` log checkpoint; a restarted run
   replays that log to recover the downstream ids and only provisions what is
   left.

The run ends with an aggregate report of rejected accounts and ambiguous
converted logins.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Collection, Dict, Optional, Protocol, Set, Tuple, Union

from account_migration import __version__
from account_migration.accounts.account import ExportAccount
from account_migration.accounts.account_links import AccountLinks
from account_migration.accounts.account_ref import AccountRef
from account_migration.accounts.file_iterator import FileIterator
from account_migration.accounts.unified_accounts import UnifiedAccounts
from account_migration.report import RunReport
from account_migration.utils.checkpoint import LogCheckpoint
from account_migration.utils.concurrency_pool import ConcurrencyPool
from account_migration.utils.logging_utils import setup_logging
from account_migration.utils.progress import ProgressLogger
from account_migration.utils.settings import (
    get_api_concurrency,
    get_checkpoint_every,
    get_file_open_limit,
    get_max_files,
    get_settings,
    validate_settings,
)

logger = logging.getLogger(__name__)

PROVISIONED_LOG = "provisioned-accounts"


class Provisioner(Protocol):
    """Downstream identity provider client."""

    async def provision(self, account: ExportAccount) -> str:
        """Create the user and return the provider's id for it."""
        ...


class MigrationRunner:
    def __init__(
        self,
        accounts_dir: Union[str, Path],
        links_dir: Optional[Union[str, Path]] = None,
        provisioner: Optional[Provisioner] = None,
        skip_account_ids: Optional[Collection[str]] = None,
        max_files: Optional[int] = None,
        file_open_limit: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.accounts_dir = Path(accounts_dir)
        self.links_dir = Path(links_dir) if links_dir else None
        self.provisioner = provisioner
        self.skip_account_ids = set(skip_account_ids or ())
        # 0 disables the cap
        self.max_files = max_files if max_files is not None else (get_max_files(settings) or 0)
        self.file_open_limit = file_open_limit or get_file_open_limit(settings)
        self.api_concurrency = get_api_concurrency(settings)
        self.checkpoint_every = get_checkpoint_every(settings)

    async def load_links(self) -> AccountLinks:
        return await AccountLinks.from_directory(self.links_dir, limit=self.file_open_limit)

    async def load_accounts(self) -> Dict[str, ExportAccount]:
        """Load every eligible account file, keyed by account id."""
        iterator = FileIterator(
            self.accounts_dir,
            ExportAccount,
            initializer=ExportAccount.initialize_from_export,
            skip_files=self.skip_account_ids,
            max_files=self.max_files,
        )
        logger.info(f"Loading {len(iterator)} accounts from {self.accounts_dir}")
        progress = ProgressLogger(len(iterator), "Loading accounts", step_every=1_000)

        async def collect(account: ExportAccount, result: Dict[str, ExportAccount]) -> None:
            progress.step()
            account_id = account.id or ""
            existing = result.get(account_id)
            if existing is not None:
                # Keep the lexically first file so the outcome is independent of load order
                keep, drop = sorted([existing, account], key=lambda a: str(a.file_path))
                logger.warning(
                    f"Duplicate account id={account_id} in {drop.file_path}, "
                    f"keeping {keep.file_path}"
                )
                result[account_id] = keep
                return
            result[account_id] = account

        accounts = await iterator.map_to_object(collect, limit=self.file_open_limit)
        progress.finish()
        return accounts

    def unify(self, links: AccountLinks, accounts: Dict[str, ExportAccount]) -> UnifiedAccounts:
        unified = UnifiedAccounts(links)
        progress = ProgressLogger(len(accounts), "Unifying accounts", step_every=10_000)
        for account_id in progress.wrap(sorted(accounts)):
            unified.add_account(accounts[account_id])
        logger.info(
            f"Unified {len(accounts):,} accounts into {len(unified):,} identities "
            f"({len(unified.get_rejections()):,} rejected)"
        )
        return unified

    async def restore_provisioned(self, unified: UnifiedAccounts, log: LogCheckpoint) -> Set[str]:
        """Replay the provisioning log; returns ids of already provisioned accounts."""
        done: Set[str] = set()

        async def restore(account_id: str) -> None:
            ref = AccountRef(account_id)
            await ref.restore_async()
            account = unified.get_account_by_id(account_id)
            if account is None:
                logger.warning(
                    f"Previously provisioned account id={account_id} is not in the unified set"
                )
                return
            account.provider_user_id = ref.provider_user_id
            done.add(account.id or "")

        await log.process_async(restore, limit=self.file_open_limit)
        return done

    async def provision(self, unified: UnifiedAccounts) -> Tuple[int, int]:
        """Provision unified accounts not yet in the log.

        Returns:
            (provisioned this run, provisioned by earlier runs)

        """
        if self.provisioner is None:
            logger.info("No provisioner configured, skipping provisioning")
            return 0, 0

        provisioner = self.provisioner
        log = LogCheckpoint(PROVISIONED_LOG)
        done = await self.restore_provisioned(unified, log)
        remaining = [account for account in unified.get_accounts() if account.id not in done]
        logger.info(f"{len(done):,} accounts already provisioned, {len(remaining):,} remaining")

        progress = ProgressLogger(len(remaining), "Provisioning accounts", step_every=1_000)
        provisioned = 0

        async def provision_one(account: ExportAccount) -> None:
            nonlocal provisioned
            account.provider_user_id = await provisioner.provision(account)
            await AccountRef.from_account(account).save_async()
            log.add(account.id or "")
            provisioned += 1
            progress.step()
            if len(log.pending_items) >= self.checkpoint_every:
                await log.save_async()

        try:
            await ConcurrencyPool(self.api_concurrency).each(remaining, provision_one)
        finally:
            # Keep whatever finished, even when a sibling failed or we were interrupted
            await log.save_async()
        progress.finish()
        return provisioned, len(done)

    async def run(self) -> RunReport:
        links = await self.load_links()
        accounts = await self.load_accounts()
        unified = self.unify(links, accounts)
        provisioned, previously_provisioned = await self.provision(unified)
        return RunReport.from_unified(
            unified,
            records_loaded=len(accounts),
            provisioned=provisioned,
            previously_provisioned=previously_provisioned,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Unify exported accounts and report reconciliation problems",
    )
    parser.add_argument("--accounts", required=True, help="Directory of exported account JSON files")
    parser.add_argument("--links", help="Directory of exported account link JSON files")
    parser.add_argument("--outdir", required=True, help="Directory for the run report")
    parser.add_argument("--config", help="Settings YAML file (default: config/settings.yaml)")
    parser.add_argument("--checkpoint-dir", help="Override migration.checkpoint_dir")
    parser.add_argument(
        "--limit",
        type=int,
        help="Maximum simultaneously open files (overrides migration.file_open_limit)",
    )
    parser.add_argument(
        "--max-files",
        type=int,
        help="Load at most this many account files (staging runs)",
    )
    parser.add_argument("--skip", nargs="+", default=[], help="Account ids to leave out of the run")
    parser.add_argument("--log-level", help="Logging level (overrides logging.level)")
    parser.add_argument(
        "--version",
        action="version",
        version=f"Account Migration v{__version__}",
    )
    return parser


def main(argv: Optional[list] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.config:
        os.environ["MIGRATION_CONFIG"] = args.config
    if args.checkpoint_dir:
        os.environ["MIGRATION_CHECKPOINT_DIR"] = args.checkpoint_dir

    settings = get_settings()
    log_settings = settings["logging"]
    setup_logging(
        level=args.log_level or log_settings["level"],
        log_file=log_settings.get("file"),
        fmt=log_settings["format"],
    )
    for warning in validate_settings(settings):
        logger.warning(f"Settings: {warning}")

    if not os.path.isdir(args.accounts):
        logger.error(f"Accounts directory not found: {args.accounts}")
        sys.exit(1)

    runner = MigrationRunner(
        accounts_dir=args.accounts,
        links_dir=args.links,
        skip_account_ids=args.skip,
        max_files=args.max_files,
        file_open_limit=args.limit,
    )
    try:
        report = asyncio.run(runner.run())
    except KeyboardInterrupt:
        logger.warning("Migration interrupted by user (Ctrl+C)")
        sys.exit(130)
    except Exception:
        logger.exception("Migration failed with exception:")
        sys.exit(1)

    report.log_summary()
    report.write(args.outdir)


if __name__ == "__main__":
    main()
