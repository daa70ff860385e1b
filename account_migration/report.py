"""
End-of-run report for the account migration.

Reconciliation conflicts and ambiguous converted logins are logged inline as
they happen, but operators act on the aggregate: this module collects the
counts and lists and writes them out as CSV files next to a JSON summary.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from account_migration.accounts.unified_accounts import (
    ProblemUsername,
    Rejection,
    UnifiedAccounts,
)
from account_migration.utils.path_utils import ensure_directory_exists

logger = logging.getLogger(__name__)

REJECTION_COLUMNS = [
    "account_id",
    "email",
    "username",
    "reason",
    "conflicting_account_id",
    "conflicting_email",
    "message",
]
PROBLEM_USERNAME_COLUMNS = [
    "account_id",
    "email",
    "username",
    "conflicting_account_id",
    "conflicting_username",
]
UNIFIED_ACCOUNT_COLUMNS = [
    "account_id",
    "email",
    "username",
    "merged_account_ids",
    "provider_user_id",
    "account_file_path",
]


@dataclass
class RunCounts:
    records_loaded: int = 0
    unified_accounts: int = 0
    merged: int = 0
    rejected: int = 0
    converted_logins: int = 0
    problem_usernames: int = 0
    provisioned: int = 0
    previously_provisioned: int = 0


@dataclass
class RunReport:
    counts: RunCounts = field(default_factory=RunCounts)
    rejections: List[Rejection] = field(default_factory=list)
    problem_usernames: List[ProblemUsername] = field(default_factory=list)
    unified: Optional[UnifiedAccounts] = None

    @classmethod
    def from_unified(
        cls,
        unified: UnifiedAccounts,
        records_loaded: int,
        provisioned: int = 0,
        previously_provisioned: int = 0,
    ) -> "RunReport":
        rejections = unified.get_rejections()
        problems = unified.get_problem_username_accounts()
        counts = RunCounts(
            records_loaded=records_loaded,
            unified_accounts=len(unified),
            merged=unified.merged_count,
            rejected=len(rejections),
            converted_logins=len(unified.get_converted_login_accounts()),
            problem_usernames=len(problems),
            provisioned=provisioned,
            previously_provisioned=previously_provisioned,
        )
        return cls(
            counts=counts,
            rejections=rejections,
            problem_usernames=problems,
            unified=unified,
        )

    @property
    def has_problems(self) -> bool:
        return bool(self.rejections or self.problem_usernames)

    def log_summary(self, log: Optional[logging.Logger] = None) -> None:
        log = log or logger
        c = self.counts
        log.info("=" * 60)
        log.info("Migration summary")
        log.info(f"  Records loaded:          {c.records_loaded:,}")
        log.info(f"  Unified accounts:        {c.unified_accounts:,}")
        log.info(f"  Merged linked accounts:  {c.merged:,}")
        log.info(f"  Rejected accounts:       {c.rejected:,}")
        log.info(f"  Converted logins:        {c.converted_logins:,}")
        log.info(f"  Problem usernames:       {c.problem_usernames:,}")
        log.info(f"  Provisioned this run:    {c.provisioned:,}")
        log.info(f"  Provisioned previously:  {c.previously_provisioned:,}")
        log.info("=" * 60)

        if self.rejections:
            log.warning(f"{len(self.rejections)} accounts were rejected and are NOT in the unified set:")
            for rejection in self.rejections:
                log.warning(
                    f"  [{rejection.reason}] id={rejection.account.id} "
                    f"email={rejection.account.email} "
                    f"(conflicts with id={rejection.conflicting_account.id})"
                )
        if self.problem_usernames:
            log.warning(
                f"{len(self.problem_usernames)} converted logins share a prefix with another "
                "account; these users must sign in with their full placeholder login:"
            )
            for problem in self.problem_usernames:
                others = ", ".join(str(other.username) for other in problem.conflicts)
                log.warning(f"  {problem.account.username} (conflicts: {others})")

    def rejections_frame(self) -> pd.DataFrame:
        rows = [
            {
                "account_id": r.account.id,
                "email": r.account.email,
                "username": r.account.username,
                "reason": r.reason,
                "conflicting_account_id": r.conflicting_account.id,
                "conflicting_email": r.conflicting_account.email,
                "message": r.message,
            }
            for r in self.rejections
        ]
        return pd.DataFrame(rows, columns=REJECTION_COLUMNS)

    def problem_usernames_frame(self) -> pd.DataFrame:
        # One row per (converted account, conflicting account) pair
        rows = [
            {
                "account_id": p.account.id,
                "email": p.account.email,
                "username": p.account.username,
                "conflicting_account_id": other.id,
                "conflicting_username": other.username,
            }
            for p in self.problem_usernames
            for other in p.conflicts
        ]
        return pd.DataFrame(rows, columns=PROBLEM_USERNAME_COLUMNS)

    def unified_accounts_frame(self) -> pd.DataFrame:
        accounts = self.unified.get_accounts() if self.unified is not None else []
        rows = [
            {
                "account_id": a.id,
                "email": a.email,
                "username": a.username,
                "merged_account_ids": ";".join(a.merged_account_ids),
                "provider_user_id": a.provider_user_id,
                "account_file_path": str(a.file_path),
            }
            for a in accounts
        ]
        return pd.DataFrame(rows, columns=UNIFIED_ACCOUNT_COLUMNS)

    def to_dict(self) -> Dict[str, Any]:
        return {"counts": asdict(self.counts)}

    def write(self, outdir: Union[str, Path]) -> Path:
        """Write summary.json and the CSV listings into ``outdir``."""
        outdir = Path(outdir)
        ensure_directory_exists(outdir)

        (outdir / "summary.json").write_text(json.dumps(self.to_dict(), indent=2))
        self.rejections_frame().to_csv(outdir / "rejections.csv", index=False)
        self.problem_usernames_frame().to_csv(outdir / "problem_usernames.csv", index=False)
        self.unified_accounts_frame().to_csv(outdir / "unified_accounts.csv", index=False)

        logger.info(f"Report written to {outdir}")
        return outdir
