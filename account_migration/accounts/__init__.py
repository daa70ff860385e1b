"""Account entities, link graph, record loading and identity unification."""

from .account import ExportAccount
from .account_links import AccountLinks, LinkGraph
from .account_ref import AccountRef
from .file_iterator import FileIterator, RecordLoadError
from .unified_accounts import (
    PLACEHOLDER_LOGIN_DOMAIN,
    ProblemUsername,
    Rejection,
    UnifiedAccounts,
)

__all__ = [
    "ExportAccount",
    "AccountLinks",
    "LinkGraph",
    "AccountRef",
    "FileIterator",
    "RecordLoadError",
    "PLACEHOLDER_LOGIN_DOMAIN",
    "ProblemUsername",
    "Rejection",
    "UnifiedAccounts",
]
