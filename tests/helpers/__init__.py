"""Test helper utilities package.

This package provides builders for exported account fixtures and a static
link graph for unification tests.
"""

from .accounts import (
    StaticLinks,
    account_payload,
    link_payload,
    make_account,
    write_json,
)

__all__ = [
    "StaticLinks",
    "account_payload",
    "link_payload",
    "make_account",
    "write_json",
]
