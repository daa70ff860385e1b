"""Tests for identity unification."""

import logging

import pytest

from account_migration.accounts.unified_accounts import (
    PLACEHOLDER_LOGIN_DOMAIN,
    UnifiedAccounts,
    get_login_prefix,
)
from tests.helpers import StaticLinks, make_account


def test_get_login_prefix() -> None:
    assert get_login_prefix("susan@example.com") == "susan"
    assert get_login_prefix("susan") == "susan"
    assert get_login_prefix("a@b@c") == "a"


class TestAddAccount:
    def test_distinct_accounts_are_all_accepted(self) -> None:
        unified = UnifiedAccounts(StaticLinks())
        accounts = [make_account(f"id{i}", f"user{i}@example.com") for i in range(5)]

        results = [unified.add_account(account) for account in accounts]

        assert results == accounts
        assert len(unified.get_accounts()) == 5
        assert unified.get_rejections() == []

    def test_linked_duplicate_email_is_merged(self) -> None:
        a = make_account("A", "same@example.com", givenName="Alice", surname="")
        b = make_account("B", "same@example.com", surname="Liddell")
        unified = UnifiedAccounts(StaticLinks([("A", "B")]))

        assert unified.add_account(a) is a
        assert unified.add_account(b) is a

        assert unified.get_accounts() == [a]
        assert a.surname == "Liddell"
        assert a.merged_account_ids == ["B"]
        assert unified.get_account_by_id("B") is a
        assert unified.merged_count == 1

    def test_merged_accounts_resolve_to_same_user_id(self) -> None:
        a = make_account("A", "same@example.com")
        b = make_account("B", "same@example.com")
        unified = UnifiedAccounts(StaticLinks([("A", "B")]))
        unified.add_account(a)
        unified.add_account(b)

        a.provider_user_id = "00uA"

        assert unified.get_user_id_by_account_id("B") == unified.get_user_id_by_account_id("A")
        assert unified.get_user_id_by_account_id("B") == "00uA"

    def test_unlinked_duplicate_email_is_rejected(self, caplog: pytest.LogCaptureFixture) -> None:
        a = make_account("A", "same@example.com", givenName="Alice")
        b = make_account("B", "same@example.com", givenName="Bob")
        unified = UnifiedAccounts(StaticLinks())

        unified.add_account(a)
        with caplog.at_level(logging.WARNING):
            assert unified.add_account(b) is None

        assert unified.get_accounts() == [a]
        assert a.given_name == "Alice"
        assert a.merged_account_ids == []
        assert unified.get_account_by_id("B") is None
        assert "is not linked" in caplog.text

        [rejection] = unified.get_rejections()
        assert rejection.account is b
        assert rejection.reason == "UNLINKED_DUPLICATE_EMAIL"
        assert rejection.conflicting_account is a

    def test_emails_differing_only_in_case_are_distinct(self) -> None:
        upper = make_account("A", "Bob@example.com")
        lower = make_account("B", "bob@example.com")
        unified = UnifiedAccounts(StaticLinks())

        assert unified.add_account(upper) is upper
        assert unified.add_account(lower) is lower

        assert len(unified.get_accounts()) == 2
        assert unified.get_rejections() == []

    def test_link_to_account_with_other_email_is_rejected(self) -> None:
        a = make_account("A", "a@example.com")
        b = make_account("B", "b@example.com")
        unified = UnifiedAccounts(StaticLinks([("A", "B")]))

        unified.add_account(a)
        assert unified.add_account(b) is None

        [rejection] = unified.get_rejections()
        assert rejection.reason == "LINKED_EMAIL_MISMATCH"
        assert rejection.conflicting_account is a
        assert unified.get_accounts() == [a]

    def test_link_to_unregistered_account_is_ignored(self) -> None:
        b = make_account("B", "b@example.com")
        unified = UnifiedAccounts(StaticLinks([("A", "B")]))
        assert unified.add_account(b) is b

    def test_rejection_does_not_stop_later_accounts(self) -> None:
        unified = UnifiedAccounts(StaticLinks())
        unified.add_account(make_account("A", "same@example.com"))
        unified.add_account(make_account("B", "same@example.com"))
        c = make_account("C", "c@example.com")

        assert unified.add_account(c) is c
        assert len(unified) == 2

    def test_first_account_to_claim_an_email_is_canonical(self) -> None:
        a = make_account("A", "same@example.com")
        b = make_account("B", "same@example.com")
        unified = UnifiedAccounts(StaticLinks([("A", "B")]))

        unified.add_account(b)
        unified.add_account(a)

        assert unified.get_accounts_by_email()["same@example.com"] is b

    def test_link_graph_is_queried_once_per_account(self) -> None:
        links = StaticLinks()
        unified = UnifiedAccounts(links)
        unified.add_accounts([make_account("A", "a@example.com"), make_account("B", "b@example.com")])
        assert links.queries == ["A", "B"]

    def test_accounts_by_email_is_a_copy(self) -> None:
        unified = UnifiedAccounts(StaticLinks())
        unified.add_account(make_account("A", "a@example.com"))

        unified.get_accounts_by_email().clear()

        assert len(unified.get_accounts_by_email()) == 1


class TestConvertedLogins:
    def test_non_email_username_gets_placeholder_domain(self) -> None:
        account = make_account("A", "susan@corp.example", username="susan")
        unified = UnifiedAccounts(StaticLinks())

        unified.add_account(account)

        assert account.username == f"susan@{PLACEHOLDER_LOGIN_DOMAIN}"
        assert unified.get_converted_login_accounts() == [account]

    def test_email_username_is_untouched(self) -> None:
        account = make_account("A", "susan@example.com", username="susan@example.com")
        unified = UnifiedAccounts(StaticLinks())

        unified.add_account(account)

        assert account.username == "susan@example.com"
        assert unified.get_converted_login_accounts() == []

    def test_problem_username_reported_when_prefix_collides(self) -> None:
        converted = make_account("A", "susan@corp.example", username="susan")
        genuine = make_account("B", "susan@example.com", username="susan@example.com")
        unrelated = make_account("C", "bob@example.com", username="bob")
        unified = UnifiedAccounts(StaticLinks())
        unified.add_accounts([converted, genuine, unrelated])

        [problem] = unified.get_problem_username_accounts()

        assert problem.account is converted
        assert problem.conflicts == [genuine]

    def test_converted_login_without_collision_is_not_a_problem(self) -> None:
        unified = UnifiedAccounts(StaticLinks())
        unified.add_account(make_account("A", "susan@corp.example", username="susan"))
        unified.add_account(make_account("B", "sue@example.com"))

        assert unified.get_problem_username_accounts() == []

    def test_two_converted_logins_with_same_prefix_report_each_other(self) -> None:
        first = make_account("A", "one@example.com", username="jo")
        second = make_account("B", "two@example.com", username="jo")
        unified = UnifiedAccounts(StaticLinks())
        unified.add_accounts([first, second])

        problems = unified.get_problem_username_accounts()

        assert [(p.account, p.conflicts) for p in problems] == [(first, [second]), (second, [first])]


class TestUserIdLookups:
    def setup_method(self) -> None:
        self.a = make_account("A", "a@example.com")
        self.b = make_account("B", "b@example.com")
        self.unified = UnifiedAccounts(StaticLinks())
        self.unified.add_accounts([self.a, self.b])
        self.a.provider_user_id = "00uA"

    def test_get_user_id_by_account_id(self) -> None:
        assert self.unified.get_user_id_by_account_id("A") == "00uA"
        assert self.unified.get_user_id_by_account_id("B") is None
        assert self.unified.get_user_id_by_account_id("missing") is None

    def test_get_user_ids_by_account_ids_skips_unknown(self) -> None:
        assert self.unified.get_user_ids_by_account_ids(["A", "B", "missing"]) == ["00uA"]

    def test_get_missing_accounts(self) -> None:
        assert self.unified.get_missing_accounts(["A", "B", "missing"]) == ["B", "missing"]
