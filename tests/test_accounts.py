"""Tests for account resolution and proposals."""

from finance_engine.models.transaction import AccountType
from finance_engine.reconciliation.accounts import propose_account, resolve_account


class TestResolveAccount:
    """Tests for resolve_account."""

    def test_card_digits_exact(self, accounts):
        """Masked card digits resolve to the matching card."""
        assert resolve_account(accounts, card_last_digits="**** 1234").id == "acc-nubank"

    def test_archived_card_never_matches(self, accounts):
        """An archived card with the same digits is ignored."""
        assert resolve_account(accounts, card_last_digits="9999") is None

    def test_no_institution_fallback_with_digits(self, accounts):
        """Unknown digits must not fall back to the institution."""
        assert resolve_account(accounts, card_last_digits="5555", institution="Nubank") is None

    def test_institution_exact(self, accounts):
        """Institutions match case-insensitively."""
        assert resolve_account(accounts, institution="itaú unibanco").id == "acc-itau"

    def test_institution_substring(self, accounts):
        """A shorter term is found inside an account's name or institution."""
        assert resolve_account(accounts, institution="Itaú").id == "acc-itau"

    def test_institution_contains_account_value(self, accounts):
        """Containment works in the other direction too."""
        assert resolve_account(accounts, institution="Nubank S.A.").id == "acc-nubank"

    def test_archived_institution_ignored(self, accounts):
        """Only the archived account mentions Inter."""
        assert resolve_account(accounts, institution="Inter") is None

    def test_nothing_to_match(self, accounts):
        """No digits and no institution resolves to nothing."""
        assert resolve_account(accounts) is None
        assert resolve_account(accounts, institution="Bradesco") is None


class TestProposeAccount:
    """Tests for propose_account."""

    def test_card_proposal_name(self):
        """Card proposals are named holder, institution and masked digits."""
        proposal = propose_account("5555", "Nubank", "Ana")
        assert proposal.name == "Ana Nubank **** 5555"
        assert proposal.type == AccountType.CREDIT_CARD
        assert proposal.card_last_digits == "5555"

    def test_card_proposal_without_holder(self):
        """Missing parts are left out of the name."""
        assert propose_account("5555").name == "**** 5555"

    def test_institution_proposal(self):
        """Without digits the institution becomes a checking account."""
        proposal = propose_account(institution=" Bradesco ")
        assert proposal.name == "Bradesco"
        assert proposal.type == AccountType.CHECKING

    def test_nothing_to_propose(self):
        """Without digits or institution there is no proposal."""
        assert propose_account() is None
