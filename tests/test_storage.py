"""Tests for the storage backends (no Google API calls)."""

import asyncio

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from finance_engine.models.transaction import (
    AccountProposal,
    AccountType,
    Direction,
    DraftTransaction,
    InstallmentInfo,
    InstallmentStatus,
    TransactionFilters,
    TransactionItem,
)
from finance_engine.services.storage import InMemoryTransactionStorage, PersistenceError
from finance_engine.services.storage.google_sheets import (
    TRANSACTION_COLUMNS,
    _timestamp,
    account_to_row,
    row_to_account,
    row_to_transaction,
    transaction_to_row,
)

from tests.conftest import make_draft, make_existing


class TestInMemoryStorage:
    """Tests for InMemoryTransactionStorage."""

    def test_create_and_find(self):
        """Created drafts are readable, oldest first, with ids and group ids."""
        storage = InMemoryTransactionStorage()
        group_id = uuid4()
        drafts = [
            make_draft(date=date(2025, 4, 7), group_id=group_id,
                       installment=InstallmentInfo(current=1, total=1)),
            make_draft(date=date(2025, 3, 1)),
        ]

        written = asyncio.run(storage.create_many(drafts, dashboard_id="home"))
        found = asyncio.run(storage.find_many())

        assert written == 2
        assert [t.date for t in found] == [date(2025, 3, 1), date(2025, 4, 7)]
        assert found[1].installment_group_id == str(group_id)
        assert all(t.dashboard_id == "home" for t in found)
        assert len({t.id for t in found}) == 2

    def test_filters(self):
        """find_many applies the filters."""
        storage = InMemoryTransactionStorage([
            make_existing("a", date=date(2025, 3, 1)),
            make_existing("b", date=date(2025, 4, 1), direction=Direction.INCOME),
        ])
        found = asyncio.run(storage.find_many(TransactionFilters(date_from=date(2025, 3, 15))))
        assert [t.id for t in found] == ["b"]

    def test_batch_is_all_or_nothing(self):
        """One invalid draft means nothing from the batch is written."""
        storage = InMemoryTransactionStorage()
        invalid = DraftTransaction.model_construct(
            date=date(2025, 3, 1),
            description="",
            amount=Decimal("-1"),
            direction=Direction.EXPENSE,
        )

        with pytest.raises(PersistenceError, match="nothing written"):
            asyncio.run(storage.create_many([make_draft(), invalid]))
        assert storage.transactions == []

    def test_accounts(self):
        """Accounts are created from proposals and listed per dashboard."""
        storage = InMemoryTransactionStorage()
        proposal = AccountProposal(
            name="Nubank **** 1234",
            type=AccountType.CREDIT_CARD,
            institution="Nubank",
            card_last_digits="1234",
        )

        account = asyncio.run(storage.create_account(proposal, dashboard_id="home"))

        assert account.card_last_digits == "1234"
        assert asyncio.run(storage.find_accounts("home")) == [account]
        assert asyncio.run(storage.find_accounts("work")) == []


class TestSheetRows:
    """Tests for Google Sheets row conversion."""

    def test_transaction_row(self):
        """A full transaction survives the row format."""
        group_id = uuid4()
        tx = make_existing(
            dashboard_id="home",
            installment=InstallmentInfo(current=2, total=12),
            installment_status=InstallmentStatus.PAID,
            group_id=group_id,
            installment_group_id=str(group_id),
            card_last_digits="1234",
            items=[TransactionItem(description="Pão", total_price=Decimal("10"))],
        )

        row = transaction_to_row(tx)
        restored = row_to_transaction(row)

        assert len(row) == len(TRANSACTION_COLUMNS)
        assert row[9] == "2/12"
        assert restored == tx

    def test_short_row(self):
        """Trailing empty cells may be missing from the sheet."""
        tx = make_existing()
        row = transaction_to_row(tx)
        while row and row[-1] == "":
            row.pop()
        assert row_to_transaction(row).items == []

    def test_timestamps_without_offset_are_utc(self):
        """Rows written without an offset read back as UTC."""
        assert _timestamp("2025-03-15T10:00:00") == datetime(2025, 3, 15, 10, tzinfo=timezone.utc)
        assert _timestamp("2025-03-15T10:00:00+00:00").tzinfo is not None

    def test_account_row(self, nubank_card):
        """Accounts survive the row format."""
        assert row_to_account(account_to_row(nubank_card)) == nubank_card
