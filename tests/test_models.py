"""
Tests for the Ingestion Engine Models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with in-memory storage and fake extractors)
3. No real API calls in tests
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from finance_engine.models.transaction import (
    Account,
    AccountType,
    Direction,
    DraftTransaction,
    ExistingTransaction,
    ExtractionMethod,
    ExtractionResult,
    ImportSummary,
    InstallmentGroup,
    InstallmentInfo,
    TransactionFilters,
)

from tests.conftest import make_draft, make_existing


class TestTransactionModels:
    """Tests for draft and persisted transaction models."""

    def test_draft_creation(self):
        """Test DraftTransaction creation with defaults."""
        draft = make_draft()
        assert draft.category == "Alimentação"
        assert draft.installment is None
        assert draft.is_refund is False
        assert draft.items == []

    def test_draft_strips_whitespace(self):
        """Test that whitespace is stripped from descriptions."""
        assert make_draft(description="  Mercado  ").description == "Mercado"

    def test_negative_amount_rejected(self):
        """Amounts are never negative."""
        with pytest.raises(ValidationError, match="greater than or equal to 0"):
            make_draft(amount=Decimal("-1"))

    def test_refund_must_be_income(self):
        """A refund with direction Expense is rejected."""
        with pytest.raises(ValidationError, match="refund must have direction Income"):
            make_draft(is_refund=True, direction=Direction.EXPENSE)

    def test_blank_category_defaults(self):
        """A blank category becomes the default one."""
        assert make_draft(category="  ").category == "Other"

    def test_card_digits_normalized(self):
        """Masked card numbers keep their last four digits."""
        assert make_draft(card_last_digits="**** **** 1234").card_last_digits == "1234"
        assert make_draft(card_last_digits="12").card_last_digits is None

    def test_camel_case_aliases(self):
        """JSON uses camelCase but snake_case names are accepted too."""
        draft = DraftTransaction.model_validate({
            "date": "2025-03-15",
            "description": "Uber",
            "amount": "25.90",
            "direction": "Expense",
            "isRefund": False,
            "cardLastDigits": "1234",
        })
        assert draft.card_last_digits == "1234"
        assert "cardLastDigits" in draft.model_dump(by_alias=True)

    def test_filters(self):
        """Filters are inclusive and all optional."""
        tx = make_existing(dashboard_id="home")
        assert TransactionFilters().matches(tx)
        assert TransactionFilters(date_from=date(2025, 3, 15), date_to=date(2025, 3, 15)).matches(tx)
        assert not TransactionFilters(dashboard_id="work").matches(tx)
        assert TransactionFilters(category="alimentação").matches(tx)
        assert not TransactionFilters(direction=Direction.INCOME).matches(tx)

    def test_existing_is_a_draft(self):
        """Persisted transactions can be used wherever drafts are."""
        assert isinstance(make_existing(), DraftTransaction)
        assert isinstance(make_existing(), ExistingTransaction)

    def test_timestamps_are_utc_aware(self):
        """Default creation times carry the UTC offset."""
        tx = make_existing()
        assert tx.created_at.tzinfo is not None
        assert tx.created_at.utcoffset() == timedelta(0)


class TestInstallmentModels:
    """Tests for installment position and group validation."""

    def test_current_beyond_total(self):
        """current must not exceed total."""
        with pytest.raises(ValidationError, match="beyond plan total"):
            InstallmentInfo(current=3, total=2)

    def test_current_zero(self):
        """Installments are numbered from 1."""
        with pytest.raises(ValidationError):
            InstallmentInfo(current=0, total=2)

    def test_group_requires_every_number(self):
        """A group missing an installment is invalid."""
        group_id = uuid4()
        members = [
            make_draft(installment=InstallmentInfo(current=1, total=3), group_id=group_id),
            make_draft(installment=InstallmentInfo(current=3, total=3), group_id=group_id),
        ]
        with pytest.raises(ValidationError, match="exactly one member per number"):
            InstallmentGroup(group_id=group_id, total=3, members=members)

    def test_group_requires_shared_amount(self):
        """All members of a group share one amount."""
        group_id = uuid4()
        members = [
            make_draft(installment=InstallmentInfo(current=1, total=2), group_id=group_id),
            make_draft(
                installment=InstallmentInfo(current=2, total=2),
                group_id=group_id,
                amount=Decimal("99"),
            ),
        ]
        with pytest.raises(ValidationError, match="same amount"):
            InstallmentGroup(group_id=group_id, total=2, members=members)


class TestAccountModels:
    """Tests for Account validation."""

    def test_credit_card(self):
        """Credit cards carry digits and a billing cycle."""
        card = Account(
            id="a1", name="Card", type=AccountType.CREDIT_CARD,
            card_last_digits="5551234", closing_day=30, due_day=7,
        )
        assert card.card_last_digits == "1234"
        assert card.has_billing_cycle

    def test_cycle_only_on_cards(self):
        """closingDay/dueDay are rejected on other account types."""
        with pytest.raises(ValidationError, match="only allowed on CreditCard"):
            Account(id="a1", name="Conta", type=AccountType.CHECKING, closing_day=10)

    def test_day_range(self):
        """Cycle days are calendar days."""
        with pytest.raises(ValidationError):
            Account(id="a1", name="Card", type=AccountType.CREDIT_CARD, closing_day=32)


class TestExtractionContract:
    """Tests for the extraction service contract."""

    def test_method_aliases(self):
        """Both 'method' and 'extractionMethod' are accepted."""
        assert ExtractionResult.model_validate({"method": "regex"}).extraction_method == ExtractionMethod.REGEX
        assert ExtractionResult.model_validate({"extractionMethod": "ai"}).extraction_method == ExtractionMethod.AI

    def test_nulls_are_defaults(self):
        """Nulls in lines are read as zero or false."""
        result = ExtractionResult.model_validate({
            "isMultiTransaction": None,
            "transactions": [{"merchant": "Loja", "amount": None, "isRefund": None}],
        })
        assert result.is_multi_transaction is False
        assert result.transactions[0].amount == Decimal("0")
        assert result.transactions[0].is_refund is False

    def test_confidence_range(self):
        """Confidence lies between 0 and 1."""
        with pytest.raises(ValidationError):
            ExtractionResult(confidence=1.5)


class TestImportSummary:
    """Tests for the pre-import summary."""

    def test_from_transactions(self):
        """Totals and month buckets are computed from drafts."""
        summary = ImportSummary.from_transactions([
            make_draft(date=date(2025, 4, 1), amount=Decimal("10")),
            make_draft(direction=Direction.INCOME, amount=Decimal("100")),
        ])
        assert summary.total_transactions == 2
        assert summary.total_income == Decimal("100")
        assert list(summary.by_month) == ["2025-03", "2025-04"]
