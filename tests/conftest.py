"""
Shared fixtures for the ingestion engine tests.

No test touches the network: storage is in memory and document
extraction is faked.
"""

from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook

from finance_engine.models.transaction import (
    Account,
    AccountStatus,
    AccountType,
    Direction,
    DraftTransaction,
    ExistingTransaction,
)


def make_draft(**overrides) -> DraftTransaction:
    fields = {
        "date": date(2025, 3, 15),
        "description": "Mercado Central",
        "amount": Decimal("100.00"),
        "direction": Direction.EXPENSE,
        "category": "Alimentação",
    }
    fields.update(overrides)
    return DraftTransaction(**fields)


def make_existing(id: str = "tx-1", **overrides) -> ExistingTransaction:
    fields = {
        "id": id,
        "date": date(2025, 3, 15),
        "description": "Mercado Central",
        "amount": Decimal("100.00"),
        "direction": Direction.EXPENSE,
        "category": "Alimentação",
    }
    fields.update(overrides)
    return ExistingTransaction(**fields)


def build_workbook(tabs: dict) -> bytes:
    """Serialize {tab name: rows} into .xlsx bytes."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in tabs.items():
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def nubank_card() -> Account:
    return Account(
        id="acc-nubank",
        name="Ana Nubank **** 1234",
        type=AccountType.CREDIT_CARD,
        institution="Nubank",
        card_last_digits="1234",
        closing_day=30,
        due_day=7,
    )


@pytest.fixture
def accounts(nubank_card) -> list[Account]:
    return [
        nubank_card,
        Account(
            id="acc-itau",
            name="Conta Itaú",
            type=AccountType.CHECKING,
            institution="Itaú Unibanco",
        ),
        Account(
            id="acc-old",
            name="Cartão Antigo",
            type=AccountType.CREDIT_CARD,
            institution="Inter",
            card_last_digits="9999",
            status=AccountStatus.ARCHIVED,
        ),
    ]
