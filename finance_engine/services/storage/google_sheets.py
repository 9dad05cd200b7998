"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the ledger store because:
1. Users can inspect their ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for a personal ledger)
- No multi-statement transactions. A batch is therefore written with a
  single `append_rows` call: the API applies it whole or not at all, so an
  installment group is never half persisted.
- Limited query capabilities (we filter in Python)
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_engine.config import get_settings
from finance_engine.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finance_engine.models.transaction import (
    Account,
    AccountProposal,
    AccountStatus,
    AccountType,
    Direction,
    DraftTransaction,
    ExistingTransaction,
    InstallmentInfo,
    InstallmentStatus,
    TransactionFilters,
    TransactionItem,
    utc_now,
)
from finance_engine.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    PersistenceError,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

TRANSACTION_COLUMNS = [
    "id",
    "dashboard_id",
    "created_at",
    "updated_at",
    "date",
    "description",
    "amount",
    "direction",
    "category",
    "installment",
    "installment_status",
    "installment_group_id",
    "institution",
    "card_last_digits",
    "account_id",
    "payment_method",
    "cost_center",
    "notes",
    "is_refund",
    "items_json",
]

ACCOUNT_COLUMNS = [
    "id",
    "dashboard_id",
    "name",
    "type",
    "institution",
    "card_last_digits",
    "closing_day",
    "due_day",
    "status",
    "holder_name",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell of a short or sparse row."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _timestamp(text: str) -> datetime:
    """Parse a stored ISO timestamp; rows without an offset are UTC."""
    value = datetime.fromisoformat(text)
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _worksheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._worksheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=5000
        )

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        return self._worksheet(self._settings.accounts_sheet_name, ACCOUNT_COLUMNS, rows=100)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


# =============================================================================
# ROW CONVERSION
# =============================================================================

def transaction_to_row(tx: ExistingTransaction) -> list:
    """Convert a persisted transaction to a spreadsheet row."""
    installment = ""
    if tx.installment:
        installment = f"{tx.installment.current}/{tx.installment.total}"
    return [
        tx.id,
        tx.dashboard_id or "",
        tx.created_at.isoformat(),
        tx.updated_at.isoformat(),
        tx.date.isoformat(),
        tx.description,
        str(tx.amount),
        tx.direction.value,
        tx.category,
        installment,
        tx.installment_status.value if tx.installment_status else "",
        tx.installment_group_id or "",
        tx.institution or "",
        tx.card_last_digits or "",
        tx.account_id or "",
        tx.payment_method or "",
        tx.cost_center or "",
        tx.notes or "",
        str(tx.is_refund),
        json.dumps([item.model_dump(mode="json") for item in tx.items]) if tx.items else "",
    ]


def row_to_transaction(row: list) -> ExistingTransaction:
    """Convert a spreadsheet row back to a transaction."""
    installment = None
    if _cell(row, 9):
        current, total = _cell(row, 9).split("/")
        installment = InstallmentInfo(current=int(current), total=int(total))
    group_id = _cell(row, 11) or None
    items_json = _cell(row, 19)

    return ExistingTransaction(
        id=_cell(row, 0),
        dashboard_id=_cell(row, 1) or None,
        created_at=_timestamp(_cell(row, 2)),
        updated_at=_timestamp(_cell(row, 3)),
        date=date.fromisoformat(_cell(row, 4)),
        description=_cell(row, 5),
        amount=Decimal(_cell(row, 6)),
        direction=Direction(_cell(row, 7)),
        category=_cell(row, 8) or "Other",
        installment=installment,
        installment_status=InstallmentStatus(_cell(row, 10)) if _cell(row, 10) else None,
        installment_group_id=group_id,
        group_id=UUID(group_id) if group_id else None,
        institution=_cell(row, 12) or None,
        card_last_digits=_cell(row, 13) or None,
        account_id=_cell(row, 14) or None,
        payment_method=_cell(row, 15) or None,
        cost_center=_cell(row, 16) or None,
        notes=_cell(row, 17) or None,
        is_refund=_cell(row, 18).lower() == "true",
        items=[TransactionItem(**item) for item in json.loads(items_json)] if items_json else [],
    )


def account_to_row(account: Account) -> list:
    return [
        account.id,
        account.dashboard_id or "",
        account.name,
        account.type.value,
        account.institution or "",
        account.card_last_digits or "",
        str(account.closing_day) if account.closing_day else "",
        str(account.due_day) if account.due_day else "",
        account.status.value,
        account.holder_name or "",
    ]


def row_to_account(row: list) -> Account:
    return Account(
        id=_cell(row, 0),
        dashboard_id=_cell(row, 1) or None,
        name=_cell(row, 2),
        type=AccountType(_cell(row, 3)),
        institution=_cell(row, 4) or None,
        card_last_digits=_cell(row, 5) or None,
        closing_day=int(_cell(row, 6)) if _cell(row, 6) else None,
        due_day=int(_cell(row, 7)) if _cell(row, 7) else None,
        status=AccountStatus(_cell(row, 8, AccountStatus.ACTIVE.value)),
        holder_name=_cell(row, 9) or None,
    )


# =============================================================================
# STORAGE
# =============================================================================

class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of the ledger store.

    One transaction per row; line items are JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_rows(self, sheet: gspread.Worksheet, rows: list[list]) -> None:
        sheet.append_rows(rows, value_input_option="RAW")

    async def create_many(
        self,
        transactions: list[DraftTransaction],
        dashboard_id: Optional[str] = None,
    ) -> int:
        """Write the whole batch with one API call."""
        if not transactions:
            return 0

        now = utc_now()
        try:
            rows = [
                transaction_to_row(ExistingTransaction(
                    **draft.model_dump(),
                    id=str(uuid4()),
                    dashboard_id=dashboard_id,
                    installment_group_id=str(draft.group_id) if draft.group_id else None,
                    created_at=now,
                    updated_at=now,
                ))
                for draft in transactions
            ]
            sheet = self._client.get_transactions_sheet()
            self._append_rows(sheet, rows)
        except Exception as e:
            logger.error("batch_write_failed", batch_size=len(transactions), error=str(e))
            raise PersistenceError(f"Failed to write {len(transactions)} transactions: {e}")

        logger.info("batch_written", batch_size=len(rows), dashboard_id=dashboard_id)
        return len(rows)

    async def find_many(
        self,
        filters: Optional[TransactionFilters] = None,
    ) -> list[ExistingTransaction]:
        filters = filters or TransactionFilters()
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        found = []
        for index, row in enumerate(all_rows, start=2):
            if not row or not row[0]:
                continue
            try:
                tx = row_to_transaction(row)
            except Exception as e:
                logger.warning("malformed_transaction_row", row=index, error=str(e))
                continue
            if filters.matches(tx):
                found.append(tx)

        found.sort(key=lambda tx: tx.date)
        return found

    async def find_accounts(self, dashboard_id: Optional[str] = None) -> list[Account]:
        try:
            sheet = self._client.get_accounts_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

        accounts = []
        for index, row in enumerate(all_rows, start=2):
            if not row or not row[0]:
                continue
            try:
                account = row_to_account(row)
            except Exception as e:
                logger.warning("malformed_account_row", row=index, error=str(e))
                continue
            if dashboard_id is None or account.dashboard_id in (None, dashboard_id):
                accounts.append(account)
        return accounts

    async def create_account(
        self,
        fields: AccountProposal,
        dashboard_id: Optional[str] = None,
    ) -> Account:
        account = Account(id=str(uuid4()), dashboard_id=dashboard_id, **fields.model_dump())
        try:
            sheet = self._client.get_accounts_sheet()
            self._append_rows(sheet, [account_to_row(account)])
        except Exception as e:
            raise StorageError(f"Failed to create account: {e}")
        return account


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=_timestamp(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=UUID(_cell(row, 5)) if _cell(row, 5) else None,
            correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            description=_cell(row, 7),
            details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
            error_message=_cell(row, 9) or None,
            is_user_action=_cell(row, 10).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are logged, never raised."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            logger.warning("audit_write_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and len(row) > 6 and row[6] == str(correlation_id):
                try:
                    events.append(self._row_to_event(row))
                except Exception as e:
                    logger.warning("malformed_audit_row", error=str(e))

        events.sort(key=lambda e: e.timestamp)
        return events
