"""
Ledger Sheet Parser

Reads a multi-tab ledger workbook (one tab per calendar month, plus a few
auxiliary tabs) into draft transactions.

DESIGN DECISION: Column positions are discovered from header names on a
fixed header row, inside a fixed column window. Rows that fail to coerce a
required field (date, type, description, amount) are NOT dropped silently:
each one becomes a diagnostic `{tab, row, message}`. Blank rows and
"total"/"saldo" summary rows are layout, not data, and are skipped.

Month tabs hold expenses on the left and, optionally, an income block to
the right announced by a "Receitas" label. Optional expense columns enrich
the draft: category, cost center, payment method (which can also name the
card issuer), institution, notes and installment text. Installment text is
only parsed here, never expanded. Rows in the "Devedores" category are
skipped because the debtors tab carries them.

Auxiliary tabs, recognized by name:
- PARCELAMENTOS: one installment plan per row with its amount under each
  month column. Each plan becomes one draft per month, sharing a group id.
- DEVEDORES: money lent to third parties, imported as "Devedores" expenses.
- D. FIXA: fixed monthly expenses, returned as recurring templates only.
"""

import zipfile
from datetime import date
from decimal import Decimal
from enum import Enum
from io import BytesIO
from typing import Any, Callable, Optional, Sequence, TypeVar
from uuid import uuid4

import structlog
from dateutil.relativedelta import relativedelta
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet
from pydantic import ValidationError

from finance_engine.exceptions import (
    AmbiguousInstallmentError,
    RowParseError,
    UnsupportedDocumentError,
)
from finance_engine.models.transaction import (
    DEFAULT_CATEGORY,
    Diagnostic,
    Direction,
    DraftTransaction,
    ImportSummary,
    InstallmentInfo,
    InstallmentStatus,
    ParseResult,
    RecurringExpense,
)
from finance_engine.parsers.cells import (
    coerce_amount,
    coerce_cell,
    coerce_date,
    coerce_text,
    from_openpyxl,
)
from finance_engine.parsers.installment_text import parse_installment_text_strict
from finance_engine.parsers.months import MonthTable
from finance_engine.parsers.normalize import normalize_label, strip_installment_suffix


logger = structlog.get_logger(__name__)

DEFAULT_HEADER_ROW = 1
DEFAULT_MAX_COLUMN = 20

ColumnTable = dict[str, tuple[str, ...]]

# Semantic field -> accepted header labels (compared accent-free, lower-case)
LEDGER_COLUMNS: ColumnTable = {
    "date": ("data", "date", "dia"),
    "direction": ("tipo", "type", "natureza", "entrada/saida"),
    "description": ("descricao", "description", "historico"),
    "amount": ("valor", "amount", "value", "quantia"),
    "category": ("categoria", "category"),
    "cost_center": ("centro de custo", "centro d custo", "cost center", "importancia"),
    "payment_method": ("meio pg", "meio", "pagamento", "forma de pagamento", "payment method"),
    "institution": ("instituicao", "banco", "institution", "bank"),
    "notes": ("observacao", "observacoes", "obs", "notes"),
    "installment": ("parcela", "parcelas", "installment"),
}
REQUIRED_COLUMNS = ("date", "description", "amount")

# Income block of a month tab, found right of a "Receitas" label
INCOME_MARKER = "receitas"
INCOME_BLOCK_WIDTH = 5
INCOME_COLUMNS: ColumnTable = {
    field: LEDGER_COLUMNS[field] for field in ("date", "description", "amount")
}
INCOME_DESCRIPTION = "Receita"
INCOME_CATEGORY = "Salário"

INSTALLMENT_PLAN_COLUMNS: ColumnTable = {
    "year": ("ano", "year"),
    "day": ("dia", "data", "day"),
    "description": ("descricao", "description"),
    "count": ("q. prcl", "q prcl", "parcelas", "qtd", "installments"),
    "total": ("total",),
    "installment_amount": ("parcela", "vlr parcela", "installment"),
    "category": ("categoria", "category"),
    "cost_center": ("centro de custo", "centro d custo", "cost center"),
    "payment_method": ("meio pg", "meio", "pagamento", "payment method"),
}
INSTALLMENT_CATEGORY = "Parcelamentos"

DEBTOR_COLUMNS: ColumnTable = {
    "name": ("nome", "devedor", "name", "debtor"),
    "description": ("descricao", "motivo", "description"),
    "amount": ("valor", "quantia", "amount"),
    "date": ("data", "date"),
}
DEBTOR_CATEGORY = "Devedores"

RECURRING_COLUMNS: ColumnTable = {
    "description": ("descricao", "despesa", "description"),
    "amount": ("valor", "quantia", "amount"),
    "category": ("categoria", "category"),
}
RECURRING_CATEGORY = "Despesa Fixa"

SUMMARY_MARKERS = ("total", "saldo")

INCOME_LABELS = frozenset({
    "receita", "receitas", "entrada", "income", "credito", "recebimento",
})
EXPENSE_LABELS = frozenset({
    "despesa", "despesas", "saida", "expense", "debito", "gasto",
})

# (substring, payment method, card issuer) in priority order
PAYMENT_METHODS: tuple[tuple[str, str, Optional[str]], ...] = (
    ("amazon", "Cartão de Crédito", "Amazon"),
    ("inter", "Cartão de Crédito", "Inter"),
    ("nubank", "Cartão de Crédito", "Nubank"),
    ("pix", "PIX", None),
    ("debito", "Débito", None),
    ("dinheiro", "Dinheiro", None),
    ("transferencia", "Transferência", None),
    ("boleto", "Boleto", None),
)
CARD_ISSUER_HINTS = ("nuban", "itau", "bradesco", "santander")


class TabKind(str, Enum):
    MONTH = "month"
    INSTALLMENT_PLANS = "installment_plans"
    DEBTORS = "debtors"
    RECURRING = "recurring"


# (substring of the tab name, kind); checked only for tabs that are not months
AUXILIARY_TABS: tuple[tuple[str, TabKind], ...] = (
    ("parcela", TabKind.INSTALLMENT_PLANS),
    ("devedor", TabKind.DEBTORS),
    ("fixa", TabKind.RECURRING),
)

T = TypeVar("T")
Cells = dict[str, Any]


def parse_direction(value: Optional[str]) -> Optional[Direction]:
    """'Receita' -> Income, 'Despesa' -> Expense, anything else -> None."""
    if not value:
        return None
    label = normalize_label(value)
    if label in INCOME_LABELS:
        return Direction.INCOME
    if label in EXPENSE_LABELS:
        return Direction.EXPENSE
    return None


def normalize_payment_method(value: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Normalize a free-text payment method.

    Returns:
        (payment_method, institution) where institution is set when the
        text names a card issuer.
    """
    if not value or not value.strip():
        return None, None
    label = normalize_label(value)
    for key, method, institution in PAYMENT_METHODS:
        if key in label:
            return method, institution
    if any(hint in label for hint in CARD_ISSUER_HINTS):
        return "Cartão de Crédito", value.strip()
    return value.strip(), None


def normalize_cost_center(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    label = normalize_label(value)
    if "nao essencial" in label:
        return "Não essencial"
    if "essencial" in label:
        return "Essencial"
    if "fixa" in label:
        return "Despesa Fixa"
    return None


def auxiliary_tab_kind(tab_name: str) -> Optional[TabKind]:
    label = normalize_label(tab_name)
    for key, kind in AUXILIARY_TABS:
        if key in label:
            return kind
    return None


def detect_columns(
    header: Sequence[Any],
    table: ColumnTable = LEDGER_COLUMNS,
    start: int = 0,
    stop: Optional[int] = None,
) -> dict[str, int]:
    """
    Map semantic fields to 0-based column indexes from a header row.

    Only columns in [start, stop) are considered. The first column
    matching a field wins.
    """
    columns: dict[str, int] = {}
    for index, raw in enumerate(header):
        if index < start or (stop is not None and index >= stop):
            continue
        text = coerce_text(from_openpyxl(raw))
        if not text:
            continue
        label = normalize_label(text)
        for field, aliases in table.items():
            if field not in columns and label in aliases:
                columns[field] = index
                break
    return columns


def detect_income_block(
    header: Sequence[Any],
    marker_rows: Sequence[Sequence[Any]],
) -> Optional[dict[str, int]]:
    """
    Columns of the income block of a month tab, or None.

    The block is announced by a "Receitas" label on the header row or the
    row above it. Its date, description and amount headers sit on the
    header row, at most INCOME_BLOCK_WIDTH columns right of the label.
    """
    for row in marker_rows:
        for index, raw in enumerate(row):
            text = coerce_text(from_openpyxl(raw))
            if not text or normalize_label(text) != INCOME_MARKER:
                continue
            block = detect_columns(
                header, INCOME_COLUMNS, start=index, stop=index + INCOME_BLOCK_WIDTH + 1
            )
            if "date" in block and "amount" in block:
                return block
    return None


def _is_summary_text(value: Optional[str]) -> bool:
    return bool(value) and normalize_label(value).startswith(SUMMARY_MARKERS)


def _positive_int(raw: Any) -> Optional[int]:
    amount = coerce_amount(raw)
    if amount is None or amount <= 0 or amount != int(amount):
        return None
    return int(amount)


class LedgerSheetParser:
    """
    Parser for monthly ledger workbooks.

    Args:
        header_row: 1-based row holding the column headers
        max_column: last column (1-based) scanned for headers and data
        month_table: tab-name lookup; defaults to pt_BR month names
    """

    def __init__(
        self,
        header_row: int = DEFAULT_HEADER_ROW,
        max_column: int = DEFAULT_MAX_COLUMN,
        month_table: Optional[MonthTable] = None,
    ):
        self.header_row = header_row
        self.max_column = max_column
        self.month_table = month_table or MonthTable()

    def parse_bytes(self, content: bytes, year: Optional[int] = None) -> ParseResult:
        """
        Parse an .xlsx file held in memory.

        Raises:
            UnsupportedDocumentError: If the bytes are not a readable workbook
        """
        try:
            workbook = load_workbook(BytesIO(content), data_only=True, rich_text=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise UnsupportedDocumentError(f"Could not read workbook: {e}") from e
        try:
            return self.parse_workbook(workbook, year=year)
        finally:
            workbook.close()

    def parse_workbook(self, workbook: Workbook, year: Optional[int] = None) -> ParseResult:
        """
        Parse every month tab and auxiliary tab of an open workbook.

        Args:
            workbook: openpyxl workbook
            year: year for day-only dates when the tab name carries none
                  (defaults to the current year)
        """
        transactions: list[DraftTransaction] = []
        errors: list[Diagnostic] = []
        recurring: list[RecurringExpense] = []
        month_tabs = 0
        plan_count = 0
        debtor_count = 0

        for worksheet in workbook.worksheets:
            tab = worksheet.title
            month = self.month_table.month_for(tab)
            kind = TabKind.MONTH if month is not None else auxiliary_tab_kind(tab)
            if kind is None:
                logger.debug("ledger_tab_skipped", tab=tab)
                continue
            tab_year = self.month_table.year_for(tab) or year or date.today().year

            diagnostics: list[Diagnostic] = []
            drafts: list[DraftTransaction] = []
            if kind == TabKind.MONTH:
                month_tabs += 1
                drafts = self._parse_month_tab(worksheet, month, tab_year, diagnostics)
            elif kind == TabKind.INSTALLMENT_PLANS:
                plans = self._parse_installment_plans(worksheet, tab_year, diagnostics)
                plan_count += len(plans)
                drafts = [member for plan in plans for member in plan]
            elif kind == TabKind.DEBTORS:
                drafts = self._parse_debtors(worksheet, diagnostics)
                debtor_count += len(drafts)
            else:
                recurring.extend(self._parse_recurring(worksheet, diagnostics))

            transactions.extend(drafts)
            errors.extend(diagnostics)
            logger.info(
                "ledger_tab_parsed",
                tab=tab,
                kind=kind.value,
                month=month,
                transactions=len(drafts),
                diagnostics=len(diagnostics),
            )

        if month_tabs == 0:
            errors.append(Diagnostic(
                message="No month tabs found in workbook",
                code="no_month_tabs",
            ))

        summary = ImportSummary.from_transactions(transactions)
        summary.installments_count = plan_count
        summary.debtors_count = debtor_count
        summary.recurring_count = len(recurring)
        return ParseResult(
            transactions=transactions,
            errors=errors,
            summary=summary,
            recurring=recurring,
        )

    # =========================================================================
    # ROW PLUMBING
    # =========================================================================

    def _header_rows(self, worksheet: Worksheet) -> list[tuple]:
        """The header row, preceded by the row above it when there is one."""
        return list(worksheet.iter_rows(
            min_row=max(1, self.header_row - 1),
            max_row=self.header_row,
            max_col=self.max_column,
            values_only=True,
        ))

    def _header(self, worksheet: Worksheet) -> tuple:
        rows = self._header_rows(worksheet)
        return rows[-1] if rows else ()

    @staticmethod
    def _missing(
        columns: dict[str, int],
        required: Sequence[str],
        tab: str,
        row: int,
        diagnostics: list[Diagnostic],
    ) -> bool:
        missing = [field for field in required if field not in columns]
        if missing:
            diagnostics.append(Diagnostic(
                tab=tab,
                row=row,
                message=f"Missing required columns: {', '.join(missing)}",
                code="missing_columns",
            ))
        return bool(missing)

    def _collect(
        self,
        worksheet: Worksheet,
        columns: dict[str, int],
        build: Callable[[Cells, str, int], Optional[T]],
        diagnostics: list[Diagnostic],
    ) -> list[T]:
        """
        Run `build` over every data row of a tab.

        Blank rows are skipped; a RowParseError becomes a diagnostic and
        never stops the tab.
        """
        tab = worksheet.title
        results: list[T] = []
        rows = worksheet.iter_rows(
            min_row=self.header_row + 1,
            max_col=self.max_column,
            values_only=True,
        )
        for row_number, values in enumerate(rows, start=self.header_row + 1):
            cells = {
                field: from_openpyxl(values[index]) if index < len(values) else None
                for field, index in columns.items()
            }
            if all(coerce_text(value) is None for value in cells.values()):
                continue
            try:
                result = build(cells, tab, row_number)
            except RowParseError as e:
                logger.debug("ledger_row_rejected", tab=tab, row=row_number, reason=e.message)
                diagnostics.append(e.to_diagnostic())
                continue
            if result is not None:
                results.append(result)
        return results

    @staticmethod
    def _build_draft(tab: str, row_number: int, **fields: Any) -> DraftTransaction:
        try:
            return DraftTransaction(source_tab=tab, source_row=row_number, **fields)
        except ValidationError as e:
            raise RowParseError.from_validation_error(e, tab=tab, row=row_number) from e

    @staticmethod
    def _row_date(raw: Any, month: int, year: int) -> Optional[date]:
        """Full dates are taken as-is; a bare day number uses the tab's month."""
        value = coerce_cell(raw)
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            if 1 <= value <= 31 and value == int(value):
                try:
                    return date(year, month, int(value))
                except ValueError:
                    return None
        return coerce_date(raw)

    # =========================================================================
    # MONTH TABS
    # =========================================================================

    def _parse_month_tab(
        self,
        worksheet: Worksheet,
        month: int,
        year: int,
        diagnostics: list[Diagnostic],
    ) -> list[DraftTransaction]:
        tab = worksheet.title
        header_rows = self._header_rows(worksheet)
        header = header_rows[-1] if header_rows else ()
        income = detect_income_block(header, header_rows)
        columns = detect_columns(header, stop=min(income.values()) if income else None)

        drafts: list[DraftTransaction] = []
        if not self._missing(columns, REQUIRED_COLUMNS, tab, self.header_row, diagnostics):
            drafts.extend(self._collect(
                worksheet,
                columns,
                lambda cells, tab, row: self._parse_expense_row(
                    cells, tab, row, month, year, diagnostics
                ),
                diagnostics,
            ))
        if income:
            drafts.extend(self._collect(
                worksheet,
                income,
                lambda cells, tab, row: self._parse_income_row(cells, tab, row, month, year),
                diagnostics,
            ))
        return drafts

    def _parse_expense_row(
        self,
        cells: Cells,
        tab: str,
        row_number: int,
        month: int,
        year: int,
        diagnostics: list[Diagnostic],
    ) -> Optional[DraftTransaction]:
        """
        Build a draft from the expense columns of a row.

        Returns None for summary rows and rows of the debtors category.

        Raises:
            RowParseError: If a required field does not coerce
        """
        description = coerce_text(cells.get("description"))
        if _is_summary_text(coerce_text(cells.get("date"))) or _is_summary_text(description):
            return None

        category = coerce_text(cells.get("category"))
        if category and normalize_label(category) == normalize_label(DEBTOR_CATEGORY):
            logger.debug("ledger_debtor_row_skipped", tab=tab, row=row_number)
            return None

        problems = []
        tx_date = self._row_date(cells.get("date"), month, year)
        if tx_date is None:
            problems.append("invalid or missing date")

        if "direction" in cells:
            direction = parse_direction(coerce_text(cells.get("direction")))
            if direction is None:
                problems.append("invalid or missing type")
        else:
            direction = Direction.EXPENSE

        if not description:
            problems.append("missing description")

        amount = coerce_amount(cells.get("amount"))
        if amount is None or amount == 0:
            problems.append("invalid or missing amount")

        if problems:
            raise RowParseError(
                f"Row rejected: {', '.join(problems)}",
                tab=tab,
                row=row_number,
            )

        installment = None
        installment_text = coerce_text(cells.get("installment"))
        try:
            installment = parse_installment_text_strict(installment_text)
        except AmbiguousInstallmentError as e:
            diagnostics.append(Diagnostic(
                tab=tab,
                row=row_number,
                message=f"{e}; kept as a single transaction",
                code="ambiguous_installment",
            ))

        payment_method, issuer = normalize_payment_method(coerce_text(cells.get("payment_method")))
        return self._build_draft(
            tab,
            row_number,
            date=tx_date,
            description=description,
            amount=abs(amount),
            direction=direction,
            category=category or DEFAULT_CATEGORY,
            installment=installment,
            institution=coerce_text(cells.get("institution")) or issuer,
            payment_method=payment_method,
            cost_center=normalize_cost_center(coerce_text(cells.get("cost_center"))),
            notes=coerce_text(cells.get("notes")),
        )

    def _parse_income_row(
        self,
        cells: Cells,
        tab: str,
        row_number: int,
        month: int,
        year: int,
    ) -> Optional[DraftTransaction]:
        """Build an Income draft from the income block of a row."""
        description = coerce_text(cells.get("description"))
        if _is_summary_text(coerce_text(cells.get("date"))) or _is_summary_text(description):
            return None

        problems = []
        tx_date = self._row_date(cells.get("date"), month, year)
        if tx_date is None:
            problems.append("invalid or missing date")
        amount = coerce_amount(cells.get("amount"))
        if amount is None or amount == 0:
            problems.append("invalid or missing amount")
        if problems:
            raise RowParseError(
                f"Income row rejected: {', '.join(problems)}",
                tab=tab,
                row=row_number,
            )

        return self._build_draft(
            tab,
            row_number,
            date=tx_date,
            description=description or INCOME_DESCRIPTION,
            amount=abs(amount),
            direction=Direction.INCOME,
            category=INCOME_CATEGORY,
        )

    # =========================================================================
    # AUXILIARY TABS
    # =========================================================================

    def _parse_installment_plans(
        self,
        worksheet: Worksheet,
        year: int,
        diagnostics: list[Diagnostic],
    ) -> list[list[DraftTransaction]]:
        """
        One list of dated members per plan row.

        Members are numbered 1..n in month-column order. A month column
        that comes before the previous one starts the next year.
        """
        tab = worksheet.title
        header = self._header(worksheet)
        columns = detect_columns(header, INSTALLMENT_PLAN_COLUMNS)
        month_columns: list[tuple[int, int]] = []
        for index, raw in enumerate(header):
            label = coerce_text(from_openpyxl(raw))
            if not label or index in columns.values():
                continue
            month = self.month_table.month_for(label)
            if month is not None:
                month_columns.append((index, month))

        if self._missing(columns, ("description",), tab, self.header_row, diagnostics):
            return []
        if not month_columns:
            diagnostics.append(Diagnostic(
                tab=tab,
                row=self.header_row,
                message="No month columns found for installment plans",
                code="missing_columns",
            ))
            return []

        fields = dict(columns)
        for index, month in month_columns:
            fields[f"month_{index}"] = index

        def build(cells: Cells, tab: str, row_number: int) -> Optional[list[DraftTransaction]]:
            description = coerce_text(cells.get("description"))
            if not description or _is_summary_text(description):
                return None
            amounts = []
            for index, month in month_columns:
                amount = coerce_amount(cells.get(f"month_{index}"))
                if amount is not None and amount > 0:
                    amounts.append((month, amount))
            has_value = any(
                (coerce_amount(cells.get(field)) or 0) > 0
                for field in ("total", "installment_amount")
            )
            if not amounts and not has_value:
                return None
            if not amounts:
                raise RowParseError(
                    f"Installment plan {description!r} has no monthly amounts",
                    tab=tab,
                    row=row_number,
                )
            return self._plan_members(cells, description, amounts, tab, row_number, year)

        return self._collect(worksheet, fields, build, diagnostics)

    def _plan_members(
        self,
        cells: Cells,
        description: str,
        amounts: list[tuple[int, Decimal]],
        tab: str,
        row_number: int,
        year: int,
    ) -> list[DraftTransaction]:
        total = max(_positive_int(cells.get("count")) or 0, len(amounts))
        plan_year = _positive_int(cells.get("year")) or year
        day = _positive_int(cells.get("day"))
        if day is None or day > 31:
            day_date = coerce_date(cells.get("day"))
            day = day_date.day if day_date else 1

        group_id = uuid4()
        root = strip_installment_suffix(description)
        payment_method, issuer = normalize_payment_method(coerce_text(cells.get("payment_method")))
        members = []
        previous_month = None
        for number, (month, amount) in enumerate(amounts, start=1):
            if previous_month is not None and month <= previous_month:
                plan_year += 1
            previous_month = month
            members.append(self._build_draft(
                tab,
                row_number,
                date=date(plan_year, month, 1) + relativedelta(day=day),
                description=f"{root} ({number}/{total})",
                amount=amount,
                direction=Direction.EXPENSE,
                category=coerce_text(cells.get("category")) or INSTALLMENT_CATEGORY,
                installment=InstallmentInfo(current=number, total=total),
                installment_status=InstallmentStatus.PENDING,
                group_id=group_id,
                institution=issuer,
                payment_method=payment_method,
                cost_center=normalize_cost_center(coerce_text(cells.get("cost_center"))),
            ))
        return members

    def _parse_debtors(
        self,
        worksheet: Worksheet,
        diagnostics: list[Diagnostic],
    ) -> list[DraftTransaction]:
        tab = worksheet.title
        columns = detect_columns(self._header(worksheet), DEBTOR_COLUMNS)
        if self._missing(columns, ("name", "amount"), tab, self.header_row, diagnostics):
            return []

        def build(cells: Cells, tab: str, row_number: int) -> Optional[DraftTransaction]:
            name = coerce_text(cells.get("name"))
            if _is_summary_text(name):
                return None
            amount = coerce_amount(cells.get("amount"))
            problems = []
            if not name:
                problems.append("missing debtor name")
            if amount is None or amount == 0:
                problems.append("invalid or missing amount")
            if problems:
                raise RowParseError(
                    f"Debtor row rejected: {', '.join(problems)}",
                    tab=tab,
                    row=row_number,
                )
            return self._build_draft(
                tab,
                row_number,
                date=coerce_date(cells.get("date")) or date.today(),
                description=coerce_text(cells.get("description")) or f"Dívida de {name}",
                amount=abs(amount),
                direction=Direction.EXPENSE,
                category=DEBTOR_CATEGORY,
                notes=f"Devedor: {name}",
            )

        return self._collect(worksheet, columns, build, diagnostics)

    def _parse_recurring(
        self,
        worksheet: Worksheet,
        diagnostics: list[Diagnostic],
    ) -> list[RecurringExpense]:
        tab = worksheet.title
        columns = detect_columns(self._header(worksheet), RECURRING_COLUMNS)
        if self._missing(columns, ("description", "amount"), tab, self.header_row, diagnostics):
            return []

        def build(cells: Cells, tab: str, row_number: int) -> Optional[RecurringExpense]:
            description = coerce_text(cells.get("description"))
            if _is_summary_text(description):
                return None
            amount = coerce_amount(cells.get("amount"))
            problems = []
            if not description:
                problems.append("missing description")
            if amount is None or amount == 0:
                problems.append("invalid or missing amount")
            if problems:
                raise RowParseError(
                    f"Fixed expense row rejected: {', '.join(problems)}",
                    tab=tab,
                    row=row_number,
                )
            try:
                return RecurringExpense(
                    description=description,
                    amount=abs(amount),
                    category=coerce_text(cells.get("category")) or RECURRING_CATEGORY,
                    source_tab=tab,
                    source_row=row_number,
                )
            except ValidationError as e:
                raise RowParseError.from_validation_error(e, tab=tab, row=row_number) from e

        return self._collect(worksheet, columns, build, diagnostics)


def parse_ledger_sheet(
    content: bytes,
    year: Optional[int] = None,
    header_row: int = DEFAULT_HEADER_ROW,
    max_column: int = DEFAULT_MAX_COLUMN,
    locale: str = "pt_BR",
) -> ParseResult:
    """Parse an .xlsx ledger workbook held in memory."""
    parser = LedgerSheetParser(
        header_row=header_row,
        max_column=max_column,
        month_table=MonthTable(locale),
    )
    return parser.parse_bytes(content, year=year)
