"""
Summary & Anomaly Analysis

Read-only aggregation of a transaction set over a date window: totals,
savings rate, category breakdown, trends against a previous window,
statistically unusual expenses and rule-based alerts.

DESIGN DECISION: When income is zero the savings rate is undefined and is
reported as None. Alerts treat that case like a negative rate whenever
something was spent.

Anomalies use the population standard deviation of the window's expense
amounts. An expense is flagged when its z-score is strictly above the
threshold. Fewer than two expenses, or identical amounts, give no
anomalies and never raise.
"""

import statistics
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence

import structlog
from pydantic import Field

from finance_engine.models.transaction import CamelModel, Direction, DraftTransaction


logger = structlog.get_logger(__name__)

DEFAULT_Z_THRESHOLD = 2.0
MAX_ANOMALIES = 5
LOW_SAVINGS_RATE = 0.10
CATEGORY_CONCENTRATION_PERCENT = 40.0
EXPENSE_GROWTH_PERCENT = 30.0
STABLE_TREND_PERCENT = 5.0


# =============================================================================
# RESULT MODELS
# =============================================================================

class AlertLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class Alert(CamelModel):
    level: AlertLevel
    code: str
    message: str


class CategoryBreakdown(CamelModel):
    category: str
    amount: Decimal
    transaction_count: int
    percentage: float = Field(description="Share of total expenses, 0-100")


class CategoryTrend(CamelModel):
    category: str
    current_amount: Decimal
    previous_amount: Decimal
    change_percent: float
    trend: TrendDirection


class Anomaly(CamelModel):
    transaction: DraftTransaction
    z_score: float


class MonthlyBalance(CamelModel):
    month: str  # YYYY-MM
    income: Decimal
    expense: Decimal
    balance: Decimal


class FinancialSummary(CamelModel):
    start: Optional[date] = None
    end: Optional[date] = None
    transaction_count: int = 0
    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    savings_rate: Optional[float] = Field(
        default=None,
        description="balance / income as a ratio; None when income is zero"
    )
    categories: list[CategoryBreakdown] = Field(default_factory=list)
    income_change_percent: Optional[float] = Field(
        default=None,
        description="Income change versus the previous window; None without one"
    )
    expense_change_percent: Optional[float] = None
    trends: list[CategoryTrend] = Field(default_factory=list)
    anomalies: list[Anomaly] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)


# =============================================================================
# ANALYSIS
# =============================================================================

def _in_window(tx: DraftTransaction, start: Optional[date], end: Optional[date]) -> bool:
    if start and tx.date < start:
        return False
    if end and tx.date > end:
        return False
    return True


def _total(transactions: Sequence[DraftTransaction], direction: Direction) -> Decimal:
    return sum((t.amount for t in transactions if t.direction == direction), Decimal("0"))


def percent_change(current: Decimal, previous: Decimal) -> Optional[float]:
    """Percentage change; None when there is nothing to compare against."""
    if previous == 0:
        return None
    return float((current - previous) / previous * 100)


def category_breakdown(transactions: Sequence[DraftTransaction]) -> list[CategoryBreakdown]:
    """Expense totals per category, largest first."""
    expenses = [t for t in transactions if t.direction == Direction.EXPENSE]
    total = _total(expenses, Direction.EXPENSE)

    grouped: dict[str, list[DraftTransaction]] = {}
    for tx in expenses:
        grouped.setdefault(tx.category, []).append(tx)

    breakdown = []
    for category, items in grouped.items():
        amount = sum((t.amount for t in items), Decimal("0"))
        breakdown.append(CategoryBreakdown(
            category=category,
            amount=amount,
            transaction_count=len(items),
            percentage=float(amount / total * 100) if total else 0.0,
        ))
    breakdown.sort(key=lambda c: c.amount, reverse=True)
    return breakdown


def category_trends(
    current: Sequence[CategoryBreakdown],
    previous: Sequence[CategoryBreakdown],
) -> list[CategoryTrend]:
    """Compare each current category with the previous window."""
    previous_amounts = {c.category: c.amount for c in previous}
    trends = []
    for cat in current:
        before = previous_amounts.get(cat.category, Decimal("0"))
        if before > 0:
            change = float((cat.amount - before) / before * 100)
        else:
            change = 100.0 if cat.amount > 0 else 0.0
        if change > STABLE_TREND_PERCENT:
            direction = TrendDirection.UP
        elif change < -STABLE_TREND_PERCENT:
            direction = TrendDirection.DOWN
        else:
            direction = TrendDirection.STABLE
        trends.append(CategoryTrend(
            category=cat.category,
            current_amount=cat.amount,
            previous_amount=before,
            change_percent=change,
            trend=direction,
        ))
    return trends


def detect_anomalies(
    transactions: Sequence[DraftTransaction],
    z_threshold: float = DEFAULT_Z_THRESHOLD,
    max_results: int = MAX_ANOMALIES,
) -> list[Anomaly]:
    """
    Expenses whose z-score is above the threshold, most unusual first.
    """
    expenses = [t for t in transactions if t.direction == Direction.EXPENSE]
    if len(expenses) < 2:
        return []

    amounts = [float(t.amount) for t in expenses]
    mean = statistics.fmean(amounts)
    stdev = statistics.pstdev(amounts)
    if stdev == 0:
        return []

    anomalies = [
        Anomaly(transaction=tx, z_score=(amount - mean) / stdev)
        for tx, amount in zip(expenses, amounts)
        if (amount - mean) / stdev > z_threshold
    ]
    anomalies.sort(key=lambda a: a.z_score, reverse=True)
    if anomalies:
        logger.debug("anomalies_detected", count=len(anomalies), mean=mean, stdev=stdev)
    return anomalies[:max_results]


def build_alerts(summary: FinancialSummary) -> list[Alert]:
    alerts = []
    rate = summary.savings_rate
    if (rate is not None and rate < 0) or (rate is None and summary.total_expenses > 0):
        alerts.append(Alert(
            level=AlertLevel.DANGER,
            code="negative_savings",
            message="You spent more than you earned in this period",
        ))
    elif rate is not None and rate < LOW_SAVINGS_RATE:
        alerts.append(Alert(
            level=AlertLevel.WARNING,
            code="low_savings_rate",
            message=f"Savings rate is {rate:.0%}, below {LOW_SAVINGS_RATE:.0%}",
        ))

    growth = summary.expense_change_percent
    if growth is not None and growth > EXPENSE_GROWTH_PERCENT:
        alerts.append(Alert(
            level=AlertLevel.WARNING,
            code="expense_growth",
            message=f"Expenses rose {growth:.0f}% versus the previous period",
        ))

    for trend in summary.trends:
        if trend.trend == TrendDirection.UP and trend.change_percent > EXPENSE_GROWTH_PERCENT:
            alerts.append(Alert(
                level=AlertLevel.WARNING,
                code="category_growth",
                message=(
                    f'Spending on "{trend.category}" rose '
                    f"{trend.change_percent:.0f}% versus the previous period"
                ),
            ))

    dominant = next(
        (c for c in summary.categories if c.percentage > CATEGORY_CONCENTRATION_PERCENT),
        None,
    )
    if dominant is not None:
        alerts.append(Alert(
            level=AlertLevel.INFO,
            code="category_concentration",
            message=f'"{dominant.category}" is {dominant.percentage:.0f}% of your spending',
        ))

    if summary.anomalies:
        alerts.append(Alert(
            level=AlertLevel.INFO,
            code="unusual_expenses",
            message=f"{len(summary.anomalies)} expense(s) outside the usual pattern",
        ))
    return alerts


def summarize(
    transactions: Sequence[DraftTransaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
    previous: Optional[Sequence[DraftTransaction]] = None,
    z_threshold: float = DEFAULT_Z_THRESHOLD,
    max_anomalies: int = MAX_ANOMALIES,
) -> FinancialSummary:
    """
    Summarize the transactions falling inside [start, end].

    Args:
        transactions: ledger rows (drafts or persisted transactions)
        start: first day of the window, inclusive (None = unbounded)
        end: last day of the window, inclusive (None = unbounded)
        previous: transactions of the preceding window, for category trends
        z_threshold: z-score above which an expense is unusual
        max_anomalies: maximum number of anomalies reported
    """
    window = [t for t in transactions if _in_window(t, start, end)]
    income = _total(window, Direction.INCOME)
    expenses = _total(window, Direction.EXPENSE)
    balance = income - expenses

    summary = FinancialSummary(
        start=start,
        end=end,
        transaction_count=len(window),
        total_income=income,
        total_expenses=expenses,
        balance=balance,
        savings_rate=float(balance / income) if income > 0 else None,
        categories=category_breakdown(window),
        anomalies=detect_anomalies(window, z_threshold, max_anomalies),
    )
    if previous is not None:
        summary.trends = category_trends(summary.categories, category_breakdown(previous))
        summary.income_change_percent = percent_change(
            income, _total(previous, Direction.INCOME)
        )
        summary.expense_change_percent = percent_change(
            expenses, _total(previous, Direction.EXPENSE)
        )
    summary.alerts = build_alerts(summary)

    logger.info(
        "summary_computed",
        transactions=len(window),
        anomalies=len(summary.anomalies),
        alerts=len(summary.alerts),
    )
    return summary


def monthly_balances(transactions: Sequence[DraftTransaction]) -> list[MonthlyBalance]:
    """Income, expense and balance per calendar month, oldest first."""
    months: dict[str, list[DraftTransaction]] = {}
    for tx in transactions:
        months.setdefault(f"{tx.date.year:04d}-{tx.date.month:02d}", []).append(tx)

    result = []
    for month in sorted(months):
        income = _total(months[month], Direction.INCOME)
        expense = _total(months[month], Direction.EXPENSE)
        result.append(MonthlyBalance(
            month=month,
            income=income,
            expense=expense,
            balance=income - expense,
        ))
    return result
