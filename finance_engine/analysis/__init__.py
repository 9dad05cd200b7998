"""Analysis package: read-only summaries over the ledger."""

from finance_engine.analysis.summary import (
    Alert,
    AlertLevel,
    Anomaly,
    CategoryBreakdown,
    CategoryTrend,
    FinancialSummary,
    MonthlyBalance,
    detect_anomalies,
    monthly_balances,
    summarize,
)

__all__ = [
    "Alert",
    "AlertLevel",
    "Anomaly",
    "CategoryBreakdown",
    "CategoryTrend",
    "FinancialSummary",
    "MonthlyBalance",
    "detect_anomalies",
    "monthly_balances",
    "summarize",
]
