"""Monthly aggregation and reporting."""

from src.reports.aggregator import (
    ROLLOVER_CATEGORY,
    MonthlyAggregator,
    compute_summary,
)
from src.reports.analysis import (
    MonthlyReports,
    budget_statuses,
    budget_warning_message,
    check_budget_warning,
    compare_summaries,
    count_alerts,
    expense_distribution,
)

__all__ = [
    "ROLLOVER_CATEGORY",
    "MonthlyAggregator",
    "MonthlyReports",
    "budget_statuses",
    "budget_warning_message",
    "check_budget_warning",
    "compare_summaries",
    "count_alerts",
    "compute_summary",
    "expense_distribution",
]
