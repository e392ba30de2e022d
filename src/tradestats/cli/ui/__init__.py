"""CLI UI components - formatters."""

from tradestats.cli.ui.formatters import (
    create_category_table,
    create_day_of_week_table,
    create_insights_table,
    create_risk_table,
    create_summary_table,
    create_warnings_table,
    format_money,
    format_ratio,
)

__all__ = [
    "create_category_table",
    "create_day_of_week_table",
    "create_insights_table",
    "create_risk_table",
    "create_summary_table",
    "create_warnings_table",
    "format_money",
    "format_ratio",
]
