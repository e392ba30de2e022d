"""Rich table formatters for CLI output."""

import math
from typing import Mapping, Sequence

from rich.table import Table

from tradestats.libraries.performance.models import AnalyticsResult, CategoryStats, Insight, MetricWarning


def format_money(value: float) -> str:
    """Format a currency amount with sign and thousands separator."""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_ratio(value: float, digits: int = 2) -> str:
    if math.isinf(value):
        return "∞"
    return f"{value:.{digits}f}"


def _pnl_style(value: float) -> str:
    if value > 0:
        return "green"
    if value < 0:
        return "red"
    return "white"


def create_summary_table(result: AnalyticsResult) -> Table:
    """
    Create the headline metrics table.

    Args:
        result: Computed analytics

    Returns:
        Configured Rich Table
    """
    table = Table(title="Performance Summary")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Trades", f"{result.trade_count:,}")
    table.add_row("Net P&L", f"[{_pnl_style(result.total_pnl)}]{format_money(result.total_pnl)}[/]")
    table.add_row("Fees", format_money(result.total_fees))
    table.add_row("Wins / Losses", f"{result.win_count} / {result.loss_count}")
    table.add_row("Win Rate", f"{result.win_rate:.1f}%")
    table.add_row("Avg Win", format_money(result.avg_win))
    table.add_row("Avg Loss", format_money(result.avg_loss))
    table.add_row("Largest Win", format_money(result.largest_win))
    table.add_row("Largest Loss", format_money(result.largest_loss))
    table.add_row("Reward:Risk", format_ratio(result.rr))
    table.add_row("Profit Factor", format_ratio(result.pf))
    table.add_row("Expectancy", format_money(result.expectancy))
    table.add_row("Expectancy (R)", format_ratio(result.expectancy_r))
    table.add_row("Best / Worst Streak", f"{result.best_streak} / {result.worst_streak}")
    if result.rule_breaks:
        table.add_row("Rule Breaks", str(result.rule_breaks), style="yellow")
    return table


def create_risk_table(result: AnalyticsResult) -> Table:
    """
    Create the sizing and risk metrics table.

    Args:
        result: Computed analytics

    Returns:
        Configured Rich Table
    """
    table = Table(title="Risk")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Kelly", f"{result.kelly * 100:.1f}%")
    table.add_row("Kelly (continuous)", f"{result.kelly_continuous * 100:.1f}%")
    table.add_row("Sharpe", format_ratio(result.sharpe))
    table.add_row("Sortino", format_ratio(result.sortino))
    table.add_row("Max Drawdown", f"{result.max_dd:.2f}%")
    table.add_row("P(3 losses in a row)", f"{result.cons_loss_3:.1f}%")
    table.add_row("P(5 losses in a row)", f"{result.cons_loss_5:.1f}%")

    risk = result.risk
    if risk.runs > 0:
        table.add_row("Risk of Ruin", f"{result.ror:.1f}%", style="bold")
        table.add_row("Simulations", f"{risk.runs:,} x {risk.seq_len} trades")
        table.add_row("Final P&L P10 / P50 / P90", " / ".join(format_money(v) for v in (risk.p10, risk.p50, risk.p90)))
        if risk.avg_days_to_pass is not None:
            table.add_row("Avg Trades to Target", f"{risk.avg_days_to_pass:.1f}")
    return table


def create_day_of_week_table(result: AnalyticsResult) -> Table:
    """Create the day-of-week breakdown table (Sunday first)."""
    table = Table(title="By Day of Week")
    table.add_column("Day", style="cyan")
    table.add_column("Trades", justify="right")
    table.add_column("Win Rate", justify="right")
    table.add_column("P&L", justify="right")

    for day in result.by_day_of_week:
        if day.count == 0:
            table.add_row(day.name, "-", "-", "-", style="dim")
            continue
        table.add_row(day.name, str(day.count), f"{day.win_rate:.1f}%", f"[{_pnl_style(day.pnl)}]{format_money(day.pnl)}[/]")
    return table


def create_category_table(title: str, stats: Mapping[str, CategoryStats]) -> Table:
    """
    Create a breakdown table for one category (playbook, emotion, symbol...).

    Args:
        title: Table title
        stats: Category name -> aggregate, shown by descending P&L

    Returns:
        Configured Rich Table
    """
    table = Table(title=title)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Trades", justify="right")
    table.add_column("Win Rate", justify="right")
    table.add_column("Avg R", justify="right")
    table.add_column("P&L", justify="right")

    for name, item in sorted(stats.items(), key=lambda kv: kv[1].pnl, reverse=True):
        table.add_row(
            name,
            str(item.count),
            f"{item.win_rate:.1f}%",
            f"{item.avg_r:.2f}",
            f"[{_pnl_style(item.pnl)}]{format_money(item.pnl)}[/]",
        )
    return table


def create_warnings_table(warnings: Sequence[MetricWarning]) -> Table:
    table = Table(title="Warnings", title_style="yellow")
    table.add_column("Metric", style="yellow", no_wrap=True)
    table.add_column("Reason", style="dim")
    for warning in warnings:
        table.add_row(warning.metric, warning.reason)
    return table


def create_insights_table(insights: Sequence[Insight]) -> Table:
    styles = {"positive": "green", "warning": "yellow", "info": "blue"}
    table = Table(title="Insights", show_header=False)
    table.add_column("Kind", no_wrap=True)
    table.add_column("Message")
    for insight in insights:
        style = styles.get(insight.kind, "white")
        table.add_row(f"[{style}]{insight.kind}[/{style}]", insight.message)
    return table
