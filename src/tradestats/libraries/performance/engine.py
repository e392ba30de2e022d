"""Single-pass analytics engine.

compute_analytics() turns an unordered collection of closed trades into an
AnalyticsResult: one sort by date, one walk over the trades feeding the
stateful calculators, then derived metrics and the optional Monte Carlo
risk-of-ruin estimate.

The engine never raises on bad input. Malformed trade fields are replaced by
defaults (see models.Trade) and reported through an ``input`` warning;
metrics computed from small samples carry a warning instead of failing.
"""

import math
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping
from zoneinfo import ZoneInfo

import numpy as np
from pydantic import ValidationError

from tradestats.libraries.money import from_units, to_units
from tradestats.libraries.performance.calculators import (
    CalendarCalculator,
    CategoryCalculator,
    DailyPnlCalculator,
    DurationCalculator,
    EquityCurveCalculator,
    StreakCalculator,
    TradeStatisticsCalculator,
)
from tradestats.libraries.performance.metrics import (
    calculate_expectancy,
    calculate_kelly,
    calculate_kelly_continuous,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
)
from tradestats.libraries.performance.models import (
    UNTAGGED,
    AnalyticsResult,
    AnalyticsSettings,
    Insight,
    MetricWarning,
    Trade,
)
from tradestats.libraries.risk import RuinEstimate, consecutive_loss_probability, simulate_ruin

# Minimum sample sizes below which a metric is flagged as unreliable.
MIN_SAMPLES = {
    "kelly": 10,
    "sharpe": 20,
    "sortino": 20,
    "monte_carlo": 30,
}


def coerce_settings(settings: AnalyticsSettings | Mapping[str, Any] | None) -> AnalyticsSettings:
    """Build settings from a mapping; unknown keys are ignored, bad values clamped."""
    if isinstance(settings, AnalyticsSettings):
        return settings
    if isinstance(settings, Mapping):
        return AnalyticsSettings.model_validate(dict(settings))
    return AnalyticsSettings()


def coerce_trades(trades: Iterable[Any]) -> tuple[list[Trade], int]:
    """
    Validate raw trade items.

    Returns:
        (trades, skipped) where skipped counts items that are not trades at all
    """
    parsed: list[Trade] = []
    skipped = 0
    for item in trades:
        if isinstance(item, Trade):
            parsed.append(item)
            continue
        if not isinstance(item, Mapping):
            skipped += 1
            continue
        try:
            parsed.append(Trade.model_validate(item))
        except ValidationError:
            skipped += 1
    return parsed, skipped


def _sort_key(trade: Trade) -> tuple[int, float]:
    if trade.date is None:
        return (1, 0.0)
    moment = trade.date if trade.date.tzinfo else trade.date.replace(tzinfo=timezone.utc)
    return (0, moment.timestamp())


def _local_time(moment: datetime | None, zone: ZoneInfo | None) -> datetime | None:
    if moment is None:
        return None
    if zone is not None and moment.tzinfo is not None:
        return moment.astimezone(zone)
    return moment


def compute_analytics(
    trades: Iterable[Any] | None,
    settings: AnalyticsSettings | Mapping[str, Any] | None = None,
    *,
    rng: np.random.Generator | None = None,
) -> AnalyticsResult | None:
    """
    Compute the full analytics report for a trade set.

    Args:
        trades: Trades (models or mappings) in any order
        settings: AnalyticsSettings or a mapping of settings
        rng: Generator for the Monte Carlo simulation; defaults to one seeded
            from settings.seed, or an unseeded one

    Returns:
        AnalyticsResult, or None when there are no trades
    """
    if trades is None:
        return None

    config = coerce_settings(settings)
    parsed, skipped = coerce_trades(trades)
    if not parsed:
        return None

    ordered = sorted(parsed, key=_sort_key)
    zone = ZoneInfo(config.timezone) if config.timezone else None
    start_units = to_units(config.account_size) if config.account_size else 0

    stats = TradeStatisticsCalculator()
    equity = EquityCurveCalculator(start_units)
    streaks = StreakCalculator()
    calendar = CalendarCalculator()
    daily = DailyPnlCalculator()
    durations = DurationCalculator()
    strategies = CategoryCalculator()
    emotions = CategoryCalculator()
    symbols = CategoryCalculator()
    asset_classes = CategoryCalculator()

    pnls: list[float] = []
    malformed = 0

    for trade in ordered:
        pnl_units = to_units(trade.pnl)
        pnl = from_units(pnl_units)
        pnls.append(pnl)
        if trade.issues:
            malformed += 1

        stats.add_trade(pnl_units, to_units(trade.fees), trade.r_multiple, trade.rule_break)
        equity.update(trade.date, pnl_units)
        streaks.update(pnl_units)

        playbook = trade.playbook or UNTAGGED
        strategies.add(playbook, pnl_units, trade.r_multiple)
        emotions.add(trade.emotion or UNTAGGED, pnl_units, trade.r_multiple)
        symbols.add((trade.symbol or "unknown").upper(), pnl_units, trade.r_multiple)
        asset_classes.add(trade.asset_class or UNTAGGED, pnl_units, trade.r_multiple)

        local = _local_time(trade.date, zone)
        if local is not None:
            calendar.add(local, pnl_units, playbook)
            daily.add(local.date(), pnl_units)

        minutes = trade.duration_minutes
        if minutes is not None:
            durations.add(minutes, pnl)

    n = stats.total_trades
    win_rate = stats.win_rate
    avg_win = stats.avg_win
    avg_loss = stats.avg_loss

    if stats.gross_profit.raw_units == 0:
        pf = 0.0
    elif stats.gross_loss.raw_units == 0:
        pf = math.inf
    else:
        pf = stats.gross_profit.raw_units / stats.gross_loss.raw_units

    expectancy = calculate_expectancy(win_rate, avg_win, avg_loss)
    if stats.r_count:
        expectancy_r = stats.avg_r
    else:
        expectancy_r = expectancy / avg_loss if avg_loss > 0 else 0.0

    kelly = calculate_kelly(win_rate, avg_win, avg_loss)
    sharpe = calculate_sharpe_ratio(pnls, config.risk_free_rate)
    sortino = calculate_sortino_ratio(pnls, config.risk_free_rate)

    risk = RuinEstimate()
    if config.mc_runs > 0:
        generator = rng if rng is not None else np.random.default_rng(config.seed)
        risk = simulate_ruin(
            pnls,
            config.mc_runs,
            seq_len=config.mc_seq_len,
            ruin_dd_threshold=config.ruin_dd_threshold,
            account_size=config.account_size,
            profit_target=config.profit_target,
            rng=generator,
        )

    loss_rate = stats.losing_trades / n

    inexact = not all(acc.exact for acc in (stats.total_pnl, stats.gross_profit, stats.gross_loss))
    warnings = _quality_warnings(n, config, malformed, skipped, inexact)

    result = AnalyticsResult(
        trade_count=n,
        total_pnl=stats.total_pnl.result,
        total_fees=stats.total_fees.result,
        win_count=stats.winning_trades,
        loss_count=stats.losing_trades,
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        largest_win=stats.largest_win,
        largest_loss=stats.largest_loss,
        rr=avg_win / avg_loss if avg_loss > 0 else 0.0,
        pf=pf,
        expectancy=expectancy,
        expectancy_r=expectancy_r,
        avg_r=stats.avg_r,
        rule_breaks=stats.rule_breaks,
        kelly=kelly,
        kelly_continuous=calculate_kelly_continuous(pnls),
        sharpe=sharpe,
        sortino=sortino,
        max_dd=equity.max_drawdown_pct,
        ror=risk.ror,
        risk=risk,
        cons_loss_3=consecutive_loss_probability(loss_rate, 3),
        cons_loss_5=consecutive_loss_probability(loss_rate, 5),
        best_streak=streaks.best_streak,
        worst_streak=streaks.worst_streak,
        equity_curve=equity.points,
        daily_pnl=daily.daily_series(),
        rolling=daily.rolling_windows(),
        by_day_of_week=calendar.by_day_of_week(),
        by_hour_of_day=calendar.by_hour_of_day(),
        by_strategy=strategies.to_stats(),
        by_emotion=emotions.to_stats(),
        by_symbol=symbols.to_stats(),
        by_asset_class=asset_classes.to_stats(),
        by_playbook_day=calendar.by_playbook_day(),
        duration=durations.to_stats(),
        warnings=warnings,
    )
    return result.model_copy(update={"insights": build_insights(result, config)})


def _quality_warnings(
    n: int, settings: AnalyticsSettings, malformed: int, skipped: int, inexact: bool = False
) -> list[MetricWarning]:
    warnings: list[MetricWarning] = []

    if n < MIN_SAMPLES["kelly"]:
        warnings.append(
            MetricWarning(metric="kelly", reason=f"Kelly based on {n} trades ({MIN_SAMPLES['kelly']}+ recommended)")
        )
    for metric, label in (("sharpe", "Sharpe"), ("sortino", "Sortino")):
        if n < MIN_SAMPLES[metric]:
            warnings.append(
                MetricWarning(
                    metric=metric,
                    reason=f"{label} based on {n} observations ({MIN_SAMPLES[metric]}+ recommended)",
                )
            )
    if settings.mc_runs > 0 and n < MIN_SAMPLES["monte_carlo"]:
        warnings.append(
            MetricWarning(
                metric="monte_carlo",
                reason=f"Monte Carlo based on {n} trades ({MIN_SAMPLES['monte_carlo']}+ recommended)",
            )
        )
    if malformed or skipped:
        parts = []
        if malformed:
            parts.append(f"{malformed} trade(s) had malformed fields replaced by defaults")
        if skipped:
            parts.append(f"{skipped} item(s) were not trades and were skipped")
        warnings.append(MetricWarning(metric="input", reason="; ".join(parts)))

    if inexact:
        warnings.append(
            MetricWarning(metric="precision", reason="P&L totals exceed the exactly representable range; values are approximate")
        )

    return warnings


def build_insights(result: AnalyticsResult, settings: AnalyticsSettings) -> list[Insight]:
    """Short human-readable observations about a report."""
    insights: list[Insight] = []

    if result.expectancy > 0:
        insights.append(
            Insight(kind="positive", message=f"Positive expectancy: ${result.expectancy:.0f} per trade. The system has an edge.")
        )
    elif result.expectancy < 0:
        insights.append(
            Insight(kind="warning", message=f"Negative expectancy: ${result.expectancy:.0f} per trade. Review the strategy.")
        )

    if result.kelly > 0.01:
        insights.append(Insight(kind="positive", message=f"Kelly suggests risking {result.kelly * 100:.1f}% per trade."))

    if result.risk.runs > 0:
        threshold = settings.ruin_dd_threshold * 100
        summary = f"Risk of ruin {result.ror:.1f}% over {result.risk.runs} simulations at {threshold:.0f}% drawdown."
        if result.ror < 5:
            insights.append(Insight(kind="positive", message=f"{summary} Sustainable."))
        elif result.ror > 30:
            insights.append(Insight(kind="warning", message=f"{summary} Reduce size."))

    if settings.risk_free_rate > 0:
        insights.append(
            Insight(kind="info", message=f"Sharpe/Sortino adjusted for Rf={settings.risk_free_rate * 100:.1f}%.")
        )

    if result.win_rate < 45:
        insights.append(Insight(kind="warning", message=f"Win rate {result.win_rate:.1f}%; needs a higher reward:risk."))
    elif result.win_rate > 65:
        insights.append(Insight(kind="positive", message=f"Strong {result.win_rate:.1f}% win rate."))

    if result.rr > 2.5:
        insights.append(Insight(kind="positive", message=f"Excellent {result.rr:.2f}:1 reward/risk."))

    if result.worst_streak >= 4:
        insights.append(
            Insight(kind="warning", message=f"{result.worst_streak}-trade losing streak. Review risk management.")
        )

    if not insights:
        insights.append(Insight(kind="info", message="Import more trades for deeper insights."))

    return insights
