"""Performance metrics calculation functions.

Pure functions over a per-trade P&L series. All functions are stateless:
same inputs always produce same outputs, and none of them returns NaN.
Infinity is returned only by calculate_profit_factor, for a series with
wins and no losses.

Usage:
    >>> from tradestats.libraries.performance import metrics
    >>> pnls = [500, -200, 300, -100]
    >>> metrics.calculate_win_rate(pnls)
    50.0
    >>> metrics.calculate_profit_factor(pnls)
    2.6666666666666665
"""

import math
from typing import Sequence

from tradestats.libraries.money import SafeAccumulator, to_units

TRADING_DAYS_PER_YEAR = 252


def calculate_win_rate(pnls: Sequence[float]) -> float:
    """
    Percentage of trades with positive P&L.

    Returns:
        Win rate as percentage (0-100), 0 for an empty series
    """
    if not pnls:
        return 0.0
    wins = sum(1 for pnl in pnls if to_units(pnl) > 0)
    return wins / len(pnls) * 100


def calculate_profit_factor(pnls: Sequence[float]) -> float:
    """
    Gross profit divided by gross loss.

    Returns:
        Profit factor; +inf when there are wins but no losses, 0 when there
        are no wins.

    Example:
        >>> calculate_profit_factor([100, 50])
        inf
        >>> calculate_profit_factor([-100])
        0.0
    """
    gross_profit = SafeAccumulator()
    gross_loss = SafeAccumulator()
    for pnl in pnls:
        units = to_units(pnl)
        if units > 0:
            gross_profit.add_units(units)
        elif units < 0:
            gross_loss.add_units(-units)

    if gross_profit.raw_units == 0:
        return 0.0
    if gross_loss.raw_units == 0:
        return math.inf
    return gross_profit.raw_units / gross_loss.raw_units


def calculate_expectancy(win_rate: float, avg_win: float, avg_loss: float) -> float:
    """
    Expected P&L per trade.

    Args:
        win_rate: Win rate as percentage (0-100)
        avg_win: Mean winning P&L
        avg_loss: Mean losing P&L as a positive number
    """
    p = win_rate / 100
    return p * avg_win - (1 - p) * avg_loss


def calculate_kelly(win_rate: float, avg_win: float, avg_loss: float) -> float:
    """
    Kelly fraction f* = p - (1 - p) / b, with b = avg_win / avg_loss.

    Returns:
        Fraction clamped to [0, 1]; 0 when avg_loss is 0 (b undefined)

    Example:
        >>> round(calculate_kelly(60.0, 200.0, 100.0), 4)
        0.4
    """
    if avg_loss <= 0 or avg_win <= 0:
        return 0.0
    p = win_rate / 100
    b = avg_win / avg_loss
    kelly = p - (1 - p) / b
    return min(1.0, max(0.0, kelly))


def calculate_kelly_continuous(pnls: Sequence[float]) -> float:
    """
    Continuous Kelly f* = mean / variance of the P&L series.

    Returns:
        Fraction clamped to [0, 1]; 0 with fewer than 2 trades or zero variance
    """
    n = len(pnls)
    if n < 2:
        return 0.0
    mean = sum(pnls) / n
    variance = sum((pnl - mean) ** 2 for pnl in pnls) / (n - 1)
    if variance <= 0:
        return 0.0
    return min(1.0, max(0.0, mean / variance))


def _per_period_rate(risk_free_rate: float) -> float:
    return risk_free_rate / TRADING_DAYS_PER_YEAR


def calculate_sharpe_ratio(pnls: Sequence[float], risk_free_rate: float = 0.0) -> float:
    """
    Sharpe ratio of a P&L series.

    (mean - rf / 252) / sample std, scaled by sqrt(min(252, n)).

    Returns:
        Sharpe ratio; 0 with fewer than 2 observations or zero variance
    """
    n = len(pnls)
    if n < 2:
        return 0.0
    mean = sum(pnls) / n
    variance = sum((pnl - mean) ** 2 for pnl in pnls) / (n - 1)
    std = math.sqrt(variance)
    if std == 0 or not math.isfinite(std):
        return 0.0
    return (mean - _per_period_rate(risk_free_rate)) / std * math.sqrt(min(TRADING_DAYS_PER_YEAR, n))


def calculate_sortino_ratio(pnls: Sequence[float], risk_free_rate: float = 0.0) -> float:
    """
    Sortino ratio of a P&L series.

    Like Sharpe, but divides by the downside deviation: the root mean square
    shortfall of the observations below the per-period risk-free rate.

    Returns:
        Sortino ratio; 0 with fewer than 2 observations, or fewer than 2
        downside observations, or zero downside deviation
    """
    n = len(pnls)
    if n < 2:
        return 0.0
    rf = _per_period_rate(risk_free_rate)
    downside = [pnl - rf for pnl in pnls if pnl < rf]
    if len(downside) < 2:
        return 0.0
    downside_dev = math.sqrt(sum(d**2 for d in downside) / len(downside))
    if downside_dev == 0:
        return 0.0
    mean = sum(pnls) / n
    return (mean - rf) / downside_dev * math.sqrt(min(TRADING_DAYS_PER_YEAR, n))


def calculate_max_drawdown(pnls: Sequence[float], starting_equity: float = 0.0) -> float:
    """
    Largest decline from peak equity, in percent.

    Equity starts at ``starting_equity`` and moves by each P&L in order.
    While the peak is not positive there is nothing to draw down from.

    Example:
        >>> calculate_max_drawdown([100, -50, 25])
        50.0
    """
    start_units = to_units(starting_equity)
    equity = start_units
    peak = start_units
    max_dd = 0.0
    for pnl in pnls:
        equity += to_units(pnl)
        if equity > peak:
            peak = equity
        if peak > 0:
            max_dd = max(max_dd, (peak - equity) / peak * 100)
    return max_dd


def calculate_streaks(pnls: Sequence[float]) -> tuple[int, int]:
    """
    Longest winning and losing runs, in order.

    A zero-P&L trade ends both runs.

    Returns:
        (best_streak, worst_streak)
    """
    best = worst = current_win = current_loss = 0
    for pnl in pnls:
        units = to_units(pnl)
        if units > 0:
            current_win += 1
            current_loss = 0
            best = max(best, current_win)
        elif units < 0:
            current_loss += 1
            current_win = 0
            worst = max(worst, current_loss)
        else:
            current_win = current_loss = 0
    return best, worst


def calculate_median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2


def calculate_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Pearson correlation; 0 for mismatched, short or constant series."""
    n = len(xs)
    if n < 2 or n != len(ys):
        return 0.0
    mean_x = sum(xs) / n
    mean_y = sum(ys) / n
    cov = var_x = var_y = 0.0
    for x, y in zip(xs, ys):
        dx = x - mean_x
        dy = y - mean_y
        cov += dx * dy
        var_x += dx * dx
        var_y += dy * dy
    denom = math.sqrt(var_x * var_y)
    return cov / denom if denom > 0 else 0.0
