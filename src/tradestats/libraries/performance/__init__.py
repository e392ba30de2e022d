"""Performance analytics library for closed-trade analysis.

1. **Models** (`models.py`): Pydantic data structures
   - Trade, AnalyticsSettings: lenient inputs
   - AnalyticsResult: complete report with breakdowns and warnings

2. **Metrics** (`metrics.py`): Pure calculation functions
   - Trade stats: win_rate, profit_factor, expectancy, streaks
   - Sizing: Kelly (discrete and continuous)
   - Risk-adjusted: Sharpe, Sortino, max drawdown

3. **Calculators** (`calculators.py`): Stateful incremental calculators
   - EquityCurveCalculator, StreakCalculator, TradeStatisticsCalculator
   - CalendarCalculator, CategoryCalculator, DailyPnlCalculator, DurationCalculator

4. **Engine** (`engine.py`): compute_analytics(), the single-pass pipeline

Usage:
    >>> from tradestats.libraries.performance import compute_analytics
    >>> result = compute_analytics([{"id": "1", "pnl": 500}], {"mcRuns": 0})
    >>> result.win_rate, result.pf
    (100.0, inf)
"""

from tradestats.libraries.performance.calculators import (
    CalendarCalculator,
    CategoryCalculator,
    DailyPnlCalculator,
    DurationCalculator,
    EquityCurveCalculator,
    StreakCalculator,
    TradeStatisticsCalculator,
)
from tradestats.libraries.performance.engine import (
    MIN_SAMPLES,
    coerce_settings,
    coerce_trades,
    compute_analytics,
)
from tradestats.libraries.performance.metrics import (
    calculate_correlation,
    calculate_expectancy,
    calculate_kelly,
    calculate_kelly_continuous,
    calculate_max_drawdown,
    calculate_median,
    calculate_profit_factor,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_streaks,
    calculate_win_rate,
)
from tradestats.libraries.performance.models import (
    AnalyticsResult,
    AnalyticsSettings,
    CategoryStats,
    DailyPnl,
    DayOfWeekStats,
    DurationStats,
    EquityPoint,
    HourStats,
    Insight,
    MetricWarning,
    RollingWindow,
    Trade,
)

__all__ = [
    # Calculators
    "CalendarCalculator",
    "CategoryCalculator",
    "DailyPnlCalculator",
    "DurationCalculator",
    "EquityCurveCalculator",
    "StreakCalculator",
    "TradeStatisticsCalculator",
    # Engine
    "MIN_SAMPLES",
    "coerce_settings",
    "coerce_trades",
    "compute_analytics",
    # Metrics
    "calculate_correlation",
    "calculate_expectancy",
    "calculate_kelly",
    "calculate_kelly_continuous",
    "calculate_max_drawdown",
    "calculate_median",
    "calculate_profit_factor",
    "calculate_sharpe_ratio",
    "calculate_sortino_ratio",
    "calculate_streaks",
    "calculate_win_rate",
    # Models
    "AnalyticsResult",
    "AnalyticsSettings",
    "CategoryStats",
    "DailyPnl",
    "DayOfWeekStats",
    "DurationStats",
    "EquityPoint",
    "HourStats",
    "Insight",
    "MetricWarning",
    "RollingWindow",
    "Trade",
]
