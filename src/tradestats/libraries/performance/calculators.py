"""Stateful performance calculators for incremental updates.

Calculators maintain state and update as each trade is visited, so the
engine can build the whole report in a single pass. Monetary state is held
in integer units and converted to floats only when read.

Usage:
    >>> from tradestats.libraries.performance.calculators import StreakCalculator
    >>> calc = StreakCalculator()
    >>> for units in (100, 250, -50):
    ...     calc.update(units)
    >>> calc.best_streak, calc.worst_streak
    (2, 1)
"""

from collections import defaultdict
from datetime import date, datetime

from tradestats.libraries.money import SafeAccumulator, from_units, safe_sum, to_units
from tradestats.libraries.performance.metrics import (
    calculate_correlation,
    calculate_median,
    calculate_sharpe_ratio,
)
from tradestats.libraries.performance.models import (
    DAY_NAMES,
    CategoryStats,
    DailyPnl,
    DayOfWeekStats,
    DurationBucket,
    DurationStats,
    EquityPoint,
    HourStats,
    RollingWindow,
)

ROLLING_WINDOWS = {"7d": 7, "30d": 30, "90d": 90}

DURATION_BINS: tuple[tuple[str, float, float], ...] = (
    ("< 5m", 0, 5),
    ("5-15m", 5, 15),
    ("15-30m", 15, 30),
    ("30-60m", 30, 60),
    ("1-4h", 60, 240),
    ("4h-1d", 240, 1440),
    ("1d+", 1440, float("inf")),
)


def _win_rate(wins: int, count: int) -> float:
    return wins / count * 100 if count else 0.0


class EquityCurveCalculator:
    """
    Tracks running equity, peak and drawdown trade by trade.

    Drawdown is (peak - equity) / peak in percent and stays at zero while
    the peak is not positive.
    """

    def __init__(self, starting_equity_units: int = 0) -> None:
        self._start = starting_equity_units
        self._equity = starting_equity_units
        self._peak = starting_equity_units
        self._max_drawdown_pct = 0.0
        self._points: list[EquityPoint] = []

    def update(self, timestamp: datetime | None, pnl_units: int) -> float:
        """Apply one trade and return the drawdown after it."""
        self._equity += pnl_units
        if self._equity > self._peak:
            self._peak = self._equity

        drawdown = (self._peak - self._equity) / self._peak * 100 if self._peak > 0 else 0.0
        if drawdown > self._max_drawdown_pct:
            self._max_drawdown_pct = drawdown

        self._points.append(
            EquityPoint(
                date=timestamp,
                pnl=from_units(pnl_units),
                cumulative=from_units(self._equity - self._start),
                drawdown_pct=drawdown,
            )
        )
        return drawdown

    @property
    def points(self) -> list[EquityPoint]:
        return list(self._points)

    @property
    def max_drawdown_pct(self) -> float:
        return self._max_drawdown_pct

    @property
    def peak_equity(self) -> float:
        return from_units(self._peak)

    @property
    def equity(self) -> float:
        return from_units(self._equity)

    def __len__(self) -> int:
        return len(self._points)


class StreakCalculator:
    """Longest consecutive wins and losses. A flat trade breaks both runs."""

    def __init__(self) -> None:
        self._current_wins = 0
        self._current_losses = 0
        self.best_streak = 0
        self.worst_streak = 0

    def update(self, pnl_units: int) -> None:
        if pnl_units > 0:
            self._current_wins += 1
            self._current_losses = 0
            self.best_streak = max(self.best_streak, self._current_wins)
        elif pnl_units < 0:
            self._current_losses += 1
            self._current_wins = 0
            self.worst_streak = max(self.worst_streak, self._current_losses)
        else:
            self._current_wins = 0
            self._current_losses = 0


class TradeStatisticsCalculator:
    """
    Running trade aggregates in integer units.

    Tracks totals, win/loss counts and sums, extremes, R-multiples and rule
    breaks.
    """

    def __init__(self) -> None:
        self.total_pnl = SafeAccumulator()
        self.total_fees = SafeAccumulator()
        self.gross_profit = SafeAccumulator()
        self.gross_loss = SafeAccumulator()
        self._largest_win_units = 0
        self._largest_loss_units = 0
        self._r_sum = 0.0
        self._r_count = 0
        self.rule_breaks = 0

    def add_trade(self, pnl_units: int, fees_units: int, r_multiple: float | None, rule_break: bool) -> None:
        self.total_pnl.add_units(pnl_units)
        self.total_fees.add_units(fees_units)

        if pnl_units > 0:
            self.gross_profit.add_units(pnl_units)
            self._largest_win_units = max(self._largest_win_units, pnl_units)
        elif pnl_units < 0:
            self.gross_loss.add_units(-pnl_units)
            self._largest_loss_units = min(self._largest_loss_units, pnl_units)

        if r_multiple is not None:
            self._r_sum += r_multiple
            self._r_count += 1

        if rule_break:
            self.rule_breaks += 1

    @property
    def total_trades(self) -> int:
        return self.total_pnl.count

    @property
    def winning_trades(self) -> int:
        return self.gross_profit.count

    @property
    def losing_trades(self) -> int:
        return self.gross_loss.count

    @property
    def win_rate(self) -> float:
        return _win_rate(self.winning_trades, self.total_trades)

    @property
    def avg_win(self) -> float:
        return self.gross_profit.result / self.winning_trades if self.winning_trades else 0.0

    @property
    def avg_loss(self) -> float:
        """Mean losing P&L as a positive number."""
        return self.gross_loss.result / self.losing_trades if self.losing_trades else 0.0

    @property
    def largest_win(self) -> float:
        return from_units(self._largest_win_units)

    @property
    def largest_loss(self) -> float:
        return from_units(self._largest_loss_units)

    @property
    def r_count(self) -> int:
        return self._r_count

    @property
    def avg_r(self) -> float:
        return self._r_sum / self._r_count if self._r_count else 0.0


class _Bucket:
    __slots__ = ("pnl", "wins", "r_sum", "r_count")

    def __init__(self) -> None:
        self.pnl = SafeAccumulator()
        self.wins = 0
        self.r_sum = 0.0
        self.r_count = 0

    def add(self, pnl_units: int, r_multiple: float | None = None) -> None:
        self.pnl.add_units(pnl_units)
        if pnl_units > 0:
            self.wins += 1
        if r_multiple is not None:
            self.r_sum += r_multiple
            self.r_count += 1

    @property
    def count(self) -> int:
        return self.pnl.count

    def to_stats(self) -> CategoryStats:
        return CategoryStats(
            pnl=self.pnl.result,
            count=self.count,
            wins=self.wins,
            win_rate=_win_rate(self.wins, self.count),
            avg_r=self.r_sum / self.r_count if self.r_count else 0.0,
        )


class CategoryCalculator:
    """P&L, count, wins and average R grouped by a string key."""

    def __init__(self) -> None:
        self._buckets: dict[str, _Bucket] = defaultdict(_Bucket)

    def add(self, key: str, pnl_units: int, r_multiple: float | None = None) -> None:
        self._buckets[key].add(pnl_units, r_multiple)

    def to_stats(self) -> dict[str, CategoryStats]:
        return {key: bucket.to_stats() for key, bucket in self._buckets.items()}

    def __len__(self) -> int:
        return len(self._buckets)


class CalendarCalculator:
    """
    Day-of-week (0 = Sunday) and hour-of-day buckets.

    Both breakdowns are always complete: 7 and 24 entries, empty buckets
    included. Also tracks the playbook x weekday matrix.
    """

    def __init__(self) -> None:
        self._days = [_Bucket() for _ in range(7)]
        self._hours = [_Bucket() for _ in range(24)]
        self._playbook_days: dict[str, list[_Bucket]] = {}

    def add(self, timestamp: datetime, pnl_units: int, playbook: str) -> None:
        weekday = (timestamp.weekday() + 1) % 7
        self._days[weekday].add(pnl_units)
        self._hours[timestamp.hour].add(pnl_units)

        if playbook not in self._playbook_days:
            self._playbook_days[playbook] = [_Bucket() for _ in range(7)]
        self._playbook_days[playbook][weekday].add(pnl_units)

    def by_day_of_week(self) -> list[DayOfWeekStats]:
        return [
            DayOfWeekStats(
                day=index,
                name=DAY_NAMES[index],
                pnl=bucket.pnl.result,
                count=bucket.count,
                wins=bucket.wins,
                win_rate=_win_rate(bucket.wins, bucket.count),
            )
            for index, bucket in enumerate(self._days)
        ]

    def by_hour_of_day(self) -> list[HourStats]:
        return [
            HourStats(hour=hour, label=f"{hour}:00", pnl=bucket.pnl.result, count=bucket.count, wins=bucket.wins)
            for hour, bucket in enumerate(self._hours)
        ]

    def by_playbook_day(self) -> dict[str, dict[str, CategoryStats]]:
        return {
            playbook: {DAY_NAMES[index]: bucket.to_stats() for index, bucket in enumerate(days)}
            for playbook, days in self._playbook_days.items()
        }


class DailyPnlCalculator:
    """Aggregates P&L per calendar day; drives the daily curve and rolling windows."""

    def __init__(self) -> None:
        self._days: dict[date, int] = defaultdict(int)

    def add(self, day: date, pnl_units: int) -> None:
        self._days[day] += pnl_units

    def daily_series(self) -> list[DailyPnl]:
        series: list[DailyPnl] = []
        cumulative = 0
        peak = 0
        for day in sorted(self._days):
            cumulative += self._days[day]
            peak = max(peak, cumulative)
            drawdown = (peak - cumulative) / peak * 100 if peak > 0 else 0.0
            series.append(
                DailyPnl(
                    day=day,
                    pnl=from_units(self._days[day]),
                    cumulative=from_units(cumulative),
                    drawdown_pct=drawdown,
                )
            )
        return series

    def rolling_windows(self) -> dict[str, RollingWindow]:
        """Metrics over the last 7, 30 and 90 trading days. Needs at least 2 days."""
        daily = [from_units(self._days[day]) for day in sorted(self._days)]
        windows: dict[str, RollingWindow] = {}
        for label, length in ROLLING_WINDOWS.items():
            if len(daily) < 2:
                windows[label] = RollingWindow()
                continue
            windows[label] = _rolling_window(daily[-length:])
        return windows

    def __len__(self) -> int:
        return len(self._days)


def _rolling_window(window: list[float]) -> RollingWindow:
    n = len(window)
    wins = [pnl for pnl in window if pnl > 0]
    losses = [-pnl for pnl in window if pnl < 0]
    avg_win = sum(wins) / len(wins) if wins else 0.0
    avg_loss = sum(losses) / len(losses) if losses else 0.0
    return RollingWindow(
        pnl=safe_sum(window),
        win_rate=len(wins) / n * 100,
        expectancy=len(wins) / n * avg_win - len(losses) / n * avg_loss,
        sharpe=calculate_sharpe_ratio(window),
        days=n,
    )


class DurationCalculator:
    """Hold-time distribution and its correlation with P&L."""

    MIN_CORRELATION_SAMPLES = 5

    def __init__(self) -> None:
        self._durations: list[float] = []
        self._pnls: list[float] = []

    def add(self, minutes: float, pnl: float) -> None:
        self._durations.append(minutes)
        self._pnls.append(pnl)

    def to_stats(self) -> DurationStats:
        n = len(self._durations)
        if n == 0:
            return DurationStats()

        buckets = [_Bucket() for _ in DURATION_BINS]
        for minutes, pnl in zip(self._durations, self._pnls):
            for bucket, (_, low, high) in zip(buckets, DURATION_BINS):
                if low <= minutes < high:
                    bucket.add(to_units(pnl))
                    break

        correlation = 0.0
        if n >= self.MIN_CORRELATION_SAMPLES:
            correlation = calculate_correlation(self._durations, self._pnls)

        return DurationStats(
            avg_minutes=sum(self._durations) / n,
            median_minutes=calculate_median(self._durations),
            buckets=[
                DurationBucket(
                    label=label,
                    pnl=bucket.pnl.result,
                    count=bucket.count,
                    wins=bucket.wins,
                    avg_pnl=bucket.pnl.result / bucket.count if bucket.count else 0.0,
                    win_rate=_win_rate(bucket.wins, bucket.count),
                )
                for bucket, (label, _, _) in zip(buckets, DURATION_BINS)
            ],
            correlation=correlation,
            count=n,
        )
