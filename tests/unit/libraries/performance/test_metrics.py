"""Tests for performance metrics calculations."""

import math

import pytest

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

PNLS = [500, -200, 300, -100, 700, -50, 400, -150, 250, -80]


class TestTradeMetrics:
    """Test win rate, profit factor and expectancy."""

    def test_win_rate(self):
        assert calculate_win_rate(PNLS) == 50.0

    def test_win_rate_empty(self):
        assert calculate_win_rate([]) == 0.0

    def test_win_rate_flat_trade_is_not_a_win(self):
        assert calculate_win_rate([0, 100]) == 50.0

    def test_profit_factor(self):
        # 2150 gross profit / 580 gross loss
        assert calculate_profit_factor(PNLS) == pytest.approx(2150 / 580)

    def test_profit_factor_no_losses_is_infinite(self):
        assert calculate_profit_factor([100, 50]) == math.inf

    def test_profit_factor_no_wins_is_zero(self):
        assert calculate_profit_factor([-100, -5]) == 0.0
        assert calculate_profit_factor([]) == 0.0

    def test_profit_factor_has_no_float_drift(self):
        assert calculate_profit_factor([0.1, 0.2, -0.3]) == 1.0

    def test_expectancy(self):
        # 0.5 * 430 - 0.5 * 116
        result = calculate_expectancy(50.0, 430.0, 116.0)
        assert result == pytest.approx(157.0)

    def test_expectancy_all_losers(self):
        assert calculate_expectancy(0.0, 0.0, 100.0) == -100.0


class TestKelly:
    """Test Kelly sizing fractions."""

    def test_kelly_discrete(self):
        # p=0.6, b=2 -> 0.6 - 0.4/2
        assert calculate_kelly(60.0, 200.0, 100.0) == pytest.approx(0.4)

    def test_kelly_negative_edge_clamped_to_zero(self):
        assert calculate_kelly(30.0, 100.0, 100.0) == 0.0

    def test_kelly_zero_avg_loss(self):
        assert calculate_kelly(100.0, 500.0, 0.0) == 0.0

    def test_kelly_never_above_one(self):
        assert calculate_kelly(99.9, 1_000_000.0, 0.01) <= 1.0

    def test_kelly_continuous(self):
        # mean 1, sample variance 400/3
        pnls = [11, -9, 11, -9]
        assert calculate_kelly_continuous(pnls) == pytest.approx(1 / (400 / 3))

    def test_kelly_continuous_degenerate(self):
        assert calculate_kelly_continuous([5]) == 0.0
        assert calculate_kelly_continuous([5, 5, 5]) == 0.0

    def test_kelly_continuous_negative_mean(self):
        assert calculate_kelly_continuous([-10, 5, -10]) == 0.0


class TestRiskAdjusted:
    """Test Sharpe and Sortino over a per-trade series."""

    def test_sharpe_zero_for_short_series(self):
        assert calculate_sharpe_ratio([100]) == 0.0
        assert calculate_sharpe_ratio([]) == 0.0

    def test_sharpe_zero_for_constant_series(self):
        assert calculate_sharpe_ratio([100, 100, 100]) == 0.0

    def test_sharpe_value(self):
        pnls = [1.0, 3.0]
        # mean 2, sample std sqrt(2), scaled by sqrt(2)
        assert calculate_sharpe_ratio(pnls) == pytest.approx(2.0)

    def test_sharpe_risk_free_rate_lowers_ratio(self):
        assert calculate_sharpe_ratio(PNLS, 0.05) < calculate_sharpe_ratio(PNLS, 0.0)

    def test_sharpe_scaling_capped_at_252(self):
        pnls = [1.0, 3.0] * 200
        n = len(pnls)
        mean = 2.0
        std = math.sqrt(sum((p - mean) ** 2 for p in pnls) / (n - 1))
        assert calculate_sharpe_ratio(pnls) == pytest.approx(mean / std * math.sqrt(252))

    def test_sortino_needs_two_downside_observations(self):
        assert calculate_sortino_ratio([100, 200, -50]) == 0.0

    def test_sortino_value(self):
        pnls = [10.0, -2.0, 10.0, -4.0]
        downside_dev = math.sqrt((4 + 16) / 2)
        expected = 3.5 / downside_dev * 2
        assert calculate_sortino_ratio(pnls) == pytest.approx(expected)

    def test_sortino_finite_for_all_positive(self):
        result = calculate_sortino_ratio([10, 20, 30])
        assert result == 0.0
        assert math.isfinite(result)


class TestDrawdownAndStreaks:
    """Test drawdown and streak calculations."""

    def test_max_drawdown(self):
        assert calculate_max_drawdown([100, -50, 25]) == 50.0

    def test_max_drawdown_with_starting_equity(self):
        assert calculate_max_drawdown([-100], starting_equity=1000) == pytest.approx(10.0)

    def test_max_drawdown_no_positive_peak(self):
        assert calculate_max_drawdown([-100, -50]) == 0.0

    def test_max_drawdown_monotonic_gains(self):
        assert calculate_max_drawdown([10, 20, 30]) == 0.0

    def test_streaks(self):
        assert calculate_streaks([1, 1, 1, -1, -1, 1]) == (3, 2)

    def test_streaks_flat_trade_breaks_runs(self):
        assert calculate_streaks([1, 1, 0, 1, -1, 0, -1]) == (2, 1)

    def test_streaks_empty(self):
        assert calculate_streaks([]) == (0, 0)


class TestHelpers:
    def test_median_odd_and_even(self):
        assert calculate_median([3, 1, 2]) == 2.0
        assert calculate_median([4, 1, 2, 3]) == 2.5
        assert calculate_median([]) == 0.0

    def test_correlation(self):
        assert calculate_correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
        assert calculate_correlation([1, 2, 3], [6, 4, 2]) == pytest.approx(-1.0)

    def test_correlation_degenerate(self):
        assert calculate_correlation([1, 1, 1], [1, 2, 3]) == 0.0
        assert calculate_correlation([1, 2], [1]) == 0.0
