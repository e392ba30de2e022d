"""Tests for the single-pass analytics engine."""

import math
import random
import sys

import numpy as np
import pytest

from tradestats.libraries.performance import AnalyticsSettings, Trade, compute_analytics
from tradestats.libraries.performance.engine import MIN_SAMPLES, coerce_settings, coerce_trades
from tradestats.libraries.performance.metrics import (
    calculate_max_drawdown,
    calculate_profit_factor,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_streaks,
    calculate_win_rate,
)


def _metrics(result):
    return {k: v for k, v in result.model_dump().items() if k != "insights"}


class TestScenarios:
    """Known trade sets with known answers."""

    def test_ten_trade_scenario(self, undated_ten_trades):
        # Act
        result = compute_analytics(undated_ten_trades, {"mcRuns": 0})

        # Assert
        assert result.trade_count == 10
        assert result.total_pnl == 1570
        assert result.win_count == 5
        assert result.loss_count == 5
        assert result.win_rate == 50
        assert result.avg_win == 430.0
        assert result.avg_loss == 116.0
        assert result.pf == pytest.approx(2150 / 580)
        assert result.ror == 0

    def test_single_trade_scenario(self):
        result = compute_analytics([{"pnl": 500}], {"mcRuns": 0})

        assert result.win_rate == 100
        assert result.pf == math.inf
        assert result.avg_loss == 0
        assert result.best_streak == 1
        assert result.worst_streak == 0
        assert result.kelly == 0.0
        assert result.rr == 0.0
        assert result.expectancy_r == 0.0

    def test_all_positive(self):
        result = compute_analytics([{"pnl": 100}, {"pnl": 50}, {"pnl": 25}])

        assert result.pf == math.inf
        assert result.max_dd == 0.0
        assert math.isfinite(result.sortino)

    def test_all_negative(self):
        result = compute_analytics([{"pnl": -100}, {"pnl": -50}])

        assert result.pf == 0.0
        assert result.win_rate == 0.0
        assert result.kelly == 0.0
        assert result.max_dd == 0.0
        assert result.worst_streak == 2

    def test_flat_trades_are_neither_wins_nor_losses(self):
        result = compute_analytics([{"pnl": 0}, {"pnl": 0}])

        assert result.win_count == 0
        assert result.loss_count == 0
        assert result.pf == 0.0


class TestEmptyInput:
    def test_none(self):
        assert compute_analytics(None) is None

    def test_empty_list(self):
        assert compute_analytics([]) is None

    def test_only_non_trades(self):
        assert compute_analytics(["junk", 42]) is None


class TestInvariants:
    """Properties that hold for any input."""

    def test_seven_days_and_twenty_four_hours(self, ten_trades):
        result = compute_analytics(ten_trades)

        assert len(result.by_day_of_week) == 7
        assert len(result.by_hour_of_day) == 24
        assert sum(d.count for d in result.by_day_of_week) == 10

    def test_undated_trades_still_have_complete_buckets(self, undated_ten_trades):
        result = compute_analytics(undated_ten_trades)

        assert len(result.by_day_of_week) == 7
        assert len(result.by_hour_of_day) == 24
        assert sum(h.count for h in result.by_hour_of_day) == 0

    def test_no_nan_anywhere(self, ten_trades):
        result = compute_analytics(ten_trades)

        for key in ("win_rate", "avg_win", "avg_loss", "expectancy", "expectancy_r", "kelly", "sharpe", "sortino", "max_dd", "ror"):
            assert math.isfinite(getattr(result, key)), key

    def test_total_pnl_has_no_drift(self):
        trades = [{"pnl": 0.1}] * 1000 + [{"pnl": 0.2}] * 1000

        result = compute_analytics(trades)

        assert result.total_pnl == 300.0

    def test_order_independent(self, ten_trades):
        shuffled = list(ten_trades)
        random.Random(3).shuffle(shuffled)

        assert _metrics(compute_analytics(shuffled)) == _metrics(compute_analytics(ten_trades))

    def test_deterministic_without_simulation(self, ten_trades):
        first = compute_analytics(ten_trades, {"mcRuns": 0})
        second = compute_analytics(ten_trades, {"mcRuns": 0})

        assert first == second

    def test_input_trades_not_mutated(self, ten_trades):
        snapshot = [dict(t) for t in ten_trades]

        compute_analytics(ten_trades)

        assert ten_trades == snapshot


class TestOrdering:
    def test_equity_curve_follows_dates(self):
        trades = [
            {"id": "b", "date": "2024-03-05T10:00:00Z", "pnl": -50},
            {"id": "a", "date": "2024-03-04T10:00:00Z", "pnl": 100},
            {"id": "c", "pnl": 10},
        ]

        result = compute_analytics(trades)

        assert [p.cumulative for p in result.equity_curve] == [100.0, 50.0, 60.0]
        assert result.equity_curve[-1].date is None
        assert result.max_dd == 50.0

    def test_account_size_is_starting_equity(self):
        result = compute_analytics([{"pnl": -100}], {"accountSize": 1000})
        assert result.max_dd == pytest.approx(10.0)

    def test_timezone_moves_day_bucket(self):
        # 02:00 UTC Tuesday is still Monday evening in New York
        trades = [{"date": "2024-03-05T02:00:00Z", "pnl": 10}]

        utc = compute_analytics(trades)
        ny = compute_analytics(trades, {"timezone": "America/New_York"})

        assert utc.by_day_of_week[2].count == 1
        assert ny.by_day_of_week[1].count == 1
        assert ny.by_hour_of_day[21].count == 1


class TestBreakdowns:
    def test_by_strategy_and_untagged(self, ten_trades):
        trades = ten_trades + [{"pnl": 5}]

        result = compute_analytics(trades)

        assert set(result.by_strategy) == {"breakout", "reversal", "untagged"}
        assert result.by_strategy["breakout"].count == 5
        assert result.by_strategy["breakout"].pnl == 2150.0
        assert result.by_strategy["reversal"].pnl == -580.0

    def test_by_symbol_is_upper_cased(self):
        result = compute_analytics([{"symbol": "es", "pnl": 1}, {"symbol": "ES", "pnl": 2}])
        assert result.by_symbol["ES"].count == 2

    def test_expectancy_r_uses_r_multiples_when_present(self):
        result = compute_analytics([{"pnl": 100, "rMultiple": 2}, {"pnl": -50, "rMultiple": -1}])

        assert result.expectancy_r == 0.5
        assert result.avg_r == 0.5

    def test_expectancy_r_falls_back_to_avg_loss(self):
        result = compute_analytics([{"pnl": 300}, {"pnl": -100}])

        # expectancy 100 / avg loss 100
        assert result.expectancy_r == pytest.approx(1.0)
        assert result.rr == pytest.approx(3.0)

    def test_rolling_and_daily(self, ten_trades):
        result = compute_analytics(ten_trades)

        assert len(result.daily_pnl) == 10
        assert result.daily_pnl[-1].cumulative == 1570.0
        assert set(result.rolling) == {"7d", "30d", "90d"}
        assert result.rolling["7d"].days == 7


class TestWarnings:
    """Small samples and malformed input are reported, not raised."""

    def test_small_sample_warnings(self, undated_ten_trades):
        result = compute_analytics(undated_ten_trades)

        metrics = {w.metric for w in result.warnings}
        assert "kelly" not in metrics  # 10 trades is enough
        assert {"sharpe", "sortino"} <= metrics
        assert "monte_carlo" not in metrics

    def test_monte_carlo_warning_only_when_simulating(self, undated_ten_trades):
        result = compute_analytics(undated_ten_trades, {"mcRuns": 50, "seed": 1})

        assert any(w.metric == "monte_carlo" for w in result.warnings)

    def test_no_warnings_with_enough_trades(self):
        trades = [{"pnl": 100 if i % 3 else -40} for i in range(MIN_SAMPLES["monte_carlo"])]

        result = compute_analytics(trades, {"mcRuns": 10, "seed": 1})

        assert result.warnings == []

    def test_malformed_input_warning(self):
        result = compute_analytics([{"pnl": "oops"}, {"pnl": 10}, "not a trade"])

        assert result.trade_count == 2
        input_warnings = [w for w in result.warnings if w.metric == "input"]
        assert len(input_warnings) == 1
        assert "1 trade(s)" in input_warnings[0].reason
        assert "1 item(s)" in input_warnings[0].reason

    @pytest.mark.parametrize("supplied", [5, ["pnl"], "garbage"])
    def test_issues_key_in_trade_input_is_ignored(self, supplied):
        result = compute_analytics([{"pnl": 5, "issues": supplied}, {"pnl": -2}])

        assert result.total_pnl == 3.0
        assert all(w.metric != "input" for w in result.warnings)

    def test_huge_pnl_is_kept_and_flagged(self):
        result = compute_analytics([{"pnl": 1e20}, {"pnl": 1e20}])

        assert result.total_pnl == 2e20
        assert "precision" in {w.metric for w in result.warnings}

    def test_pnl_beyond_float_range_saturates(self):
        result = compute_analytics([{"pnl": 1e308}, {"pnl": 1e308}])

        assert result.total_pnl == sys.float_info.max
        assert result.win_count == 2


class TestMonteCarloIntegration:
    def test_mc_runs_zero_means_no_ror(self):
        losing = [{"pnl": -500}] * 40

        result = compute_analytics(losing, {"mcRuns": 0})

        assert result.ror == 0
        assert result.risk.runs == 0

    def test_seeded_simulation_is_reproducible(self, ten_trades):
        settings = {"mcRuns": 200, "seed": 42}

        first = compute_analytics(ten_trades, settings)
        second = compute_analytics(ten_trades, settings)

        assert first.ror == second.ror
        assert first.risk == second.risk
        assert 0 <= first.ror <= 100

    def test_explicit_rng(self, ten_trades):
        a = compute_analytics(ten_trades, {"mcRuns": 100}, rng=np.random.default_rng(7))
        b = compute_analytics(ten_trades, {"mcRuns": 100}, rng=np.random.default_rng(7))

        assert a.risk == b.risk


class TestCoercion:
    def test_coerce_settings(self):
        settings = AnalyticsSettings(mc_runs=3)
        assert coerce_settings(settings) is settings
        assert coerce_settings(None) == AnalyticsSettings()
        assert coerce_settings({"mcRuns": 3}).mc_runs == 3

    def test_coerce_trades_counts_skipped(self):
        trades, skipped = coerce_trades([Trade(pnl=1), {"pnl": 2}, None, 5])

        assert len(trades) == 2
        assert skipped == 2


class TestMatchesReferenceMetrics:
    """The single pass agrees exactly with the one-metric-per-pass reference functions."""

    @pytest.mark.parametrize("seed", range(300))
    def test_random_series(self, seed):
        # Arrange
        rng = random.Random(seed)
        size = rng.randint(1, 60)
        pnls = [rng.choice((0, rng.randint(-50_000, 50_000))) / 100 for _ in range(size)]
        risk_free_rate = rng.choice((0.0, 0.04))

        # Act
        result = compute_analytics([{"pnl": pnl} for pnl in pnls], {"riskFreeRate": risk_free_rate})

        # Assert
        assert result.win_rate == calculate_win_rate(pnls)
        assert result.pf == calculate_profit_factor(pnls)
        assert result.max_dd == calculate_max_drawdown(pnls)
        assert (result.best_streak, result.worst_streak) == calculate_streaks(pnls)
        assert result.sharpe == calculate_sharpe_ratio(pnls, risk_free_rate)
        assert result.sortino == calculate_sortino_ratio(pnls, risk_free_rate)
