"""Unit tests for trade fingerprints and settings keys."""

import pytest

from tradestats.libraries.performance.models import AnalyticsSettings, Trade
from tradestats.services.analytics import EMPTY_FINGERPRINT, settings_key, trade_fingerprint


class TestTradeFingerprint:
    def test_format(self):
        trades = [{"id": "a", "pnl": 10.5}, {"id": "m", "pnl": 1}, {"id": "b", "pnl": -3}]

        assert trade_fingerprint(trades) == "3|a|b|850"

    @pytest.mark.parametrize("trades", [None, []])
    def test_empty(self, trades):
        assert trade_fingerprint(trades) == EMPTY_FINGERPRINT

    def test_models_and_mappings_agree(self):
        as_dicts = [{"id": "a", "pnl": 1.25}, {"id": "b", "pnl": 2}]
        as_models = [Trade(id="a", pnl=1.25), Trade(id="b", pnl=2)]

        assert trade_fingerprint(as_dicts) == trade_fingerprint(as_models)

    def test_changes_when_pnl_changes(self, ten_trades):
        before = trade_fingerprint(ten_trades)
        ten_trades[3]["pnl"] = -101

        assert trade_fingerprint(ten_trades) != before

    def test_changes_when_trade_appended(self, ten_trades):
        before = trade_fingerprint(ten_trades)

        assert trade_fingerprint([*ten_trades, {"id": "t11", "pnl": 0}]) != before

    def test_numeric_string_pnl_counts_at_its_value(self):
        as_strings = [{"id": "a", "pnl": "10.5"}, {"id": "b", "pnl": "1,000"}]
        as_numbers = [{"id": "a", "pnl": 10.5}, {"id": "b", "pnl": 1000}]

        assert trade_fingerprint(as_strings) == "2|a|b|101050"
        assert trade_fingerprint(as_strings) == trade_fingerprint(as_numbers)

    def test_changes_when_string_pnl_changes(self):
        before = [{"id": "a", "pnl": "100"}, {"id": "b", "pnl": "50"}]
        after = [{"id": "a", "pnl": "-900"}, {"id": "b", "pnl": "50"}]

        assert trade_fingerprint(before) != trade_fingerprint(after)

    def test_missing_ids_and_pnl(self):
        assert trade_fingerprint([{}, {"pnl": "junk"}]) == "2|||0"

    def test_offsetting_edit_collides(self):
        # Moving P&L between interior trades keeps the total and both end ids.
        before = [{"id": "a", "pnl": 1}, {"id": "x", "pnl": 5}, {"id": "y", "pnl": 5}, {"id": "b", "pnl": 1}]
        after = [{"id": "a", "pnl": 1}, {"id": "x", "pnl": 3}, {"id": "y", "pnl": 7}, {"id": "b", "pnl": 1}]

        assert trade_fingerprint(before) == trade_fingerprint(after)


class TestSettingsKey:
    def test_aliases_and_names_agree(self):
        assert settings_key({"mcRuns": 100, "riskFreeRate": 0.04}) == settings_key(
            {"risk_free_rate": 0.04, "mc_runs": 100}
        )

    def test_model_and_mapping_agree(self):
        assert settings_key(AnalyticsSettings(seed=3)) == settings_key({"seed": 3})

    def test_none_equals_defaults(self):
        assert settings_key(None) == settings_key({})

    def test_different_values_differ(self):
        assert settings_key({"mcRuns": 100}) != settings_key({"mcRuns": 200})

    def test_unknown_keys_ignored(self):
        assert settings_key({"theme": "dark"}) == settings_key({})
