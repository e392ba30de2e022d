"""Monte Carlo prediction of a prop firm evaluation.

Each run continues the evaluation from its current state for the remaining
days. On a trading day (70% of days) it draws one historical daily P&L with
replacement; a run fails on the first day that breaches the daily loss limit
or the max drawdown, and passes on the first day the cumulative P&L reaches
the target with enough trading days behind it. A failure on the same day as
the target counts as a failure. Runs that do neither are still active.

Usage:
    >>> import numpy as np
    >>> profile = PropFirmProfile(account_size=50_000, max_drawdown=2_000, profit_target=3_000)
    >>> outlook = predict_prop_firm([400, -250, 600, -300], None, profile, runs=1000, rng=np.random.default_rng(1))
    >>> round(outlook.pass_rate + outlook.fail_rate + outlook.active_rate)
    100
"""

from typing import Any, Mapping, Sequence

import numpy as np

from tradestats.libraries.money import round_money
from tradestats.libraries.risk.models import EvaluationState, PropFirmPrediction, PropFirmProfile
from tradestats.libraries.risk.monte_carlo import _BATCH_CELLS

DEFAULT_RUNS = 5_000
TRADE_DAY_PROBABILITY = 0.7
# Days simulated when the evaluation has no deadline.
UNLIMITED_REMAINING_DAYS = 60
MIN_HISTORY = 3
DISTRIBUTION_BUCKETS = 10
CONFIDENCE_SAMPLES = {"high": 30, "medium": 15}


def _confidence(samples: int) -> str:
    if samples >= CONFIDENCE_SAMPLES["high"]:
        return "high"
    if samples >= CONFIDENCE_SAMPLES["medium"]:
        return "medium"
    return "low"


def _at_fraction(ordered: np.ndarray, fraction: float) -> float:
    return round_money(float(ordered[int(fraction * ordered.size)]))


def predict_prop_firm(
    pnls: Sequence[float],
    state: EvaluationState | Mapping[str, Any] | None,
    profile: PropFirmProfile | Mapping[str, Any],
    runs: int = DEFAULT_RUNS,
    *,
    rng: np.random.Generator | None = None,
) -> PropFirmPrediction:
    """
    Estimate pass, fail and still-active rates of an evaluation.

    Args:
        pnls: Historical daily P&L; zero days are not sampled
        state: Progress so far (None for a fresh evaluation)
        profile: Evaluation rules
        runs: Number of simulated continuations
        rng: numpy Generator; pass a seeded one for reproducible results

    Returns:
        PropFirmPrediction; ``insufficient`` is set when there are fewer than
        3 days of history, fewer than 2 non-zero days, or no runs
    """
    rules = profile if isinstance(profile, PropFirmProfile) else PropFirmProfile.model_validate(dict(profile))
    if state is None:
        progress = EvaluationState()
    elif isinstance(state, EvaluationState):
        progress = state
    else:
        progress = EvaluationState.model_validate(dict(state))

    values = np.asarray(pnls, dtype=float)
    values = values[np.isfinite(values)]
    samples = values[values != 0]
    if runs <= 0 or values.size < MIN_HISTORY or samples.size < 2:
        return PropFirmPrediction(insufficient=True)

    start_equity = progress.current_equity if progress.current_equity is not None else rules.account_size
    start_high = progress.equity_high if progress.equity_high is not None else rules.account_size
    if rules.evaluation_days > 0:
        days = max(1, rules.evaluation_days - progress.calendar_days)
    else:
        days = UNLIMITED_REMAINING_DAYS

    daily_limit = rules.daily_loss_abs
    max_dd = rules.max_drawdown_abs
    target = rules.profit_target_abs
    generator = rng if rng is not None else np.random.default_rng()

    batch_size = max(1, _BATCH_CELLS // days)
    passed_total = failed_total = 0
    pass_days: list[np.ndarray] = []
    finals: list[np.ndarray] = []

    remaining = runs
    while remaining > 0:
        batch = min(batch_size, remaining)
        remaining -= batch

        trading = generator.random((batch, days)) < TRADE_DAY_PROBABILITY
        day_pnl = np.where(trading, samples[generator.integers(0, samples.size, size=(batch, days))], 0.0)
        moved = np.cumsum(day_pnl, axis=1)
        cum_pnl = progress.cum_pnl + moved
        equity = start_equity + moved
        high = np.maximum.accumulate(np.maximum(equity, start_high), axis=1)
        traded = progress.days_traded + np.cumsum(trading, axis=1)

        breach = np.zeros((batch, days), dtype=bool)
        if daily_limit > 0:
            breach |= -day_pnl >= daily_limit
        if max_dd > 0:
            drawdown = high - equity if rules.trailing_dd else rules.account_size - equity
            breach |= drawdown >= max_dd
        breach &= trading

        if target > 0:
            hit = trading & (cum_pnl >= target) & (traded >= rules.min_trading_days)
        else:
            hit = np.zeros((batch, days), dtype=bool)

        first_fail = np.where(breach.any(axis=1), breach.argmax(axis=1), days)
        first_pass = np.where(hit.any(axis=1), hit.argmax(axis=1), days)
        passed = first_pass < first_fail
        failed = first_fail <= first_pass
        failed &= first_fail < days

        passed_total += int(passed.sum())
        failed_total += int(failed.sum())
        pass_days.append(first_pass[passed] + 1)

        end_index = np.minimum(np.minimum(first_fail, first_pass), days - 1)
        finals.append(cum_pnl[np.arange(batch), end_index])

    ordered = np.sort(np.concatenate(finals))
    days_to_pass = np.concatenate(pass_days)
    active_total = runs - passed_total - failed_total

    return PropFirmPrediction(
        pass_rate=round(passed_total / runs * 100, 1),
        fail_rate=round(failed_total / runs * 100, 1),
        active_rate=round(active_total / runs * 100, 1),
        runs=runs,
        confidence=_confidence(int(samples.size)),
        avg_days_to_pass=int(round(float(days_to_pass.mean()))) if days_to_pass.size else 0,
        median_final_pnl=_at_fraction(ordered, 0.5),
        pnl_distribution=[_at_fraction(ordered, i / DISTRIBUTION_BUCKETS) for i in range(DISTRIBUTION_BUCKETS)],
        p10=_at_fraction(ordered, 0.10),
        p25=_at_fraction(ordered, 0.25),
        p50=_at_fraction(ordered, 0.50),
        p75=_at_fraction(ordered, 0.75),
        p90=_at_fraction(ordered, 0.90),
    )
