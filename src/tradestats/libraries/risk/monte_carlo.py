"""Monte Carlo risk of ruin.

Bootstrap resampling of a historical P&L sequence: every run draws P&Ls with
replacement, walks the resulting equity path and checks it against the ruin
rules (equity at or below zero, or a drawdown from peak at or beyond the
threshold). Runs are simulated in vectorised batches with numpy.

Usage:
    >>> import numpy as np
    >>> estimate = simulate_ruin([500, -200, 300], runs=1000, rng=np.random.default_rng(7))
    >>> 0 <= estimate.ror <= 100
    True
"""

from typing import Sequence

import numpy as np

from tradestats.libraries.money import round_money
from tradestats.libraries.risk.models import RuinEstimate

DEFAULT_RUIN_DD = 0.30
MIN_ACCOUNT_PROXY = 1000.0
AVG_LOSS_MULTIPLE = 20

# Upper bound on runs * steps held in memory per batch.
_BATCH_CELLS = 1_000_000


def account_proxy(pnls: Sequence[float]) -> float:
    """
    Starting equity used when the real account size is unknown.

    Large enough to absorb twenty average losses on top of the absolute
    historical total, and never below 1000.
    """
    values = np.asarray(pnls, dtype=float)
    losses = values[values < 0]
    avg_loss = float(-losses.mean()) if losses.size else 0.0
    return max(MIN_ACCOUNT_PROXY, abs(float(values.sum())) + avg_loss * AVG_LOSS_MULTIPLE)


def simulate_ruin(
    pnls: Sequence[float],
    runs: int,
    *,
    seq_len: int | None = None,
    ruin_dd_threshold: float = DEFAULT_RUIN_DD,
    account_size: float | None = None,
    profit_target: float | None = None,
    rng: np.random.Generator | None = None,
) -> RuinEstimate:
    """
    Estimate the probability of ruin by resampling historical P&L.

    Args:
        pnls: Historical per-trade P&L
        runs: Number of simulated paths; 0 skips the simulation (ror = 0)
        seq_len: Steps per path (default: length of the history)
        ruin_dd_threshold: Drawdown from peak, as a fraction, that counts as ruin
        account_size: Starting equity (default: account_proxy(pnls))
        profit_target: Cumulative P&L that counts as passing; enables avg_days_to_pass
        rng: numpy Generator; pass a seeded one for reproducible results

    Returns:
        RuinEstimate with ror in [0, 100]
    """
    values = np.asarray(pnls, dtype=float)
    values = values[np.isfinite(values)]
    if runs <= 0 or values.size == 0:
        return RuinEstimate()

    n = values.size
    steps = seq_len if seq_len and seq_len > 0 else n
    start = float(account_size) if account_size and account_size > 0 else account_proxy(values)
    threshold = min(max(ruin_dd_threshold, 1e-9), 1.0)
    generator = rng if rng is not None else np.random.default_rng()

    batch_size = max(1, _BATCH_CELLS // steps)
    ruined_total = 0
    finals: list[np.ndarray] = []
    pass_days: list[np.ndarray] = []

    remaining = runs
    while remaining > 0:
        batch = min(batch_size, remaining)
        remaining -= batch

        samples = values[generator.integers(0, n, size=(batch, steps))]
        paths = start + np.cumsum(samples, axis=1)
        peaks = np.maximum.accumulate(np.maximum(paths, start), axis=1)
        drawdowns = (peaks - paths) / peaks

        breaches = (paths <= 0) | (drawdowns >= threshold)
        ruined = breaches.any(axis=1)
        first_breach = np.where(ruined, breaches.argmax(axis=1), steps)
        ruined_total += int(ruined.sum())

        end_index = np.minimum(first_breach, steps - 1)
        finals.append(paths[np.arange(batch), end_index] - start)

        if profit_target is not None and profit_target > 0:
            hits = (paths - start) >= profit_target
            reached = hits.any(axis=1)
            first_hit = np.where(reached, hits.argmax(axis=1), steps)
            passed = reached & (first_hit < first_breach)
            pass_days.append(first_hit[passed] + 1)

    final_pnl = np.concatenate(finals)
    p10, p50, p90 = np.percentile(final_pnl, [10, 50, 90])
    ror = min(100.0, max(0.0, ruined_total / runs * 100))

    avg_days_to_pass: float | None = None
    if pass_days:
        days = np.concatenate(pass_days)
        if days.size:
            avg_days_to_pass = float(days.mean())

    return RuinEstimate(
        ror=ror,
        p10=round_money(float(p10)),
        p50=round_money(float(p50)),
        p90=round_money(float(p90)),
        runs=runs,
        seq_len=steps,
        account_size=round_money(start),
        avg_days_to_pass=avg_days_to_pass,
    )


def consecutive_loss_probability(loss_rate: float, streak: int) -> float:
    """
    Probability, in percent, that any given run of trades is `streak` losses in a row.

    Example:
        >>> consecutive_loss_probability(0.5, 3)
        12.5
    """
    if streak <= 0:
        return 100.0
    rate = min(max(loss_rate, 0.0), 1.0)
    return rate**streak * 100
