"""Risk simulation data models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RuinEstimate(BaseModel):
    """
    Outcome of a Monte Carlo risk-of-ruin simulation.

    Percentiles describe the distribution of simulated final P&L (equity
    at ruin for ruined paths). With no simulation every field is zero.
    """

    model_config = ConfigDict(frozen=True)

    ror: float = Field(default=0.0, ge=0.0, le=100.0)
    p10: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    runs: int = 0
    seq_len: int = 0
    account_size: float = 0.0
    avg_days_to_pass: float | None = None


LimitType = Literal["pct", "abs"]


class PropFirmProfile(BaseModel):
    """
    Rules of a prop firm evaluation.

    Limits and the profit target are either absolute dollars ("abs") or a
    percentage of the account size ("pct"). A limit of 0 disables that rule;
    evaluation_days of 0 means the evaluation has no deadline.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", alias_generator=to_camel, populate_by_name=True)

    account_size: float = Field(gt=0)
    daily_loss_limit: float = Field(default=0.0, ge=0)
    daily_loss_type: LimitType = "abs"
    max_drawdown: float = Field(default=0.0, ge=0)
    max_drawdown_type: LimitType = "abs"
    profit_target: float = Field(default=0.0, ge=0)
    profit_target_type: LimitType = "abs"
    evaluation_days: int = Field(default=0, ge=0)
    min_trading_days: int = Field(default=0, ge=0)
    trailing_dd: bool = Field(default=True, description="Drawdown trails the equity high instead of the start balance")

    def _absolute(self, value: float, kind: LimitType) -> float:
        return self.account_size * value / 100 if kind == "pct" else value

    @property
    def daily_loss_abs(self) -> float:
        return self._absolute(self.daily_loss_limit, self.daily_loss_type)

    @property
    def max_drawdown_abs(self) -> float:
        return self._absolute(self.max_drawdown, self.max_drawdown_type)

    @property
    def profit_target_abs(self) -> float:
        return self._absolute(self.profit_target, self.profit_target_type)


class EvaluationState(BaseModel):
    """Progress of an evaluation so far. Unset equity values default to the account size."""

    model_config = ConfigDict(frozen=True, extra="ignore", alias_generator=to_camel, populate_by_name=True)

    cum_pnl: float = 0.0
    current_equity: float | None = None
    equity_high: float | None = None
    days_traded: int = Field(default=0, ge=0)
    calendar_days: int = Field(default=0, ge=0)


class PropFirmPrediction(BaseModel):
    """
    Monte Carlo outlook of a prop firm evaluation.

    Every run ends passed, failed, or still active when the remaining days
    run out, so the three rates add up to 100 (up to rounding).
    """

    model_config = ConfigDict(frozen=True)

    pass_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    fail_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    active_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    runs: int = 0
    confidence: Literal["low", "medium", "high"] = "low"
    avg_days_to_pass: int = 0
    median_final_pnl: float = 0.0
    pnl_distribution: list[float] = Field(default_factory=list, description="Final P&L at each tenth of the sorted runs")
    p10: float = 0.0
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    insufficient: bool = False
