"""Performance analytics data models.

Pydantic models for trades going into the analytics engine and the report
coming out of it. Input models are lenient: they accept camelCase or
snake_case keys, ignore unknown keys and replace malformed values with
documented defaults instead of raising. Replaced fields are recorded in
``Trade.issues`` so the engine can surface an input warning.
"""

import math
from datetime import date, datetime, timezone
from typing import Any, Iterable, Literal, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ModelWrapValidatorHandler,
    PrivateAttr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from tradestats.libraries.risk.models import RuinEstimate

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
UNTAGGED = "untagged"


def parse_number(value: Any) -> float | None:
    """Finite float from a number or numeric string, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _to_datetime(value: Any) -> datetime | None:
    """Parse ISO strings, dates, datetimes and epoch milliseconds."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def _first_present(values: Mapping[str, Any], *keys: str) -> tuple[str | None, Any]:
    for key in keys:
        if key in values:
            return key, values[key]
    return None, None


class Trade(BaseModel):
    """
    A closed trade as seen by the analytics engine.

    Immutable: the engine reads trades, never mutates them.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = ""
    date: datetime | None = None
    close_date: datetime | None = None
    symbol: str = ""
    side: Literal["long", "short"] = "long"
    pnl: float = 0.0
    fees: float = 0.0
    playbook: str | None = None
    emotion: str | None = None
    r_multiple: float | None = None
    rule_break: bool = False
    asset_class: str | None = None
    entry: float | None = None
    exit: float | None = None
    qty: float | None = None

    _issues: tuple[str, ...] = PrivateAttr(default=())

    @model_validator(mode="wrap")
    @classmethod
    def _coerce_malformed(cls, data: Any, handler: ModelWrapValidatorHandler["Trade"]) -> "Trade":
        if not isinstance(data, Mapping):
            return handler(data)
        values, issues = cls._coerce_values(data)
        trade = handler(values)
        trade._issues = issues
        return trade

    @staticmethod
    def _coerce_values(data: Mapping[str, Any]) -> tuple[dict[str, Any], tuple[str, ...]]:
        values = dict(data)
        values.pop("issues", None)
        issues: list[str] = []

        for keys in (("date",), ("close_date", "closeDate")):
            key, raw = _first_present(values, *keys)
            if key is None or raw is None or raw == "":
                if key is not None:
                    values[key] = None
                continue
            parsed = _to_datetime(raw)
            if parsed is None:
                issues.append(keys[0])
            values[key] = parsed

        for field in ("pnl", "fees"):
            if field in values:
                number = parse_number(values[field])
                if number is None:
                    if values[field] is not None and values[field] != "":
                        issues.append(field)
                    number = 0.0
                values[field] = number

        for keys in (("r_multiple", "rMultiple"), ("entry",), ("exit",), ("qty",)):
            key, raw = _first_present(values, *keys)
            if key is not None:
                values[key] = parse_number(raw)

        if values.get("id") is None:
            values.pop("id", None)
        else:
            values["id"] = str(values["id"])

        side = values.get("side")
        values["side"] = side.lower() if isinstance(side, str) and side.lower() in ("long", "short") else "long"

        rule_key, rule_break = _first_present(values, "rule_break", "ruleBreak")
        if rule_key is None and "followedRules" in values:
            values["rule_break"] = not values["followedRules"]
        elif rule_key is not None:
            values[rule_key] = bool(rule_break)

        for keys in (("symbol",), ("playbook",), ("emotion",), ("asset_class", "assetClass")):
            key, raw = _first_present(values, *keys)
            if key is not None and raw is not None and not isinstance(raw, str):
                values[key] = str(raw)

        if values.get("symbol") is None:
            values["symbol"] = ""

        return values, tuple(dict.fromkeys(issues))

    @property
    def issues(self) -> tuple[str, ...]:
        """Fields whose malformed input was replaced by a default."""
        return self._issues

    def with_issues(self, issues: Iterable[str]) -> "Trade":
        """Copy of this trade with additional fields flagged as malformed."""
        trade = self.model_copy()
        trade._issues = tuple(dict.fromkeys((*self._issues, *issues)))
        return trade

    @property
    def is_winner(self) -> bool:
        return self.pnl > 0

    @property
    def duration_minutes(self) -> float | None:
        """Hold time in minutes, when both open and close are known and ordered."""
        if self.date is None or self.close_date is None:
            return None
        try:
            seconds = (self.close_date - self.date).total_seconds()
        except TypeError:
            return None
        return seconds / 60 if seconds > 0 else None


class AnalyticsSettings(BaseModel):
    """
    Every option the engine recognizes, with its default.

    Invalid values are clamped to the nearest valid value rather than rejected.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    mc_runs: int = 0
    risk_free_rate: float = 0.0
    mc_seq_len: int | None = None
    ruin_dd_threshold: float = 0.30
    account_size: float | None = None
    profit_target: float | None = None
    seed: int | None = None
    timezone: str | None = None

    @field_validator("mc_runs", mode="before")
    @classmethod
    def _clamp_runs(cls, value: Any) -> int:
        number = parse_number(value)
        return max(0, int(number)) if number is not None else 0

    @field_validator("mc_seq_len", mode="before")
    @classmethod
    def _clamp_seq_len(cls, value: Any) -> int | None:
        number = parse_number(value)
        return int(number) if number is not None and number >= 1 else None

    @field_validator("risk_free_rate", mode="before")
    @classmethod
    def _clamp_rate(cls, value: Any) -> float:
        number = parse_number(value)
        return max(0.0, number) if number is not None else 0.0

    @field_validator("ruin_dd_threshold", mode="before")
    @classmethod
    def _clamp_threshold(cls, value: Any) -> float:
        number = parse_number(value)
        if number is None or number <= 0:
            return 0.30
        return min(number, 1.0)

    @field_validator("account_size", "profit_target", mode="before")
    @classmethod
    def _positive_or_none(cls, value: Any) -> float | None:
        number = parse_number(value)
        return number if number is not None and number > 0 else None

    @field_validator("seed", mode="before")
    @classmethod
    def _seed_or_none(cls, value: Any) -> int | None:
        number = parse_number(value)
        return int(number) if number is not None and number >= 0 else None

    @field_validator("timezone", mode="before")
    @classmethod
    def _known_timezone(cls, value: Any) -> str | None:
        if not isinstance(value, str) or not value:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            return None
        return value

    def settings_key(self) -> str:
        """Stable key for cache comparisons; ordering of input keys does not matter."""
        return self.model_dump_json()


class MetricWarning(BaseModel):
    """A metric computed from a sample too small (or too dirty) to trust."""

    model_config = ConfigDict(frozen=True)

    metric: str
    reason: str


class EquityPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime | None
    pnl: float
    cumulative: float
    drawdown_pct: float


class DailyPnl(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    pnl: float
    cumulative: float
    drawdown_pct: float


class DayOfWeekStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: int  # 0 = Sunday
    name: str
    pnl: float = 0.0
    count: int = 0
    wins: int = 0
    win_rate: float = 0.0


class HourStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    hour: int
    label: str
    pnl: float = 0.0
    count: int = 0
    wins: int = 0


class CategoryStats(BaseModel):
    """Aggregate for one playbook, emotion, symbol or asset class."""

    model_config = ConfigDict(frozen=True)

    pnl: float = 0.0
    count: int = 0
    wins: int = 0
    win_rate: float = 0.0
    avg_r: float = 0.0


class DurationBucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    pnl: float = 0.0
    count: int = 0
    wins: int = 0
    avg_pnl: float = 0.0
    win_rate: float = 0.0


class DurationStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    avg_minutes: float = 0.0
    median_minutes: float = 0.0
    buckets: list[DurationBucket] = Field(default_factory=list)
    correlation: float = 0.0
    count: int = 0


class RollingWindow(BaseModel):
    """Metrics over the most recent N trading days."""

    model_config = ConfigDict(frozen=True)

    pnl: float = 0.0
    win_rate: float = 0.0
    expectancy: float = 0.0
    sharpe: float = 0.0
    days: int = 0


class Insight(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["positive", "warning", "info"]
    message: str


class AnalyticsResult(BaseModel):
    """
    Complete analytics report for a trade set.

    Replaced wholesale on every accepted computation, never patched.
    ``pf`` is the only field allowed to be infinite.
    """

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="strings")

    # Core
    trade_count: int
    total_pnl: float
    total_fees: float
    win_count: int
    loss_count: int
    win_rate: float
    avg_win: float
    avg_loss: float
    largest_win: float = 0.0
    largest_loss: float = 0.0
    rr: float = 0.0
    pf: float
    expectancy: float
    expectancy_r: float
    avg_r: float = 0.0
    rule_breaks: int = 0

    # Sizing and risk-adjusted
    kelly: float
    kelly_continuous: float = 0.0
    sharpe: float
    sortino: float
    max_dd: float
    ror: float
    risk: RuinEstimate = Field(default_factory=RuinEstimate)
    cons_loss_3: float = 0.0
    cons_loss_5: float = 0.0

    # Streaks
    best_streak: int
    worst_streak: int

    # Curves
    equity_curve: list[EquityPoint] = Field(default_factory=list)
    daily_pnl: list[DailyPnl] = Field(default_factory=list)
    rolling: dict[str, RollingWindow] = Field(default_factory=dict)

    # Breakdowns
    by_day_of_week: list[DayOfWeekStats]
    by_hour_of_day: list[HourStats]
    by_strategy: dict[str, CategoryStats] = Field(default_factory=dict)
    by_emotion: dict[str, CategoryStats] = Field(default_factory=dict)
    by_symbol: dict[str, CategoryStats] = Field(default_factory=dict)
    by_asset_class: dict[str, CategoryStats] = Field(default_factory=dict)
    by_playbook_day: dict[str, dict[str, CategoryStats]] = Field(default_factory=dict)
    duration: DurationStats = Field(default_factory=DurationStats)

    insights: list[Insight] = Field(default_factory=list)
    warnings: list[MetricWarning] = Field(default_factory=list)

    @field_validator("by_day_of_week")
    @classmethod
    def _seven_days(cls, value: list[DayOfWeekStats]) -> list[DayOfWeekStats]:
        if len(value) != 7:
            raise ValueError(f"by_day_of_week must have 7 entries, got {len(value)}")
        return value

    @field_validator("by_hour_of_day")
    @classmethod
    def _twenty_four_hours(cls, value: list[HourStats]) -> list[HourStats]:
        if len(value) != 24:
            raise ValueError(f"by_hour_of_day must have 24 entries, got {len(value)}")
        return value
