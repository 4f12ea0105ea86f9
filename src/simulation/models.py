"""Runway simulation data models."""

from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from src.core.constants import MONTHLY_FREQUENCY_FACTORS


def _utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class FlowType(Enum):
    """Direction of a cash flow series."""

    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True)
class OneTimeImpact:
    """A dated, signed cash event layered on top of the stochastic flows.

    Positive amounts are inflows, negative amounts are outflows.
    """

    date: date
    amount: float
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "amount": self.amount,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OneTimeImpact":
        raw_date = data["date"]
        if isinstance(raw_date, str):
            raw_date = date.fromisoformat(raw_date[:10])
        elif isinstance(raw_date, datetime):
            raw_date = raw_date.date()
        return cls(
            date=raw_date,
            amount=float(data["amount"]),
            description=data.get("description", ""),
        )


@dataclass
class RecurringItem:
    """An active recurring income or expense."""

    id: str
    kind: FlowType
    amount: float
    frequency: Optional[str] = "monthly"
    name: str = ""

    def monthly_estimate(self) -> float:
        """Estimate the monthly amount; unknown frequencies use the raw amount."""
        factor = MONTHLY_FREQUENCY_FACTORS.get((self.frequency or "").lower())
        if factor is None:
            return self.amount
        return self.amount * factor


@dataclass
class BaselineProfile:
    """
    Financial profile a simulation starts from.

    Means and standard deviations are per-day amounts derived from recent
    history, or from recurring items when history is sparse.
    """

    current_balance: float
    daily_expense_mean: float
    daily_expense_std_dev: float
    daily_income_mean: float
    daily_income_std_dev: float
    monthly_recurring_expense: float = 0.0
    monthly_recurring_income: float = 0.0
    recurring_items: List[RecurringItem] = field(default_factory=list)
    one_time_impacts: List[OneTimeImpact] = field(default_factory=list)

    @property
    def net_daily_burn(self) -> float:
        """Expected daily outflow net of income."""
        return self.daily_expense_mean - self.daily_income_mean

    def copy(self, **changes) -> "BaselineProfile":
        """Return a copy with the given fields replaced."""
        changes.setdefault("recurring_items", list(self.recurring_items))
        changes.setdefault("one_time_impacts", list(self.one_time_impacts))
        return replace(self, **changes)


@dataclass
class ScenarioAdjustments:
    """What-if adjustments applied to a baseline."""

    income_change_pct: Optional[float] = None
    expense_change_pct: Optional[float] = None
    one_time_impacts: List[OneTimeImpact] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "income_change_pct": self.income_change_pct,
            "expense_change_pct": self.expense_change_pct,
            "one_time_impacts": [i.to_dict() for i in self.one_time_impacts],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScenarioAdjustments":
        return cls(
            income_change_pct=data.get("income_change_pct"),
            expense_change_pct=data.get("expense_change_pct"),
            one_time_impacts=[OneTimeImpact.from_dict(i) for i in data.get("one_time_impacts", [])],
        )


@dataclass
class ScenarioConfig:
    """Simulation settings stored with a scenario."""

    iteration_count: Optional[int] = None
    time_horizon_days: Optional[int] = None


@dataclass
class Scenario:
    """
    A named what-if scenario owned by an account.

    `last_run_at` and `last_result_snapshot` are written by simulation runs
    and read by the alert path to decide whether a fresh run is needed.
    """

    id: str
    account_id: str
    name: str
    adjustments: ScenarioAdjustments = field(default_factory=ScenarioAdjustments)
    config: ScenarioConfig = field(default_factory=ScenarioConfig)
    is_default: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    last_run_at: Optional[datetime] = None
    last_result_snapshot: Optional["ResultSnapshot"] = None

    def snapshot_age_hours(self, now: Optional[datetime] = None) -> Optional[float]:
        """Hours since the last run, or None if it never ran."""
        if self.last_run_at is None:
            return None
        now = now or _utcnow()
        return (now - self.last_run_at).total_seconds() / 3600


@dataclass(frozen=True, eq=False)
class PathResult:
    """One simulated daily-balance trajectory.

    `daily_balances[0]` is the starting balance; `runway_days` equals the
    horizon when `hit_zero` is False (censored, not "never exhausts").
    """

    daily_balances: np.ndarray
    final_balance: float
    runway_days: int
    hit_zero: bool
    min_balance: float
    max_balance: float


@dataclass(frozen=True)
class Band:
    """A statistic evaluated over both the runway and final-balance samples."""

    runway: float
    final_balance: float


@dataclass(frozen=True)
class ConfidenceIntervals:
    """Percentile bands and tail-risk measures over all simulated paths."""

    p10: Band
    p25: Band
    p50: Band
    p75: Band
    p90: Band
    mean: Band
    std_dev: Band
    exhaustion_probability: float
    var95: Band
    cvar95: Band

    def percentile(self, level: int) -> Band:
        """Look up a percentile band by level (10, 25, 50, 75, 90)."""
        return getattr(self, f"p{level}")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BurnRate:
    daily: float
    weekly: float
    monthly: float


@dataclass(frozen=True)
class RunwaySummary:
    pessimistic: float   # P10
    likely: float        # P50
    optimistic: float    # P90
    mean: float
    uncertainty: float   # std dev


@dataclass(frozen=True)
class EndBalanceSummary:
    pessimistic: float
    likely: float
    optimistic: float
    mean: float


@dataclass(frozen=True)
class RiskMetrics:
    exhaustion_probability: float
    value_at_risk: float
    expected_shortfall: float


@dataclass(frozen=True)
class SimulationParams:
    iterations: int
    horizon_days: int
    expense_volatility: int   # std dev as % of mean
    income_volatility: int


@dataclass(frozen=True)
class SimulationSummary:
    """Headline numbers for one simulation run."""

    current_balance: float
    burn_rate: BurnRate
    runway: RunwaySummary
    end_balance: EndBalanceSummary
    risk_metrics: RiskMetrics
    simulation_params: SimulationParams

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class FanChartPoint:
    """Percentile bands of the simulated balance on one day."""

    day: int
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    mean: float


@dataclass(frozen=True)
class HistogramBin:
    min: float
    max: float
    count: int
    frequency: float


@dataclass(frozen=True)
class SimulationMetadata:
    iterations: int
    horizon_days: int
    scenario_id: Optional[str]
    calculated_at: datetime
    baseline_balance: float


@dataclass(frozen=True)
class ResultSnapshot:
    """The persisted subset of a result kept on a scenario."""

    summary: SimulationSummary
    confidence_intervals: ConfidenceIntervals
    calculated_at: datetime

    def to_dict(self) -> dict:
        return {
            "summary": self.summary.to_dict(),
            "confidence_intervals": self.confidence_intervals.to_dict(),
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass(frozen=True)
class SimulationResult:
    """
    Complete output of a Monte Carlo run.

    Immutable once produced; shared by the result cache, scenario snapshots
    and the alert path.
    """

    summary: SimulationSummary
    confidence_intervals: ConfidenceIntervals
    fan_chart: Tuple[FanChartPoint, ...]
    histograms: Mapping[str, Tuple[HistogramBin, ...]]
    metadata: SimulationMetadata

    def __post_init__(self):
        histograms = {name: tuple(bins) for name, bins in self.histograms.items()}
        object.__setattr__(self, "histograms", MappingProxyType(histograms))

    def snapshot(self) -> ResultSnapshot:
        """Extract the part of the result stored on a scenario."""
        return ResultSnapshot(
            summary=self.summary,
            confidence_intervals=self.confidence_intervals,
            calculated_at=self.metadata.calculated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage or transport."""
        metadata = asdict(self.metadata)
        metadata["calculated_at"] = self.metadata.calculated_at.isoformat()
        return {
            "summary": self.summary.to_dict(),
            "confidence_intervals": self.confidence_intervals.to_dict(),
            "fan_chart": [asdict(p) for p in self.fan_chart],
            "histograms": {
                name: [asdict(b) for b in bins] for name, bins in self.histograms.items()
            },
            "metadata": metadata,
        }


@dataclass(frozen=True)
class StressTestResult:
    """Summary of one adverse stress scenario."""

    scenario: str
    summary: SimulationSummary
