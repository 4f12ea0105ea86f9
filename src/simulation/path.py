"""Single-path cash balance simulator."""

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence

import numpy as np

from src.core.exceptions import SimulationConfigError
from src.simulation.models import BaselineProfile, OneTimeImpact, PathResult


@dataclass(frozen=True)
class ExpenseShock:
    """
    Random one-off expense added on top of the regular daily expense.

    Fires with `probability` on any given day; its size is then drawn
    uniformly from [minimum, maximum].
    """

    probability: float = 0.02
    minimum: float = 100.0
    maximum: float = 2000.0

    def __post_init__(self):
        if not 0.0 <= self.probability <= 1.0:
            raise SimulationConfigError(f"Shock probability must be in [0, 1], got {self.probability}")
        if self.maximum < self.minimum:
            raise SimulationConfigError("Shock maximum must be >= minimum")


class PathSimulator:
    """
    Simulates one randomized daily-balance trajectory.

    Per day: income ~ max(0, N(mu, sigma)), expense ~ max(0, N(mu, sigma))
    plus an occasional shock, plus any one-time impact dated that day.
    The first day the balance is <= 0 fixes the runway.
    """

    def __init__(self, shock: Optional[ExpenseShock] = None):
        self.shock = shock or ExpenseShock()

    def impact_schedule(
        self,
        impacts: Iterable[OneTimeImpact],
        horizon_days: int,
        start_date: date,
    ) -> np.ndarray:
        """
        Spread one-time impacts over the simulated days.

        Element `d - 1` holds the net impact on day `d` (start_date + d days).
        Impacts outside the horizon are ignored.
        """
        schedule = np.zeros(horizon_days, dtype=float)
        for impact in impacts:
            day = (impact.date - start_date).days
            if 1 <= day <= horizon_days:
                schedule[day - 1] += impact.amount
        return schedule

    def simulate(
        self,
        baseline: BaselineProfile,
        horizon_days: int,
        one_time_impacts: Optional[Sequence[OneTimeImpact]] = None,
        rng: Optional[np.random.Generator] = None,
        start_date: Optional[date] = None,
        impact_schedule: Optional[np.ndarray] = None,
    ) -> PathResult:
        """
        Simulate a single path.

        Args:
            baseline: Profile supplying balance, means and std devs
            horizon_days: Number of days to simulate
            one_time_impacts: Dated impacts (default: baseline.one_time_impacts)
            rng: Generator for this path (default: fresh unseeded generator)
            start_date: Day 0 of the simulation (default: today)
            impact_schedule: Precomputed output of impact_schedule(), reused
                across paths of one run

        Returns:
            PathResult for this trajectory
        """
        if horizon_days < 1:
            raise SimulationConfigError(f"horizon_days must be >= 1, got {horizon_days}")

        rng = rng if rng is not None else np.random.default_rng()

        if impact_schedule is None:
            impacts = baseline.one_time_impacts if one_time_impacts is None else one_time_impacts
            impact_schedule = self.impact_schedule(impacts, horizon_days, start_date or date.today())

        income = np.maximum(
            0.0,
            rng.normal(baseline.daily_income_mean, max(baseline.daily_income_std_dev, 0.0), horizon_days),
        )
        expense = np.maximum(
            0.0,
            rng.normal(baseline.daily_expense_mean, max(baseline.daily_expense_std_dev, 0.0), horizon_days),
        )

        # Shock draws are always consumed so every path uses its stream identically
        fires = rng.random(horizon_days) < self.shock.probability
        sizes = rng.uniform(self.shock.minimum, self.shock.maximum, horizon_days)
        expense = expense + np.where(fires, sizes, 0.0)

        net = income - expense + impact_schedule

        balances = np.empty(horizon_days + 1, dtype=float)
        balances[0] = baseline.current_balance
        balances[1:] = baseline.current_balance + np.cumsum(net)

        exhausted = np.flatnonzero(balances[1:] <= 0.0)
        hit_zero = exhausted.size > 0
        runway_days = int(exhausted[0]) + 1 if hit_zero else horizon_days

        return PathResult(
            daily_balances=balances,
            final_balance=float(balances[-1]),
            runway_days=runway_days,
            hit_zero=hit_zero,
            min_balance=float(balances.min()),
            max_balance=float(balances.max()),
        )

    def simulate_batch(
        self,
        baseline: BaselineProfile,
        horizon_days: int,
        generators: Sequence[np.random.Generator],
        start_date: Optional[date] = None,
    ) -> List[PathResult]:
        """Simulate one path per generator, sharing the impact schedule."""
        schedule = self.impact_schedule(
            baseline.one_time_impacts, horizon_days, start_date or date.today()
        )
        return [
            self.simulate(baseline, horizon_days, rng=rng, impact_schedule=schedule)
            for rng in generators
        ]
