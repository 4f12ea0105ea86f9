"""Monte Carlo simulation orchestrator.

Gathers an account's baseline profile, layers scenario adjustments on top,
runs independent paths on a thread pool and aggregates them into percentile
bands, tail-risk measures, a fan chart and histograms.
"""

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional

import numpy as np

from config.settings import Settings, get_settings
from src.core.constants import DAYS_PER_MONTH, DAYS_PER_WEEK, STRESS_SCENARIOS
from src.core.exceptions import BaselineDataError, SimulationConfigError
from src.data.cache.result_cache import CacheKeys, ResultCache
from src.data.interfaces import Ledger, RecurringItemSource
from src.simulation import statistics
from src.simulation.models import (
    BaselineProfile,
    BurnRate,
    ConfidenceIntervals,
    EndBalanceSummary,
    FlowType,
    PathResult,
    RiskMetrics,
    RunwaySummary,
    Scenario,
    ScenarioAdjustments,
    ScenarioConfig,
    SimulationMetadata,
    SimulationParams,
    SimulationResult,
    SimulationSummary,
    StressTestResult,
)
from src.simulation.path import ExpenseShock, PathSimulator
from src.simulation.rng import NumpyRandomSource, RandomSource

logger = logging.getLogger(__name__)


def _round2(value: float) -> float:
    return round(float(value), 2)


def _volatility_pct(std_dev: float, mean: float) -> int:
    """Std dev as a whole percentage of the mean (0 when the mean is 0)."""
    if not mean:
        return 0
    return int(round(std_dev / mean * 100))


class SimulationOrchestrator:
    """
    Runs Monte Carlo runway simulations for accounts.

    Paths are statistically independent and each gets its own generator
    from the random source, so they are dispatched to a thread pool in
    chunks without affecting the aggregate output.
    """

    def __init__(
        self,
        ledger: Ledger,
        recurring_items: RecurringItemSource,
        settings: Optional[Settings] = None,
        random_source: Optional[RandomSource] = None,
        path_simulator: Optional[PathSimulator] = None,
        cache: Optional[ResultCache] = None,
        executor: Optional[Executor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            ledger: Source of balances and daily aggregates
            recurring_items: Source of active recurring items
            settings: Application settings
            random_source: Per-path generator source (default: unseeded PCG64)
            path_simulator: Path simulator (default: shocks from settings)
            cache: Result cache (default: TTL/size from settings)
            executor: Executor for path chunks (default: owned thread pool)
            clock: Returns the current UTC time
        """
        self.settings = settings or get_settings()
        self.ledger = ledger
        self.recurring_items = recurring_items
        self.random_source = random_source or NumpyRandomSource()
        self.path_simulator = path_simulator or PathSimulator(
            ExpenseShock(
                probability=self.settings.expense_shock_probability,
                minimum=self.settings.expense_shock_min,
                maximum=self.settings.expense_shock_max,
            )
        )
        self.cache = cache or ResultCache(
            ttl_seconds=self.settings.result_cache_ttl_seconds,
            max_size=self.settings.result_cache_max_size,
        )
        self._executor = executor
        self._owns_executor = executor is None
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.settings.simulation_workers,
                thread_name_prefix="runway-sim",
            )
        return self._executor

    # ========== BASELINE ==========

    async def gather_baseline(self, account_id: str) -> BaselineProfile:
        """
        Build the baseline profile from the last 90 days of activity.

        A flow with fewer than two days of history falls back to its
        recurring estimate / 30 as the mean and mean * volatility as the
        std dev.

        Raises:
            BaselineDataError: If any data source fails
        """
        today = self._clock().date()
        start = today - timedelta(days=self.settings.baseline_lookback_days)

        try:
            (
                balance,
                recurring_expenses,
                recurring_incomes,
                expense_history,
                income_history,
            ) = await asyncio.gather(
                self.ledger.current_balance(account_id),
                self.recurring_items.active_items(account_id, FlowType.EXPENSE),
                self.recurring_items.active_items(account_id, FlowType.INCOME),
                self.ledger.daily_aggregates(account_id, FlowType.EXPENSE, start, today),
                self.ledger.daily_aggregates(account_id, FlowType.INCOME, start, today),
            )
        except Exception as e:
            logger.error(f"Failed to gather baseline for {account_id}: {e}")
            raise BaselineDataError(account_id, str(e)) from e

        monthly_expense = sum(item.monthly_estimate() for item in recurring_expenses)
        monthly_income = sum(item.monthly_estimate() for item in recurring_incomes)

        expense_mean, expense_std = self._flow_moments(
            [d.daily_total for d in expense_history],
            monthly_expense,
            self.settings.expense_volatility,
        )
        income_mean, income_std = self._flow_moments(
            [d.daily_total for d in income_history],
            monthly_income,
            self.settings.income_volatility,
        )

        return BaselineProfile(
            current_balance=float(balance),
            daily_expense_mean=expense_mean,
            daily_expense_std_dev=expense_std,
            daily_income_mean=income_mean,
            daily_income_std_dev=income_std,
            monthly_recurring_expense=monthly_expense,
            monthly_recurring_income=monthly_income,
            recurring_items=[*recurring_expenses, *recurring_incomes],
        )

    @staticmethod
    def _flow_moments(daily_totals: List[float], monthly_recurring: float, volatility: float):
        if len(daily_totals) < 2:
            fallback_mean = monthly_recurring / DAYS_PER_MONTH
            return fallback_mean, fallback_mean * volatility
        return statistics.mean(daily_totals), statistics.std_dev(daily_totals)

    def apply_scenario(self, baseline: BaselineProfile, scenario: Optional[Scenario]) -> BaselineProfile:
        """Scale income/expense means by the scenario's percentage changes."""
        if scenario is None or scenario.adjustments is None:
            return baseline.copy()

        adj = scenario.adjustments
        changes = {"one_time_impacts": list(adj.one_time_impacts)}

        if adj.income_change_pct:
            multiplier = 1 + adj.income_change_pct / 100
            changes["daily_income_mean"] = baseline.daily_income_mean * multiplier
            changes["monthly_recurring_income"] = baseline.monthly_recurring_income * multiplier

        if adj.expense_change_pct:
            multiplier = 1 + adj.expense_change_pct / 100
            changes["daily_expense_mean"] = baseline.daily_expense_mean * multiplier
            changes["monthly_recurring_expense"] = baseline.monthly_recurring_expense * multiplier

        return baseline.copy(**changes)

    # ========== SIMULATION ==========

    def _resolve_options(self, scenario: Optional[Scenario], iterations: Optional[int], horizon_days: Optional[int]):
        config = scenario.config if scenario and scenario.config else ScenarioConfig()
        if iterations is None:
            iterations = config.iteration_count
        if iterations is None:
            iterations = self.settings.default_iterations
        if horizon_days is None:
            horizon_days = config.time_horizon_days
        if horizon_days is None:
            horizon_days = self.settings.default_horizon_days

        if iterations < 1:
            raise SimulationConfigError(f"iterations must be >= 1, got {iterations}")
        if horizon_days < 1:
            raise SimulationConfigError(f"horizon_days must be >= 1, got {horizon_days}")
        return int(iterations), int(horizon_days)

    async def simulate_paths(
        self,
        baseline: BaselineProfile,
        horizon_days: int,
        iterations: int,
        start_date: date,
    ) -> List[PathResult]:
        """Run `iterations` independent paths on the executor, in chunks."""
        generators = self.random_source.path_generators(iterations)
        chunk_size = self.settings.simulation_chunk_size
        chunks = [generators[i:i + chunk_size] for i in range(0, iterations, chunk_size)]

        loop = asyncio.get_running_loop()
        executor = self._get_executor()
        batches = await asyncio.gather(
            *(
                loop.run_in_executor(
                    executor,
                    self.path_simulator.simulate_batch,
                    baseline,
                    horizon_days,
                    chunk,
                    start_date,
                )
                for chunk in chunks
            )
        )
        return [path for batch in batches for path in batch]

    async def run_simulation(
        self,
        account_id: str,
        scenario: Optional[Scenario] = None,
        iterations: Optional[int] = None,
        horizon_days: Optional[int] = None,
        use_cache: bool = True,
    ) -> SimulationResult:
        """
        Run a full Monte Carlo simulation.

        Args:
            account_id: Account to simulate
            scenario: Optional what-if scenario
            iterations: Number of paths (default: scenario config, then settings)
            horizon_days: Days to simulate (default: scenario config, then settings)
            use_cache: Serve from / store into the result cache

        Returns:
            SimulationResult with confidence intervals, summary, fan chart
            and histograms
        """
        iterations, horizon_days = self._resolve_options(scenario, iterations, horizon_days)
        scenario_id = scenario.id if scenario else None

        cache_key = CacheKeys.simulation(
            account_id,
            scenario_id,
            iterations=iterations,
            horizon_days=horizon_days,
            adjustments=scenario.adjustments.to_dict() if scenario and scenario.adjustments else None,
        )
        if use_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Result cache hit for {cache_key}")
                return cached

        logger.info(
            f"Starting simulation: account={account_id}, scenario={scenario_id}, "
            f"{iterations} paths, {horizon_days} days"
        )

        baseline = await self.gather_baseline(account_id)
        adjusted = self.apply_scenario(baseline, scenario)

        now = self._clock()
        paths = await self.simulate_paths(adjusted, horizon_days, iterations, now.date())

        runways = np.fromiter((p.runway_days for p in paths), dtype=float, count=len(paths))
        finals = np.fromiter((p.final_balance for p in paths), dtype=float, count=len(paths))
        reference_days = min(self.settings.exhaustion_reference_days, horizon_days)

        intervals = statistics.confidence_intervals(runways, finals, reference_days)
        summary = self.generate_summary(baseline, adjusted, intervals, iterations, horizon_days)
        fan_chart = statistics.fan_chart(np.vstack([p.daily_balances for p in paths]))
        bins = self.settings.histogram_bins

        result = SimulationResult(
            summary=summary,
            confidence_intervals=intervals,
            fan_chart=fan_chart,
            histograms={
                "runway": statistics.histogram(runways, bins),
                "final_balance": statistics.histogram(finals, bins),
            },
            metadata=SimulationMetadata(
                iterations=iterations,
                horizon_days=horizon_days,
                scenario_id=scenario_id,
                calculated_at=now,
                baseline_balance=baseline.current_balance,
            ),
        )

        if use_cache:
            self.cache.set(cache_key, result)

        logger.info(
            f"Simulation complete: account={account_id}, "
            f"P50 runway={intervals.p50.runway:.0f}d, "
            f"exhaustion={intervals.exhaustion_probability:.2f}%"
        )
        return result

    def generate_summary(
        self,
        baseline: BaselineProfile,
        adjusted: BaselineProfile,
        intervals: ConfidenceIntervals,
        iterations: int,
        horizon_days: int,
    ) -> SimulationSummary:
        """Headline burn rate, runway bands, end balances and risk metrics."""
        burn = adjusted.net_daily_burn

        return SimulationSummary(
            current_balance=_round2(baseline.current_balance),
            burn_rate=BurnRate(
                daily=_round2(burn),
                weekly=_round2(burn * DAYS_PER_WEEK),
                monthly=_round2(burn * DAYS_PER_MONTH),
            ),
            runway=RunwaySummary(
                pessimistic=intervals.p10.runway,
                likely=intervals.p50.runway,
                optimistic=intervals.p90.runway,
                mean=intervals.mean.runway,
                uncertainty=intervals.std_dev.runway,
            ),
            end_balance=EndBalanceSummary(
                pessimistic=intervals.p10.final_balance,
                likely=intervals.p50.final_balance,
                optimistic=intervals.p90.final_balance,
                mean=intervals.mean.final_balance,
            ),
            risk_metrics=RiskMetrics(
                exhaustion_probability=intervals.exhaustion_probability,
                value_at_risk=intervals.var95.final_balance,
                expected_shortfall=intervals.cvar95.final_balance,
            ),
            simulation_params=SimulationParams(
                iterations=iterations,
                horizon_days=horizon_days,
                expense_volatility=_volatility_pct(adjusted.daily_expense_std_dev, adjusted.daily_expense_mean),
                income_volatility=_volatility_pct(adjusted.daily_income_std_dev, adjusted.daily_income_mean),
            ),
        )

    async def quick_simulation(self, account_id: str, iterations: Optional[int] = None) -> SimulationResult:
        """Reduced-iteration, short-horizon run for request-time alert checks."""
        return await self.run_simulation(
            account_id,
            None,
            iterations=iterations or self.settings.quick_iterations,
            horizon_days=self.settings.quick_horizon_days,
        )

    async def run_stress_test(self, account_id: str) -> List[StressTestResult]:
        """
        Run the fixed adverse scenarios for comparison.

        Returns:
            One StressTestResult per scenario, in a fixed order
        """
        results = []

        for name, income_pct, expense_pct in STRESS_SCENARIOS:
            scenario = Scenario(
                id=f"stress:{name}",
                account_id=account_id,
                name=name,
                adjustments=ScenarioAdjustments(
                    income_change_pct=income_pct,
                    expense_change_pct=expense_pct,
                ),
                config=ScenarioConfig(
                    iteration_count=self.settings.stress_test_iterations,
                    time_horizon_days=self.settings.default_horizon_days,
                ),
            )
            result = await self.run_simulation(account_id, scenario)
            results.append(StressTestResult(scenario=name, summary=result.summary))

        return results

    def invalidate(self, account_id: str) -> int:
        """Drop cached results of an account after its financial state changed."""
        return self.cache.delete_prefix(CacheKeys.account_prefix(account_id))

    def close(self) -> None:
        """Shut down the owned thread pool."""
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=True)
            self._executor = None
