"""Pytest configuration and fixtures."""

from datetime import date, datetime, timedelta, timezone
from typing import Callable

import numpy as np
import pytest

from config.settings import Settings
from src.data.memory import (
    InMemoryAccountDirectory,
    InMemoryHealthRecordStore,
    InMemoryLedger,
    InMemoryRecurringItems,
    InMemoryScenarioStore,
)
from src.simulation.models import (
    Band,
    BaselineProfile,
    BurnRate,
    ConfidenceIntervals,
    EndBalanceSummary,
    FlowType,
    RiskMetrics,
    RunwaySummary,
    SimulationMetadata,
    SimulationParams,
    SimulationResult,
    SimulationSummary,
)
from src.simulation.orchestrator import SimulationOrchestrator
from src.simulation.rng import NumpyRandomSource

FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
ACCOUNT_ID = "acct-1"


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def seed_ledger(
    ledger: InMemoryLedger,
    account_id: str,
    today: date,
    balance: float = 1000.0,
    expense: tuple = (50.0, 5.0),
    income: tuple = (40.0, 4.0),
    days: int = 90,
) -> None:
    """Fill `days` of daily income/expense history ending yesterday.

    Daily totals alternate between mean - sd and mean + sd, so an even
    number of days reproduces the (mean, sd) pairs exactly. An opening
    deposit outside the lookback window makes the all-time balance equal
    `balance`.
    """
    signs = np.where(np.arange(days) % 2 == 0, -1.0, 1.0)
    expenses = expense[0] + signs * expense[1]
    incomes = income[0] + signs * income[1]

    for i in range(days):
        on = today - timedelta(days=i + 1)
        ledger.add_transaction(account_id, FlowType.EXPENSE, on, float(expenses[i]))
        ledger.add_transaction(account_id, FlowType.INCOME, on, float(incomes[i]))

    opening = balance - (float(incomes.sum()) - float(expenses.sum()))
    ledger.add_transaction(account_id, FlowType.INCOME, today - timedelta(days=365), opening)


@pytest.fixture
def settings() -> Settings:
    """Settings with expense shocks disabled and no batch pacing."""
    return Settings(
        _env_file=None,
        expense_shock_probability=0.0,
        nightly_batch_delay_seconds=0.0,
        simulation_workers=2,
        simulation_chunk_size=250,
    )


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_baseline() -> BaselineProfile:
    return BaselineProfile(
        current_balance=1000.0,
        daily_expense_mean=50.0,
        daily_expense_std_dev=5.0,
        daily_income_mean=40.0,
        daily_income_std_dev=4.0,
    )


@pytest.fixture
def ledger() -> InMemoryLedger:
    ledger = InMemoryLedger()
    seed_ledger(ledger, ACCOUNT_ID, FIXED_NOW.date())
    return ledger


@pytest.fixture
def recurring_items() -> InMemoryRecurringItems:
    return InMemoryRecurringItems()


@pytest.fixture
def scenario_store() -> InMemoryScenarioStore:
    return InMemoryScenarioStore()


@pytest.fixture
def health_records() -> InMemoryHealthRecordStore:
    return InMemoryHealthRecordStore()


@pytest.fixture
def account_directory() -> InMemoryAccountDirectory:
    directory = InMemoryAccountDirectory()
    directory.add_account(ACCOUNT_ID, FIXED_NOW - timedelta(days=1))
    return directory


@pytest.fixture
def orchestrator(ledger, recurring_items, settings, fixed_clock):
    """Seeded orchestrator over the in-memory ledger."""
    orchestrator = SimulationOrchestrator(
        ledger,
        recurring_items,
        settings=settings,
        random_source=NumpyRandomSource(seed=42),
        clock=fixed_clock,
    )
    yield orchestrator
    orchestrator.close()


@pytest.fixture
def result_factory():
    """Build a SimulationResult with chosen headline statistics."""

    def build(
        p10_runway: float = 90.0,
        p50_runway: float = 90.0,
        p90_runway: float = 90.0,
        exhaustion_probability: float = 0.0,
        current_balance: float = 1000.0,
        expected_shortfall: float = 100.0,
        scenario_id=None,
    ) -> SimulationResult:
        def band(runway, balance=current_balance):
            return Band(runway=runway, final_balance=balance)

        intervals = ConfidenceIntervals(
            p10=band(p10_runway),
            p25=band(p10_runway),
            p50=band(p50_runway),
            p75=band(p90_runway),
            p90=band(p90_runway),
            mean=band(p50_runway),
            std_dev=band(5.0, 50.0),
            exhaustion_probability=exhaustion_probability,
            var95=band(p10_runway, expected_shortfall),
            cvar95=band(p10_runway, expected_shortfall),
        )
        summary = SimulationSummary(
            current_balance=current_balance,
            burn_rate=BurnRate(daily=10.0, weekly=70.0, monthly=300.0),
            runway=RunwaySummary(
                pessimistic=p10_runway,
                likely=p50_runway,
                optimistic=p90_runway,
                mean=p50_runway,
                uncertainty=5.0,
            ),
            end_balance=EndBalanceSummary(
                pessimistic=current_balance,
                likely=current_balance,
                optimistic=current_balance,
                mean=current_balance,
            ),
            risk_metrics=RiskMetrics(
                exhaustion_probability=exhaustion_probability,
                value_at_risk=expected_shortfall,
                expected_shortfall=expected_shortfall,
            ),
            simulation_params=SimulationParams(
                iterations=100, horizon_days=90, expense_volatility=10, income_volatility=10
            ),
        )
        return SimulationResult(
            summary=summary,
            confidence_intervals=intervals,
            fan_chart=(),
            histograms={},
            metadata=SimulationMetadata(
                iterations=100,
                horizon_days=90,
                scenario_id=scenario_id,
                calculated_at=FIXED_NOW,
                baseline_balance=current_balance,
            ),
        )

    return build


@pytest.fixture
def ledger_seeder():
    """Expose seed_ledger to tests that build their own ledgers."""
    return seed_ledger


@pytest.fixture
def account_id() -> str:
    return ACCOUNT_ID
