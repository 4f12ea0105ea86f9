"""End-to-end runway forecasts over an in-memory ledger."""

import pytest

from src.alerts import AlertLevel, RunwayAlertGuard
from src.data.memory import InMemoryLedger, InMemoryRecurringItems, InMemoryScenarioStore
from src.simulation.models import Scenario, ScenarioAdjustments
from src.simulation.orchestrator import SimulationOrchestrator
from src.simulation.rng import NumpyRandomSource


@pytest.fixture
def steady_orchestrator(settings, fixed_clock, ledger_seeder):
    """Balance 1000, expense ~50/day, income ~40/day, shocks disabled."""
    ledger = InMemoryLedger()
    ledger_seeder(ledger, "steady", fixed_clock().date())
    orchestrator = SimulationOrchestrator(
        ledger,
        InMemoryRecurringItems(),
        settings=settings,
        random_source=NumpyRandomSource(seed=2026),
        clock=fixed_clock,
    )
    yield orchestrator
    orchestrator.close()


class TestRunwayForecast:
    """Full forecasts through baseline, paths and statistics."""

    @pytest.mark.asyncio
    async def test_steady_burn_has_low_exhaustion(self, steady_orchestrator):
        result = await steady_orchestrator.run_simulation("steady", iterations=5000, horizon_days=90)

        assert result.confidence_intervals.exhaustion_probability < 20.0
        assert result.summary.runway.likely == 90
        assert 0 < result.summary.end_balance.likely < 300

    @pytest.mark.asyncio
    async def test_income_loss_worsens_outlook(self, steady_orchestrator):
        base = await steady_orchestrator.run_simulation("steady", iterations=5000, horizon_days=90)
        income_loss = Scenario(
            id="income-loss",
            account_id="steady",
            name="Lose half of income",
            adjustments=ScenarioAdjustments(income_change_pct=-50.0),
        )
        stressed = await steady_orchestrator.run_simulation(
            "steady", income_loss, iterations=5000, horizon_days=90
        )

        assert stressed.confidence_intervals.exhaustion_probability > base.confidence_intervals.exhaustion_probability
        assert stressed.confidence_intervals.p50.runway < base.confidence_intervals.p50.runway
        assert stressed.confidence_intervals.p50.runway == pytest.approx(34, abs=4)

    @pytest.mark.asyncio
    async def test_identical_seeds_reproduce(self, settings, fixed_clock, ledger_seeder):
        outputs = []
        for _ in range(2):
            ledger = InMemoryLedger()
            ledger_seeder(ledger, "steady", fixed_clock().date())
            orchestrator = SimulationOrchestrator(
                ledger, InMemoryRecurringItems(), settings=settings,
                random_source=NumpyRandomSource(seed=99), clock=fixed_clock,
            )
            outputs.append((await orchestrator.run_simulation("steady", iterations=1000)).to_dict())
            orchestrator.close()

        assert outputs[0] == outputs[1]


class TestAlertsFromForecast:
    """Alert evaluation over real simulation output."""

    @pytest.mark.asyncio
    async def test_steady_account_is_safe(self, steady_orchestrator, settings, fixed_clock):
        guard = RunwayAlertGuard(steady_orchestrator, InMemoryScenarioStore(), settings=settings, clock=fixed_clock)

        alerts = await guard.check_runway_alerts("steady")

        assert alerts.level is AlertLevel.SAFE
        assert alerts.p10_runway == 30

    @pytest.mark.asyncio
    async def test_snapshot_drives_alert(self, steady_orchestrator, settings, fixed_clock):
        store = InMemoryScenarioStore()
        await store.create_scenario(Scenario(
            id="crash", account_id="steady", name="Income disappears",
            adjustments=ScenarioAdjustments(income_change_pct=-100.0, expense_change_pct=50.0),
        ))
        crash = await store.get_scenario("crash")
        result = await steady_orchestrator.run_simulation("steady", crash, iterations=1000)
        await store.update_scenario_results("crash", result)
        # snapshots are stamped with wall-clock time; evaluate against it
        guard = RunwayAlertGuard(steady_orchestrator, store, settings=settings)

        alerts = await guard.check_runway_alerts("steady")

        assert alerts.level is AlertLevel.CRITICAL
        assert "exhaustion_critical" in alerts.flags
