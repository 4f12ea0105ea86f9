"""Nightly batch re-simulation of every eligible account."""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from config.settings import Settings, get_settings
from src.core.exceptions import UnsupportedQueryError
from src.data.interfaces import AccountDirectory, AccountRef, HealthRecordStore, ScenarioStore
from src.jobs.risk_factors import derive_risk_factors, simulation_metrics
from src.simulation.models import SimulationResult
from src.simulation.orchestrator import SimulationOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class RunStats:
    """Counters and errors collected during one run."""

    started_at: Optional[datetime] = None
    users_processed: int = 0
    scenarios_processed: int = 0
    health_scores_updated: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    duration: float = 0.0  # seconds
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat() if self.started_at else None
        return data


class NightlySimulationRunner:
    """
    Re-runs simulations for all eligible accounts.

    At most one run is active per runner; a second call while a run is in
    flight returns a skipped RunStats immediately. Accounts are processed
    in sequential batches with bounded concurrency inside each batch, and a
    failing account or scenario never aborts the rest of the run.
    """

    def __init__(
        self,
        orchestrator: SimulationOrchestrator,
        scenario_store: ScenarioStore,
        accounts: AccountDirectory,
        health_records: Optional[HealthRecordStore] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the runner.

        Args:
            orchestrator: Simulation orchestrator
            scenario_store: Scenario and snapshot persistence
            accounts: Source of eligible accounts
            health_records: Health records to enrich (None = skip enrichment)
            settings: Application settings
            clock: Returns the current UTC time
        """
        self.settings = settings or get_settings()
        self.orchestrator = orchestrator
        self.scenario_store = scenario_store
        self.accounts = accounts
        self.health_records = health_records
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._is_running = False
        self._last_run_stats: Optional[RunStats] = None

    async def run(self) -> RunStats:
        """
        Execute one nightly run.

        Returns:
            RunStats for this run, or RunStats(skipped=True) if a run is
            already in progress
        """
        if self._is_running:
            logger.info("Nightly simulation already running, skipping")
            return RunStats(skipped=True)

        self._is_running = True
        started = time.monotonic()
        stats = RunStats(started_at=self._clock())

        try:
            logger.info("Starting nightly simulation run")
            accounts = await self.get_active_accounts()
            logger.info(f"Found {len(accounts)} active accounts")

            batch_size = self.settings.nightly_batch_size
            for i in range(0, len(accounts), batch_size):
                await self.process_batch(accounts[i:i + batch_size], stats)

                if i + batch_size < len(accounts):
                    await asyncio.sleep(self.settings.nightly_batch_delay_seconds)

            stats.duration = time.monotonic() - started
            self._last_run_stats = stats

            logger.info(
                f"Nightly run completed: {stats.users_processed} accounts, "
                f"{stats.scenarios_processed} scenarios, {len(stats.errors)} errors "
                f"in {stats.duration:.1f}s"
            )
            return stats

        except Exception as e:
            logger.error(f"Nightly run failed: {e}")
            stats.errors.append({"type": "fatal", "message": str(e)})
            raise

        finally:
            self._is_running = False

    async def get_active_accounts(self) -> List[AccountRef]:
        """Accounts active recently, or an unfiltered capped list when the
        directory cannot filter by activity."""
        since = self._clock() - timedelta(days=self.settings.nightly_active_days)
        try:
            return await self.accounts.list_accounts(
                active_since=since,
                limit=self.settings.nightly_account_limit,
            )
        except UnsupportedQueryError as e:
            logger.warning(f"Activity filter unavailable ({e}), using unfiltered account list")
            return await self.accounts.list_accounts(limit=self.settings.nightly_fallback_account_limit)

    async def process_batch(self, accounts: List[AccountRef], stats: RunStats) -> None:
        """Process one batch; failures are recorded per account."""
        semaphore = asyncio.Semaphore(self.settings.nightly_concurrency)

        async def bounded(account: AccountRef):
            async with semaphore:
                await self.process_account(account.id, stats)

        outcomes = await asyncio.gather(
            *(bounded(account) for account in accounts),
            return_exceptions=True,
        )

        for account, outcome in zip(accounts, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Nightly simulation failed for account {account.id}: {outcome}")
                stats.errors.append({"account_id": account.id, "message": str(outcome)})
            elif isinstance(outcome, BaseException):
                raise outcome

    async def process_account(self, account_id: str, stats: RunStats) -> None:
        """
        Run the base simulation and every scenario of one account.

        The base run failing raises; a failing scenario is recorded and
        skipped. Health record enrichment is best effort.
        """
        base_result = await self.orchestrator.run_simulation(
            account_id,
            None,
            iterations=self.settings.nightly_iterations,
            horizon_days=self.settings.default_horizon_days,
            use_cache=False,
        )
        await self.scenario_store.store_historical_result(account_id, base_result)
        stats.users_processed += 1

        scenarios = await self.scenario_store.get_account_scenarios(account_id)
        for scenario in scenarios:
            try:
                iterations = min(
                    scenario.config.iteration_count or self.settings.default_scenario_iterations,
                    self.settings.nightly_iterations,
                )
                result = await self.orchestrator.run_simulation(
                    account_id,
                    scenario,
                    iterations=iterations,
                    use_cache=False,
                )
                await self.scenario_store.update_scenario_results(scenario.id, result)
                stats.scenarios_processed += 1
            except Exception as e:
                logger.error(f"Scenario {scenario.id} failed for account {account_id}: {e}")
                stats.errors.append({
                    "account_id": account_id,
                    "scenario_id": scenario.id,
                    "message": str(e),
                })

        if await self.update_health_score(account_id, base_result):
            stats.health_scores_updated += 1

    async def update_health_score(self, account_id: str, result: SimulationResult) -> bool:
        """
        Append simulation risk factors to this month's health record.

        Returns:
            True if a record was updated. Missing records and store errors
            return False; errors are logged, never raised.
        """
        if self.health_records is None:
            return False

        now = self._clock()
        try:
            record = await self.health_records.find_record(account_id, now.year, now.month)
            if record is None:
                logger.debug(f"No health record for {account_id} in {now.year}-{now.month:02d}")
                return False

            await self.health_records.apply_simulation(
                record.id,
                simulation_metrics(result, now),
                derive_risk_factors(result),
                cap=self.settings.max_risk_factors,
            )
            return True

        except Exception as e:
            logger.error(f"Failed to update health score for account {account_id}: {e}")
            return False

    async def trigger_manual(self, account_id: Optional[str] = None) -> RunStats:
        """Run a single account with fresh stats, or a full run."""
        if account_id is None:
            return await self.run()

        started = time.monotonic()
        stats = RunStats(started_at=self._clock())
        await self.process_account(account_id, stats)
        stats.duration = time.monotonic() - started
        return stats

    def get_last_run_stats(self) -> Optional[RunStats]:
        """Stats of the latest completed run."""
        return self._last_run_stats

    def is_job_running(self) -> bool:
        return self._is_running
