"""SQLite-backed scenario store built on diskcache."""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import diskcache

from config.settings import Settings, get_settings
from src.data.interfaces import ScenarioStore, SnapshotUpdate
from src.simulation.models import ResultSnapshot, Scenario, SimulationResult

logger = logging.getLogger(__name__)


class DiskScenarioStore(ScenarioStore):
    """
    Persistent storage for scenarios and result snapshots.

    Uses diskcache so snapshots survive process restarts. Key layout:
        scenario:{scenario_id}  -> Scenario
        history:{account_id}    -> list of ResultSnapshot, newest last
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        directory: Optional[Path] = None,
        history_limit: int = 30,
    ):
        self.settings = settings or get_settings()
        self.directory = Path(directory) if directory else self.settings.store_dir / "scenarios"
        self.history_limit = history_limit
        self._cache: Optional[diskcache.Cache] = None

    def _get_cache(self) -> diskcache.Cache:
        """Get or create the cache instance."""
        if self._cache is None:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._cache = diskcache.Cache(str(self.directory))
        return self._cache

    @staticmethod
    def _scenario_key(scenario_id: str) -> str:
        return f"scenario:{scenario_id}"

    @staticmethod
    def _history_key(account_id: str) -> str:
        return f"history:{account_id}"

    def _all_scenarios(self) -> List[Scenario]:
        cache = self._get_cache()
        scenarios = []
        for key in cache.iterkeys():
            if isinstance(key, str) and key.startswith("scenario:"):
                scenario = cache.get(key)
                if scenario is not None:
                    scenarios.append(scenario)
        return scenarios

    async def create_scenario(self, scenario: Scenario) -> Scenario:
        self._get_cache().set(self._scenario_key(scenario.id), scenario)
        logger.info(f"Saved scenario: {scenario.id}")
        return scenario

    async def get_scenario(self, scenario_id: str, account_id: Optional[str] = None) -> Optional[Scenario]:
        scenario = self._get_cache().get(self._scenario_key(scenario_id))
        if scenario is None:
            return None
        if account_id is not None and scenario.account_id != account_id and not scenario.is_default:
            return None
        return scenario

    async def get_account_scenarios(self, account_id: str, limit: Optional[int] = None) -> List[Scenario]:
        scenarios = [s for s in self._all_scenarios() if s.account_id == account_id]
        scenarios.sort(key=lambda s: s.created_at, reverse=True)
        return scenarios[:limit] if limit else scenarios

    async def delete_scenario(self, scenario_id: str, account_id: str) -> bool:
        scenario = await self.get_scenario(scenario_id)
        if scenario is None or scenario.account_id != account_id or scenario.is_default:
            return False
        deleted = self._get_cache().delete(self._scenario_key(scenario_id))
        if deleted:
            logger.info(f"Deleted scenario: {scenario_id}")
        return deleted

    def _write_snapshot(self, scenario: Scenario, snapshot: ResultSnapshot) -> Scenario:
        scenario.last_run_at = datetime.now(timezone.utc)
        scenario.last_result_snapshot = snapshot
        self._get_cache().set(self._scenario_key(scenario.id), scenario)
        return scenario

    async def update_scenario_results(self, scenario_id: str, result: SimulationResult) -> Optional[Scenario]:
        scenario = await self.get_scenario(scenario_id)
        if scenario is None:
            logger.warning(f"Scenario not found for result update: {scenario_id}")
            return None
        return self._write_snapshot(scenario, result.snapshot())

    async def store_historical_result(self, account_id: str, result: SimulationResult) -> bool:
        cache = self._get_cache()
        snapshot = result.snapshot()

        with cache.transact():
            history = cache.get(self._history_key(account_id), default=[])
            history.append(snapshot)
            cache.set(self._history_key(account_id), history[-self.history_limit:])

        for scenario in await self.get_account_scenarios(account_id):
            if scenario.is_default:
                self._write_snapshot(scenario, snapshot)
        return True

    async def get_history(self, account_id: str) -> List[ResultSnapshot]:
        """Baseline snapshots recorded for an account, oldest first."""
        return list(self._get_cache().get(self._history_key(account_id), default=[]))

    async def get_stale_scenarios(self, stale_hours: Optional[float] = None) -> List[Scenario]:
        stale_hours = stale_hours or self.settings.stale_scenario_hours
        cutoff = datetime.now(timezone.utc) - timedelta(hours=stale_hours)
        return [
            s for s in self._all_scenarios()
            if s.last_run_at is None or s.last_run_at < cutoff
        ]

    async def batch_update_results(self, updates: List[SnapshotUpdate]) -> int:
        cache = self._get_cache()
        applied = 0
        with cache.transact():
            for update in updates:
                scenario = cache.get(self._scenario_key(update.scenario_id))
                if scenario is None:
                    logger.warning(f"Skipping snapshot for unknown scenario {update.scenario_id}")
                    continue
                self._write_snapshot(scenario, update.result.snapshot())
                applied += 1
        logger.info(f"Batch updated {applied}/{len(updates)} scenario snapshots")
        return applied

    def stats(self) -> dict:
        """Get store statistics."""
        cache = self._get_cache()
        return {
            "size": len(cache),
            "volume": cache.volume(),
            "directory": str(cache.directory),
        }

    def close(self):
        """Close the cache connection."""
        if self._cache:
            self._cache.close()
            self._cache = None
