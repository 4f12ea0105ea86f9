"""In-memory implementations of the collaborator interfaces.

Used for embedding the subsystem without a database and as test doubles.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from src.core.exceptions import UnsupportedQueryError
from src.data.interfaces import (
    AccountDirectory,
    AccountRef,
    DailyAggregate,
    HealthRecord,
    HealthRecordStore,
    Ledger,
    RecurringItemSource,
    RiskFactor,
    ScenarioStore,
    SnapshotUpdate,
)
from src.simulation.models import FlowType, RecurringItem, ResultSnapshot, Scenario, SimulationResult

logger = logging.getLogger(__name__)


class InMemoryLedger(Ledger):
    """Ledger backed by a list of (account, kind, date, amount) transactions."""

    def __init__(self):
        self._transactions: Dict[str, List[tuple]] = defaultdict(list)

    def add_transaction(self, account_id: str, kind: FlowType, on: date, amount: float) -> None:
        self._transactions[account_id].append((kind, on, float(amount)))

    async def daily_aggregates(
        self,
        account_id: str,
        kind: FlowType,
        start: date,
        end: date,
    ) -> List[DailyAggregate]:
        totals: Dict[date, float] = defaultdict(float)
        for tx_kind, on, amount in self._transactions.get(account_id, []):
            if tx_kind == kind and start <= on <= end:
                totals[on] += amount
        return [DailyAggregate(date=d, daily_total=totals[d]) for d in sorted(totals)]

    async def current_balance(self, account_id: str) -> float:
        balance = 0.0
        for kind, _, amount in self._transactions.get(account_id, []):
            balance += amount if kind == FlowType.INCOME else -amount
        return balance


class InMemoryRecurringItems(RecurringItemSource):
    """Recurring items keyed by account."""

    def __init__(self):
        self._items: Dict[str, List[RecurringItem]] = defaultdict(list)

    def add_item(self, account_id: str, item: RecurringItem) -> None:
        self._items[account_id].append(item)

    async def active_items(self, account_id: str, kind: FlowType) -> List[RecurringItem]:
        return [item for item in self._items.get(account_id, []) if item.kind == kind]


class InMemoryAccountDirectory(AccountDirectory):
    """
    Accounts with optional last-activity timestamps.

    With `supports_activity_filter=False` the activity filter raises
    UnsupportedQueryError, like a backend whose records lack the field.
    """

    def __init__(self, supports_activity_filter: bool = True):
        self.supports_activity_filter = supports_activity_filter
        self._accounts: Dict[str, Optional[datetime]] = {}

    def add_account(self, account_id: str, last_active_at: Optional[datetime] = None) -> None:
        self._accounts[account_id] = last_active_at

    async def list_accounts(
        self,
        active_since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[AccountRef]:
        if active_since is None:
            ids = list(self._accounts)
        elif not self.supports_activity_filter:
            raise UnsupportedQueryError("Accounts do not record last activity")
        else:
            ids = [
                account_id
                for account_id, last_active in self._accounts.items()
                if last_active is not None and last_active >= active_since
            ]
        return [AccountRef(id=account_id) for account_id in ids[:limit]]


class InMemoryScenarioStore(ScenarioStore):
    """Scenario store held in a dict; history keeps every baseline snapshot."""

    def __init__(self):
        self._scenarios: Dict[str, Scenario] = {}
        self.history: Dict[str, List[ResultSnapshot]] = defaultdict(list)

    async def create_scenario(self, scenario: Scenario) -> Scenario:
        self._scenarios[scenario.id] = scenario
        return scenario

    async def get_scenario(self, scenario_id: str, account_id: Optional[str] = None) -> Optional[Scenario]:
        scenario = self._scenarios.get(scenario_id)
        if scenario is None:
            return None
        if account_id is not None and scenario.account_id != account_id and not scenario.is_default:
            return None
        return scenario

    async def get_account_scenarios(self, account_id: str, limit: Optional[int] = None) -> List[Scenario]:
        scenarios = sorted(
            (s for s in self._scenarios.values() if s.account_id == account_id),
            key=lambda s: s.created_at,
            reverse=True,
        )
        return scenarios[:limit] if limit else scenarios

    async def delete_scenario(self, scenario_id: str, account_id: str) -> bool:
        scenario = self._scenarios.get(scenario_id)
        if scenario is None or scenario.account_id != account_id or scenario.is_default:
            return False
        del self._scenarios[scenario_id]
        return True

    async def update_scenario_results(self, scenario_id: str, result: SimulationResult) -> Optional[Scenario]:
        scenario = self._scenarios.get(scenario_id)
        if scenario is None:
            logger.warning(f"Scenario not found for result update: {scenario_id}")
            return None
        scenario.last_run_at = datetime.now(timezone.utc)
        scenario.last_result_snapshot = result.snapshot()
        return scenario

    async def store_historical_result(self, account_id: str, result: SimulationResult) -> bool:
        self.history[account_id].append(result.snapshot())
        for scenario in self._scenarios.values():
            if scenario.account_id == account_id and scenario.is_default:
                await self.update_scenario_results(scenario.id, result)
        return True

    async def get_stale_scenarios(self, stale_hours: float = 24.0) -> List[Scenario]:
        cutoff = datetime.now(timezone.utc) - timedelta(hours=stale_hours)
        return [
            s for s in self._scenarios.values()
            if s.last_run_at is None or s.last_run_at < cutoff
        ]

    async def batch_update_results(self, updates: List[SnapshotUpdate]) -> int:
        applied = 0
        for update in updates:
            if await self.update_scenario_results(update.scenario_id, update.result):
                applied += 1
        return applied


class InMemoryHealthRecordStore(HealthRecordStore):
    """Health records keyed by (account, year, month)."""

    def __init__(self):
        self._records: Dict[str, HealthRecord] = {}

    def add_record(self, record: HealthRecord) -> None:
        self._records[record.id] = record

    async def find_record(self, account_id: str, year: int, month: int) -> Optional[HealthRecord]:
        for record in self._records.values():
            if record.account_id == account_id and record.year == year and record.month == month:
                return record
        return None

    async def apply_simulation(
        self,
        record_id: str,
        simulation_metrics: Dict[str, Any],
        risk_factors: List[RiskFactor],
        cap: int = 20,
    ) -> None:
        record = self._records[record_id]
        record.simulation_metrics = dict(simulation_metrics)
        record.risk_factors = (record.risk_factors + list(risk_factors))[-cap:]
