"""Interfaces of the external collaborators the simulation subsystem consumes.

The ledger, recurring items, account directory, scenario persistence and
health records live outside this package; these abstract classes pin down
the contracts the orchestrator, nightly runner and alert guard rely on.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from src.simulation.models import FlowType, RecurringItem, Scenario, SimulationResult


@dataclass(frozen=True)
class DailyAggregate:
    """Total of one flow type on one calendar day."""

    date: date
    daily_total: float


@dataclass(frozen=True)
class AccountRef:
    """Minimal account identity returned by the account directory."""

    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class RiskFactor:
    """A risk entry appended to a health record's assessment."""

    category: str
    risk: str
    impact: str
    probability: str
    mitigation: str

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "risk": self.risk,
            "impact": self.impact,
            "probability": self.probability,
            "mitigation": self.mitigation,
        }


@dataclass
class HealthRecord:
    """Externally owned financial health record for one account and month."""

    id: str
    account_id: str
    year: int
    month: int
    risk_factors: List[RiskFactor] = field(default_factory=list)
    simulation_metrics: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SnapshotUpdate:
    """One entry of a batch snapshot upsert."""

    scenario_id: str
    result: SimulationResult


class Ledger(ABC):
    """Read access to raw transaction aggregates."""

    @abstractmethod
    async def daily_aggregates(
        self,
        account_id: str,
        kind: FlowType,
        start: date,
        end: date,
    ) -> List[DailyAggregate]:
        """Per-day totals of `kind` between start and end (inclusive).

        An empty list is valid and makes the baseline fall back to
        recurring-item estimates.
        """
        ...

    @abstractmethod
    async def current_balance(self, account_id: str) -> float:
        """All-time income minus expense for the account."""
        ...


class RecurringItemSource(ABC):
    """Active recurring incomes and expenses."""

    @abstractmethod
    async def active_items(self, account_id: str, kind: FlowType) -> List[RecurringItem]:
        """Active, unpaused recurring items of one flow type."""
        ...


class AccountDirectory(ABC):
    """Enumerates accounts eligible for nightly simulation."""

    @abstractmethod
    async def list_accounts(
        self,
        active_since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[AccountRef]:
        """List accounts, optionally only those active since a timestamp.

        Raises:
            UnsupportedQueryError: If the activity filter cannot be evaluated
        """
        ...


class ScenarioStore(ABC):
    """Persistence of scenarios and their last result snapshots."""

    @abstractmethod
    async def create_scenario(self, scenario: Scenario) -> Scenario:
        ...

    @abstractmethod
    async def get_scenario(self, scenario_id: str, account_id: Optional[str] = None) -> Optional[Scenario]:
        ...

    @abstractmethod
    async def get_account_scenarios(self, account_id: str, limit: Optional[int] = None) -> List[Scenario]:
        """Scenarios of an account, newest first."""
        ...

    @abstractmethod
    async def delete_scenario(self, scenario_id: str, account_id: str) -> bool:
        """Delete a non-default scenario owned by the account."""
        ...

    @abstractmethod
    async def update_scenario_results(self, scenario_id: str, result: SimulationResult) -> Optional[Scenario]:
        """Set last_run_at and last_result_snapshot from a result."""
        ...

    @abstractmethod
    async def store_historical_result(self, account_id: str, result: SimulationResult) -> bool:
        """Record an unscenario'd baseline result for the account."""
        ...

    @abstractmethod
    async def get_stale_scenarios(self, stale_hours: float = 24.0) -> List[Scenario]:
        """Scenarios never run or last run more than `stale_hours` ago."""
        ...

    @abstractmethod
    async def batch_update_results(self, updates: List[SnapshotUpdate]) -> int:
        """Upsert many snapshots at once; returns the number applied."""
        ...


class HealthRecordStore(ABC):
    """Financial health records maintained by another subsystem."""

    @abstractmethod
    async def find_record(self, account_id: str, year: int, month: int) -> Optional[HealthRecord]:
        ...

    @abstractmethod
    async def apply_simulation(
        self,
        record_id: str,
        simulation_metrics: Dict[str, Any],
        risk_factors: List[RiskFactor],
        cap: int = 20,
    ) -> None:
        """Set the simulation metrics block and append risk factors,
        keeping only the newest `cap` factors."""
        ...
