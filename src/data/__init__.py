"""Data layer for runway simulation."""

from .interfaces import (
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
from .memory import (
    InMemoryAccountDirectory,
    InMemoryHealthRecordStore,
    InMemoryLedger,
    InMemoryRecurringItems,
    InMemoryScenarioStore,
)
from .cache.result_cache import ResultCache, CacheKeys
from .store.disk_store import DiskScenarioStore

__all__ = [
    # Interfaces
    "AccountDirectory",
    "AccountRef",
    "DailyAggregate",
    "HealthRecord",
    "HealthRecordStore",
    "Ledger",
    "RecurringItemSource",
    "RiskFactor",
    "ScenarioStore",
    "SnapshotUpdate",
    # In-memory
    "InMemoryAccountDirectory",
    "InMemoryHealthRecordStore",
    "InMemoryLedger",
    "InMemoryRecurringItems",
    "InMemoryScenarioStore",
    # Caching and persistence
    "ResultCache",
    "CacheKeys",
    "DiskScenarioStore",
]
