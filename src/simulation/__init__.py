"""Monte Carlo runway simulation."""

from .models import (
    BaselineProfile,
    ConfidenceIntervals,
    FlowType,
    OneTimeImpact,
    PathResult,
    RecurringItem,
    ResultSnapshot,
    Scenario,
    ScenarioAdjustments,
    ScenarioConfig,
    SimulationResult,
    SimulationSummary,
    StressTestResult,
)
from .path import ExpenseShock, PathSimulator
from .rng import NumpyRandomSource, RandomSource

# The orchestrator depends on src.data, which imports these models.
# Import it directly: from src.simulation.orchestrator import SimulationOrchestrator

__all__ = [
    "BaselineProfile",
    "ConfidenceIntervals",
    "FlowType",
    "OneTimeImpact",
    "PathResult",
    "RecurringItem",
    "ResultSnapshot",
    "Scenario",
    "ScenarioAdjustments",
    "ScenarioConfig",
    "SimulationResult",
    "SimulationSummary",
    "StressTestResult",
    "ExpenseShock",
    "PathSimulator",
    "NumpyRandomSource",
    "RandomSource",
]
