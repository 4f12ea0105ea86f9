"""Background jobs for runway simulation."""

from .nightly_runner import NightlySimulationRunner, RunStats
from .risk_factors import derive_risk_factors, simulation_metrics

__all__ = [
    "NightlySimulationRunner",
    "RunStats",
    "derive_risk_factors",
    "simulation_metrics",
]
