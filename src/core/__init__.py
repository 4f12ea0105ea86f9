"""Core module - constants and exceptions."""

from .constants import CONFIDENCE_LEVELS, TAIL_CONFIDENCE, DAYS_PER_MONTH, DAYS_PER_WEEK
from .exceptions import (
    RunwayError,
    BaselineDataError,
    SimulationConfigError,
    UnsupportedQueryError,
)

__all__ = [
    "CONFIDENCE_LEVELS",
    "TAIL_CONFIDENCE",
    "DAYS_PER_MONTH",
    "DAYS_PER_WEEK",
    "RunwayError",
    "BaselineDataError",
    "SimulationConfigError",
    "UnsupportedQueryError",
]
