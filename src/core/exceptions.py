"""Exceptions raised by the runway simulation subsystem."""


class RunwayError(Exception):
    """Base class for runway simulation errors."""


class BaselineDataError(RunwayError):
    """Raised when the baseline profile cannot be gathered from its data sources.

    A wrong baseline corrupts every statistic derived from it, so callers must
    not substitute defaults for it.
    """

    def __init__(self, account_id: str, message: str):
        self.account_id = account_id
        super().__init__(f"Baseline for account {account_id}: {message}")


class SimulationConfigError(RunwayError, ValueError):
    """Raised for invalid simulation parameters (iterations, horizon)."""


class UnsupportedQueryError(RunwayError):
    """Raised by a collaborator that cannot evaluate a requested filter."""
