"""Pydantic settings for the runway simulation service."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Simulation defaults
    default_iterations: int = Field(default=10000, ge=1, le=100000, description="Paths per full simulation")
    default_horizon_days: int = Field(default=90, ge=1, le=3650, description="Forecast horizon in days")
    quick_iterations: int = Field(default=1000, ge=1, le=100000, description="Paths per quick simulation")
    quick_horizon_days: int = Field(default=30, ge=1, le=3650, description="Quick simulation horizon in days")
    stress_test_iterations: int = Field(default=5000, ge=1, le=100000, description="Paths per stress scenario")
    baseline_lookback_days: int = Field(default=90, ge=1, description="History window for baseline aggregates")
    exhaustion_reference_days: int = Field(default=90, ge=1, description="Runway below this counts as exhaustion")
    histogram_bins: int = Field(default=30, ge=1, le=500, description="Bins per histogram")

    # Stochastic model
    expense_shock_probability: float = Field(default=0.02, ge=0.0, le=1.0, description="Daily chance of an expense shock")
    expense_shock_min: float = Field(default=100.0, ge=0.0, description="Smallest expense shock")
    expense_shock_max: float = Field(default=2000.0, ge=0.0, description="Largest expense shock")
    income_volatility: float = Field(default=0.15, ge=0.0, description="Fallback income std dev as a share of the mean")
    expense_volatility: float = Field(default=0.20, ge=0.0, description="Fallback expense std dev as a share of the mean")

    # Execution
    simulation_workers: int = Field(default=4, ge=1, le=64, description="Threads used to run paths")
    simulation_chunk_size: int = Field(default=500, ge=1, description="Paths handed to one worker task")

    # Result cache
    result_cache_ttl_seconds: int = Field(default=300, ge=1, description="Simulation result cache TTL")
    result_cache_max_size: int = Field(default=100, ge=1, description="Simulation result cache capacity")

    # Alerts
    alert_cache_ttl_seconds: int = Field(default=3600, ge=1, description="Per-account alert cache TTL")
    alert_cache_max_size: int = Field(default=10000, ge=1, description="Accounts kept in the alert cache")
    snapshot_fresh_hours: float = Field(default=24.0, gt=0, description="Max age of a reusable scenario snapshot")
    stale_scenario_hours: float = Field(default=24.0, gt=0, description="Age after which a scenario needs refresh")

    # Nightly runner
    nightly_batch_size: int = Field(default=10, ge=1, description="Accounts per batch")
    nightly_iterations: int = Field(default=10000, ge=1, description="Paths per nightly simulation")
    nightly_concurrency: int = Field(default=4, ge=1, description="Concurrent accounts within a batch")
    nightly_batch_delay_seconds: float = Field(default=1.0, ge=0.0, description="Pause between batches")
    nightly_active_days: int = Field(default=30, ge=1, description="Account activity window")
    nightly_account_limit: int = Field(default=1000, ge=1, description="Eligible account cap")
    nightly_fallback_account_limit: int = Field(default=500, ge=1, description="Cap when activity filter is unsupported")
    default_scenario_iterations: int = Field(default=5000, ge=1, description="Scenario iterations when unset")
    max_risk_factors: int = Field(default=20, ge=1, description="Risk factors kept on a health record")

    # Storage
    store_dir: Path = Field(default=Path(".cache/runway"), description="Disk scenario store directory")

    @field_validator("store_dir", mode="before")
    @classmethod
    def parse_store_dir(cls, v):
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v)
        return v

    @model_validator(mode="after")
    def check_shock_range(self) -> "Settings":
        if self.expense_shock_max < self.expense_shock_min:
            raise ValueError("expense_shock_max must be >= expense_shock_min")
        return self

    def ensure_store_dir(self) -> Path:
        """Ensure the store directory exists and return it."""
        self.store_dir.mkdir(parents=True, exist_ok=True)
        return self.store_dir


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
