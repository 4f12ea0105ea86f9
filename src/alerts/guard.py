"""Runway alert evaluation and circuit-breaker gate."""

import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from config.settings import Settings, get_settings
from src.alerts.models import AlertLevel, AlertRecord, GateDecision, OperationType
from src.core.constants import (
    EXHAUSTION_CRITICAL_PCT,
    EXHAUSTION_WARNING_PCT,
    MAX_RECOMMENDATIONS,
    P10_CAUTION_DAYS,
    P10_CRITICAL_DAYS,
    P10_WARNING_DAYS,
    RUNWAY_SPREAD_DAYS,
)
from src.data.cache.result_cache import CacheKeys, ResultCache
from src.data.interfaces import ScenarioStore
from src.simulation.models import ConfidenceIntervals, SimulationSummary
from src.simulation.orchestrator import SimulationOrchestrator

logger = logging.getLogger(__name__)

Gate = Callable[..., Awaitable[GateDecision]]


class RunwayAlertGuard:
    """
    Turns simulation output into runway alerts.

    Alerts come from (in order) a 1-hour in-memory cache, the account's
    most recent scenario snapshot when younger than 24 hours, or a quick
    simulation.
    """

    def __init__(
        self,
        orchestrator: SimulationOrchestrator,
        scenario_store: ScenarioStore,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        cache_clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.orchestrator = orchestrator
        self.scenario_store = scenario_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.cache: ResultCache[AlertRecord] = ResultCache(
            ttl_seconds=self.settings.alert_cache_ttl_seconds,
            max_size=self.settings.alert_cache_max_size,
            clock=cache_clock,
        )

    async def check_runway_alerts(self, account_id: str) -> AlertRecord:
        """
        Evaluate alerts for an account.

        Raises:
            BaselineDataError: If a quick simulation is needed and its
                baseline cannot be gathered
        """
        key = CacheKeys.alerts(account_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Alert cache hit for {account_id}")
            return cached

        summary = intervals = None

        scenarios = await self.scenario_store.get_account_scenarios(account_id, limit=1)
        if scenarios and scenarios[0].last_result_snapshot is not None:
            age = scenarios[0].snapshot_age_hours(self._clock())
            if age is not None and age < self.settings.snapshot_fresh_hours:
                snapshot = scenarios[0].last_result_snapshot
                summary, intervals = snapshot.summary, snapshot.confidence_intervals

        if summary is None:
            logger.debug(f"No fresh snapshot for {account_id}, running quick simulation")
            result = await self.orchestrator.quick_simulation(
                account_id, self.settings.quick_iterations
            )
            summary, intervals = result.summary, result.confidence_intervals

        alerts = self.evaluate_alerts(summary, intervals)
        self.cache.set(key, alerts)
        return alerts

    def evaluate_alerts(
        self,
        summary: Optional[SimulationSummary],
        confidence_intervals: Optional[ConfidenceIntervals],
    ) -> AlertRecord:
        """
        Map simulation statistics to a severity level with recommendations.

        P10 runway thresholds set the initial level; the exhaustion
        probability can only raise it.
        """
        if summary is None or confidence_intervals is None:
            return AlertRecord(
                level=AlertLevel.UNKNOWN,
                message="Unable to calculate runway alerts",
                evaluated_at=self._clock(),
                error=True,
            )

        p10 = confidence_intervals.p10.runway
        p50 = confidence_intervals.p50.runway
        exhaustion = summary.risk_metrics.exhaustion_probability or 0.0

        level = AlertLevel.SAFE
        message = ""
        flags: List[str] = []
        recommendations: List[str] = []

        if p10 < P10_CRITICAL_DAYS:
            level = AlertLevel.CRITICAL
            message = f"Critical: In worst-case scenarios, your funds could be exhausted in {p10:.0f} days"
            flags.append("p10_critical")
            recommendations += [
                "Immediately review and cut non-essential expenses",
                "Consider emergency income sources",
                "Prioritize high-value payments",
            ]
        elif p10 < P10_WARNING_DAYS:
            level = AlertLevel.WARNING
            message = f"Warning: Worst-case runway is only {p10:.0f} days"
            flags.append("p10_warning")
            recommendations += [
                "Review upcoming expenses and delay non-critical purchases",
                "Build a small emergency buffer",
            ]
        elif p10 < P10_CAUTION_DAYS:
            level = AlertLevel.CAUTION
            message = f"Caution: Some scenarios show runway below {P10_CAUTION_DAYS} days"
            flags.append("p10_caution")
            recommendations += [
                "Monitor your spending patterns",
                "Consider increasing savings rate",
            ]

        if exhaustion >= EXHAUSTION_CRITICAL_PCT:
            if level is not AlertLevel.CRITICAL:
                message = f"Critical: {exhaustion:.0f}% probability of running out of funds"
            level = level.escalate(AlertLevel.CRITICAL)
            flags.append("exhaustion_critical")
            recommendations.insert(0, "High probability of fund exhaustion - take immediate action")
        elif exhaustion >= EXHAUSTION_WARNING_PCT and level is AlertLevel.SAFE:
            level = AlertLevel.WARNING
            message = f"Warning: {exhaustion:.0f}% chance of exhausting funds within forecast period"
            flags.append("exhaustion_warning")
            recommendations.append("Reduce variable spending to lower exhaustion risk")

        if level is not AlertLevel.SAFE and p50 - p10 > RUNWAY_SPREAD_DAYS:
            recommendations.append(
                f"Your runway varies significantly ({p10:.0f}-{p50:.0f} days) - "
                "reduce income/expense volatility"
            )

        return AlertRecord(
            level=level,
            message=message or "Your financial runway looks healthy",
            p10_runway=p10,
            p50_runway=p50,
            exhaustion_probability=exhaustion,
            flags=tuple(flags),
            recommendations=tuple(recommendations[:MAX_RECOMMENDATIONS]),
            evaluated_at=self._clock(),
        )

    async def attach_alerts(self, account_id: str) -> AlertRecord:
        """Alerts for a request; any failure degrades to UNKNOWN."""
        try:
            return await self.check_runway_alerts(account_id)
        except Exception as e:
            logger.error(f"Error checking runway alerts for {account_id}: {e}")
            return AlertRecord(
                level=AlertLevel.UNKNOWN,
                message="Unable to calculate runway alerts",
                evaluated_at=self._clock(),
                error=True,
            )

    def circuit_breaker(
        self,
        block_expenses: bool = False,
        block_subscriptions: bool = True,
        warn_only: bool = True,
    ) -> Gate:
        """
        Build a gate for operations that add spending.

        Only a critical level with `warn_only=False` can deny; warning and
        critical levels otherwise allow with a warning message.

        Returns:
            async gate(account_id, operation, alerts=None) -> GateDecision
        """

        async def gate(
            account_id: str,
            operation: OperationType,
            alerts: Optional[AlertRecord] = None,
        ) -> GateDecision:
            if alerts is None:
                alerts = await self.attach_alerts(account_id)

            if alerts.is_safe:
                return GateDecision(allowed=True, level=alerts.level, alerts=alerts)

            if alerts.level is AlertLevel.CRITICAL and not warn_only:
                if block_expenses and operation is OperationType.EXPENSE_CREATE:
                    logger.warning(f"Blocked expense creation for {account_id}: runway critical")
                    return GateDecision(
                        allowed=False,
                        level=alerts.level,
                        alerts=alerts,
                        reason="New expenses blocked due to critical runway status",
                    )
                if block_subscriptions and operation is OperationType.SUBSCRIPTION_CREATE:
                    logger.warning(f"Blocked subscription creation for {account_id}: runway critical")
                    return GateDecision(
                        allowed=False,
                        level=alerts.level,
                        alerts=alerts,
                        reason="New subscriptions blocked due to critical runway status",
                    )

            warning = alerts.message if alerts.level in (AlertLevel.WARNING, AlertLevel.CRITICAL) else None
            return GateDecision(allowed=True, level=alerts.level, alerts=alerts, warning=warning)

        return gate

    def clear_account_cache(self, account_id: str) -> None:
        """Forget cached alerts and simulation results after the account's finances changed."""
        self.cache.delete(CacheKeys.alerts(account_id))
        self.orchestrator.invalidate(account_id)

    def clear_all_caches(self) -> None:
        self.cache.clear()
        self.orchestrator.cache.clear()
