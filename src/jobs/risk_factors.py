"""Risk factors derived from simulation results for health records."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.core.constants import (
    RISK_EXHAUSTION_CRITICAL_PCT,
    RISK_EXHAUSTION_HIGH_PCT,
    RISK_P10_LIQUIDITY_CRITICAL_DAYS,
    RISK_P10_LIQUIDITY_DAYS,
    RISK_SHORTFALL_BALANCE_RATIO,
)
from src.data.interfaces import RiskFactor
from src.simulation.models import SimulationResult


def derive_risk_factors(result: SimulationResult) -> List[RiskFactor]:
    """
    Map a simulation result to health-record risk factors.

    Rules:
    - Exhaustion probability > 50% -> cashflow (critical above 75%)
    - P10 runway < 30 days -> liquidity (critical below 14 days)
    - |expected shortfall| > 50% of current balance -> volatility

    Args:
        result: Base (unscenario'd) simulation result

    Returns:
        Risk factors in rule order; empty if none apply
    """
    risk = result.summary.risk_metrics
    p10_runway = result.confidence_intervals.p10.runway
    factors = []

    if risk.exhaustion_probability > RISK_EXHAUSTION_HIGH_PCT:
        critical = risk.exhaustion_probability > RISK_EXHAUSTION_CRITICAL_PCT
        factors.append(RiskFactor(
            category="cashflow",
            risk="High runway exhaustion probability",
            impact="critical" if critical else "high",
            probability="likely" if critical else "possible",
            mitigation="Reduce expenses or increase income to improve runway",
        ))

    if p10_runway < RISK_P10_LIQUIDITY_DAYS:
        factors.append(RiskFactor(
            category="liquidity",
            risk=f"Worst-case runway below {RISK_P10_LIQUIDITY_DAYS} days",
            impact="critical" if p10_runway < RISK_P10_LIQUIDITY_CRITICAL_DAYS else "high",
            probability="possible",
            mitigation="Build emergency fund to extend runway in adverse scenarios",
        ))

    if abs(risk.expected_shortfall) > result.summary.current_balance * RISK_SHORTFALL_BALANCE_RATIO:
        factors.append(RiskFactor(
            category="volatility",
            risk="High expected shortfall in tail scenarios",
            impact="high",
            probability="unlikely",
            mitigation="Stabilize income sources and reduce variable expenses",
        ))

    return factors


def simulation_metrics(result: SimulationResult, now: Optional[datetime] = None) -> Dict[str, Any]:
    """The simulation metrics block written onto a health record."""
    intervals = result.confidence_intervals
    risk = result.summary.risk_metrics
    return {
        "runway_p10": intervals.p10.runway,
        "runway_p50": intervals.p50.runway,
        "runway_p90": intervals.p90.runway,
        "exhaustion_probability": risk.exhaustion_probability,
        "value_at_risk": risk.value_at_risk,
        "expected_shortfall": risk.expected_shortfall,
        "last_simulated_at": now or datetime.now(timezone.utc),
    }
