"""Runway alert data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


def _utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class AlertLevel(Enum):
    """Runway alert severity."""

    UNKNOWN = "unknown"
    SAFE = "safe"
    CAUTION = "caution"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        """Rank for escalation; UNKNOWN sits below SAFE."""
        return _SEVERITY[self]

    def escalate(self, other: "AlertLevel") -> "AlertLevel":
        """The more severe of the two levels."""
        return other if other.severity > self.severity else self


_SEVERITY = {
    AlertLevel.UNKNOWN: -1,
    AlertLevel.SAFE: 0,
    AlertLevel.CAUTION: 1,
    AlertLevel.WARNING: 2,
    AlertLevel.CRITICAL: 3,
}


class OperationType(Enum):
    """Operations a circuit-breaker gate may be asked about."""

    EXPENSE_CREATE = "expense_create"
    SUBSCRIPTION_CREATE = "subscription_create"
    OTHER = "other"


@dataclass(frozen=True)
class AlertRecord:
    """Alert evaluation for one account."""

    level: AlertLevel
    message: str
    p10_runway: Optional[float] = None
    p50_runway: Optional[float] = None
    exhaustion_probability: float = 0.0
    flags: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    evaluated_at: datetime = field(default_factory=_utcnow)
    error: bool = False

    @property
    def is_safe(self) -> bool:
        return self.level in (AlertLevel.SAFE, AlertLevel.UNKNOWN)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "p10_runway": self.p10_runway,
            "p50_runway": self.p50_runway,
            "exhaustion_probability": self.exhaustion_probability,
            "flags": list(self.flags),
            "recommendations": list(self.recommendations),
            "evaluated_at": self.evaluated_at.isoformat(),
            "error": self.error,
        }


@dataclass(frozen=True)
class GateDecision:
    """Outcome of a circuit-breaker check."""

    allowed: bool
    level: AlertLevel
    alerts: Optional[AlertRecord] = None
    warning: Optional[str] = None  # set when allowed at warning/critical
    reason: Optional[str] = None   # set when denied
