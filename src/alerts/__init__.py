"""Runway alerting."""

from .guard import RunwayAlertGuard
from .models import AlertLevel, AlertRecord, GateDecision, OperationType

__all__ = [
    "RunwayAlertGuard",
    "AlertLevel",
    "AlertRecord",
    "GateDecision",
    "OperationType",
]
