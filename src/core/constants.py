"""Constants for runway simulation and alerting."""

# Percentile bands reported for runway and final balance
CONFIDENCE_LEVELS = (10, 25, 50, 75, 90)

# Tail-risk confidence level (VaR95 / CVaR95)
TAIL_CONFIDENCE = 95

# Calendar approximations used for burn rates and recurring estimates
DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30

# Monthly multipliers for recurring item frequencies
MONTHLY_FREQUENCY_FACTORS = {
    "daily": 30.0,
    "weekly": 52.0 / 12.0,
    "biweekly": 26.0 / 12.0,
    "monthly": 1.0,
    "quarterly": 1.0 / 3.0,
    "yearly": 1.0 / 12.0,
}

# P10 runway alert thresholds (days)
P10_CRITICAL_DAYS = 7
P10_WARNING_DAYS = 14
P10_CAUTION_DAYS = 30

# Exhaustion probability alert thresholds (%)
EXHAUSTION_CRITICAL_PCT = 75.0
EXHAUSTION_WARNING_PCT = 50.0

# P50 - P10 runway gap that triggers a volatility recommendation (days)
RUNWAY_SPREAD_DAYS = 30

MAX_RECOMMENDATIONS = 5

# Health record risk factor thresholds
RISK_EXHAUSTION_HIGH_PCT = 50.0
RISK_EXHAUSTION_CRITICAL_PCT = 75.0
RISK_P10_LIQUIDITY_DAYS = 30
RISK_P10_LIQUIDITY_CRITICAL_DAYS = 14
RISK_SHORTFALL_BALANCE_RATIO = 0.5

# Adverse scenarios used by the stress test: (name, income %, expense %)
STRESS_SCENARIOS = (
    ("Income Loss 50%", -50.0, None),
    ("Expense Spike 30%", None, 30.0),
    ("Combined Shock: -50% Income, +30% Expense", -50.0, 30.0),
)
