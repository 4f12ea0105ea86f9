"""Unit tests for health-record risk factor derivation."""

from datetime import datetime, timezone

from src.jobs.risk_factors import derive_risk_factors, simulation_metrics


class TestDeriveRiskFactors:
    """Tests for mapping results to risk factors."""

    def test_healthy_result_has_no_factors(self, result_factory):
        assert derive_risk_factors(result_factory()) == []

    def test_high_exhaustion_is_cashflow_risk(self, result_factory):
        factors = derive_risk_factors(result_factory(exhaustion_probability=60.0))

        assert [f.category for f in factors] == ["cashflow"]
        assert factors[0].impact == "high"
        assert factors[0].probability == "possible"

    def test_very_high_exhaustion_is_critical(self, result_factory):
        factors = derive_risk_factors(result_factory(exhaustion_probability=80.0))

        assert factors[0].impact == "critical"
        assert factors[0].probability == "likely"

    def test_exhaustion_threshold_is_exclusive(self, result_factory):
        assert derive_risk_factors(result_factory(exhaustion_probability=50.0)) == []

    def test_short_p10_is_liquidity_risk(self, result_factory):
        high = derive_risk_factors(result_factory(p10_runway=20.0))
        critical = derive_risk_factors(result_factory(p10_runway=10.0))

        assert [f.category for f in high] == ["liquidity"]
        assert high[0].impact == "high"
        assert critical[0].impact == "critical"

    def test_large_shortfall_is_volatility_risk(self, result_factory):
        factors = derive_risk_factors(
            result_factory(current_balance=1000.0, expected_shortfall=-600.0)
        )

        assert [f.category for f in factors] == ["volatility"]
        assert factors[0].probability == "unlikely"

    def test_all_rules_in_order(self, result_factory):
        factors = derive_risk_factors(
            result_factory(p10_runway=5.0, exhaustion_probability=90.0, expected_shortfall=-900.0)
        )

        assert [f.category for f in factors] == ["cashflow", "liquidity", "volatility"]


class TestSimulationMetrics:
    """Tests for the metrics block written to health records."""

    def test_metrics_block(self, result_factory):
        now = datetime(2026, 3, 15, tzinfo=timezone.utc)
        metrics = simulation_metrics(
            result_factory(p10_runway=20.0, p50_runway=60.0, p90_runway=90.0, exhaustion_probability=12.5),
            now,
        )

        assert metrics["runway_p10"] == 20.0
        assert metrics["runway_p50"] == 60.0
        assert metrics["runway_p90"] == 90.0
        assert metrics["exhaustion_probability"] == 12.5
        assert metrics["last_simulated_at"] == now
